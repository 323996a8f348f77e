from __future__ import annotations

import argparse
from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from sqlalchemy import inspect

from rentlotto.db.engine import make_engine
from rentlotto.models import Base

PROJECT_ROOT = Path(__file__).resolve().parents[1]


def alembic_config() -> Config:
    cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    return cfg


def missing_tables() -> list[str]:
    """Lottery tables declared on the models but absent from the database."""
    engine = make_engine()
    try:
        present = set(inspect(engine).get_table_names())
    finally:
        engine.dispose()
    return sorted(set(Base.metadata.tables) - present)


def current_revision() -> str | None:
    engine = make_engine()
    try:
        with engine.connect() as connection:
            return MigrationContext.configure(connection).get_current_revision()
    finally:
        engine.dispose()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Apply lottery schema migrations.")
    parser.add_argument("revision", nargs="?", default="head")
    args = parser.parse_args(argv)

    command.upgrade(alembic_config(), args.revision)
    print(f"Database at revision {current_revision()}")

    missing = missing_tables()
    if missing and args.revision == "head":
        print("Missing lottery tables:", ", ".join(missing))
        return 1
    print("Lottery tables:", ", ".join(sorted(Base.metadata.tables)))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
