"""Compare the lottery models with a live database schema.

Exit codes: 0 in sync, 1 drift detected, 2 the check itself failed.
"""

from __future__ import annotations

import argparse
import sys
from typing import Optional

from alembic.autogenerate import compare_metadata
from alembic.runtime.migration import MigrationContext
from sqlalchemy.engine import Engine

from rentlotto.db.engine import make_engine
from rentlotto.models import Base


def schema_diff(engine: Engine) -> list:
    """Return Alembic's diff entries between ``Base.metadata`` and ``engine``."""
    with engine.connect() as connection:
        context = MigrationContext.configure(
            connection=connection,
            opts={"compare_type": True, "compare_server_default": True},
        )
        return compare_metadata(context, Base.metadata)


def _describe(entry) -> str:
    # Column-level modifications come back as nested lists of tuples.
    if isinstance(entry, list):
        return "; ".join(_describe(item) for item in entry)
    action, *details = entry
    return f"{action}: {', '.join(str(d) for d in details if d is not None)}"


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--url", default=None, help="database URL (defaults to DB_URL)")
    args = parser.parse_args(argv)

    engine = make_engine(args.url)
    url_display = engine.url.render_as_string(hide_password=True)
    try:
        diff = schema_diff(engine)
    except Exception as exc:
        print(f"Schema drift check: ERROR for {url_display}: {exc}", file=sys.stderr)
        return 2
    finally:
        engine.dispose()

    if not diff:
        print(f"Schema drift check: OK for {url_display}.")
        return 0
    print(f"Schema drift check: FAILED for {url_display}. {len(diff)} difference(s):")
    for entry in diff:
        print(f"- {_describe(entry)}")
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
