import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from .utils import resolve_sqlite_url

load_dotenv()

# Repository root; relative SQLite paths in DB_URL resolve against it.
ROOT_DIR = Path(__file__).resolve().parents[2]
FALLBACK_DB_URL = "sqlite:///./dev.db"


def database_url_from_env() -> str:
    """Return ``DB_URL`` (or the dev SQLite file) with relative paths resolved."""
    raw = os.getenv("DB_URL", "").strip() or FALLBACK_DB_URL
    return resolve_sqlite_url(raw, ROOT_DIR)


DEFAULT_SQLITE_URL = database_url_from_env()


def _enforce_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def make_engine(database_url: Optional[str] = None, echo: bool = False) -> Engine:
    """Create the lottery engine.

    SQLite connections get foreign key enforcement switched on, which the
    ticket and deposit tables rely on.
    """
    url = database_url or DEFAULT_SQLITE_URL
    engine = create_engine(url, echo=echo, future=True)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enforce_sqlite_foreign_keys)
    return engine


def get_sessionmaker(engine: Engine) -> sessionmaker:
    # Lottery views are built from ORM objects after the transaction commits.
    return sessionmaker(bind=engine, expire_on_commit=False, future=True)
