from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from dotenv import load_dotenv

from .db.engine import DEFAULT_SQLITE_URL, database_url_from_env

DEFAULT_DEPOSIT_WINDOW_SECONDS = 7 * 86400
DEFAULT_BREAK_WINDOW_SECONDS = 7 * 86400
DEFAULT_RANDOMNESS_TIMEOUT_SECONDS = 86400


def _seconds(name: str, default: int) -> timedelta:
    raw = os.getenv(name, "").strip()
    if not raw:
        return timedelta(seconds=default)
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer number of seconds") from exc
    if value < 0:
        raise RuntimeError(f"{name} must not be negative")
    return timedelta(seconds=value)


@dataclass(frozen=True)
class Settings:
    """Deployment configuration for a lottery instance."""

    admin_address: str
    coordinator_address: str
    whitelist_root: Optional[str] = None
    database_url: str = DEFAULT_SQLITE_URL
    deposit_window: timedelta = timedelta(seconds=DEFAULT_DEPOSIT_WINDOW_SECONDS)
    break_window: timedelta = timedelta(seconds=DEFAULT_BREAK_WINDOW_SECONDS)
    randomness_timeout: timedelta = timedelta(seconds=DEFAULT_RANDOMNESS_TIMEOUT_SECONDS)

    @staticmethod
    def from_env() -> "Settings":
        load_dotenv()

        admin = os.getenv("LOTTERY_ADMIN_ADDRESS", "").strip()
        if not admin:
            raise RuntimeError(
                "Missing LOTTERY_ADMIN_ADDRESS. Put it in .env or export it."
            )
        coordinator = os.getenv("RANDOMNESS_COORDINATOR_ADDRESS", "").strip()
        if not coordinator:
            raise RuntimeError(
                "Missing RANDOMNESS_COORDINATOR_ADDRESS. Put it in .env or export it."
            )

        return Settings(
            admin_address=admin,
            coordinator_address=coordinator,
            whitelist_root=os.getenv("WHITELIST_MERKLE_ROOT", "").strip() or None,
            database_url=database_url_from_env(),
            deposit_window=_seconds(
                "DEPOSIT_WINDOW_SECONDS", DEFAULT_DEPOSIT_WINDOW_SECONDS
            ),
            break_window=_seconds("BREAK_WINDOW_SECONDS", DEFAULT_BREAK_WINDOW_SECONDS),
            randomness_timeout=_seconds(
                "RANDOMNESS_TIMEOUT_SECONDS", DEFAULT_RANDOMNESS_TIMEOUT_SECONDS
            ),
        )
