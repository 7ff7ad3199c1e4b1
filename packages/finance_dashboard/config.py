"""Runtime settings resolved from the environment.

The CLI loads ``.env`` (python-dotenv, ``override=False``) before calling
:meth:`Settings.from_env`; library code never reads the environment on its
own except for ``DATABASE_URL`` (``db.client``) and the cache root.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_TARGET_CURRENCY = "GBP"
# Currency assumed for import rows and remote rows that carry none.
DEFAULT_SOURCE_CURRENCY = "USD"
DEFAULT_POLL_INTERVAL_SECONDS = 10 * 60.0
DEFAULT_CACHE_DURATION_SECONDS = 60 * 60.0
DEFAULT_PAGE_SIZE = 1000
DEFAULT_IMPORT_BATCH_SIZE = 500
DEFAULT_HTTP_TIMEOUT_SECONDS = 10.0


def get_cache_root() -> Path:
    """Return the local cache root.

    Default: ``./.cache`` under the current working directory.
    Override: ``FD_CACHE_DIR`` environment variable (absolute or relative).
    """

    root = os.getenv("FD_CACHE_DIR")
    if root and root.strip():
        return Path(root).expanduser().resolve()
    return (Path.cwd() / ".cache").resolve()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    try:
        value = float(raw) if raw else default
    except ValueError:
        return default
    return value if value > 0 else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    try:
        value = int(raw) if raw else default
    except ValueError:
        return default
    return value if value > 0 else default


@dataclass(frozen=True, slots=True)
class Settings:
    """Immutable bundle of tunables shared by the CLI and ``api`` helpers."""

    target_currency: str = DEFAULT_TARGET_CURRENCY
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    cache_duration_seconds: float = DEFAULT_CACHE_DURATION_SECONDS
    cache_dir: Path | None = None
    page_size: int = DEFAULT_PAGE_SIZE
    import_batch_size: int = DEFAULT_IMPORT_BATCH_SIZE
    http_timeout_seconds: float = DEFAULT_HTTP_TIMEOUT_SECONDS
    database_url: str | None = None

    @classmethod
    def from_env(cls) -> Settings:
        target = (os.getenv("FD_TARGET_CURRENCY") or DEFAULT_TARGET_CURRENCY).strip().upper()
        return cls(
            target_currency=target or DEFAULT_TARGET_CURRENCY,
            poll_interval_seconds=_env_float(
                "FD_POLL_INTERVAL_SECONDS", DEFAULT_POLL_INTERVAL_SECONDS
            ),
            cache_duration_seconds=_env_float(
                "FD_CACHE_DURATION_SECONDS", DEFAULT_CACHE_DURATION_SECONDS
            ),
            cache_dir=get_cache_root(),
            page_size=_env_int("FD_PAGE_SIZE", DEFAULT_PAGE_SIZE),
            import_batch_size=_env_int("FD_IMPORT_BATCH_SIZE", DEFAULT_IMPORT_BATCH_SIZE),
            http_timeout_seconds=_env_float(
                "FD_HTTP_TIMEOUT_SECONDS", DEFAULT_HTTP_TIMEOUT_SECONDS
            ),
            database_url=os.getenv("DATABASE_URL") or None,
        )


__all__ = [
    "DEFAULT_CACHE_DURATION_SECONDS",
    "DEFAULT_IMPORT_BATCH_SIZE",
    "DEFAULT_PAGE_SIZE",
    "DEFAULT_POLL_INTERVAL_SECONDS",
    "DEFAULT_SOURCE_CURRENCY",
    "DEFAULT_TARGET_CURRENCY",
    "Settings",
    "get_cache_root",
]
