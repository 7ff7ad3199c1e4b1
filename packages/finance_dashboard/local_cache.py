"""Single-slot, time-boxed local cache of the full transaction set.

Layout (relative to the cache root, default ``./.cache``)::

    <cache_root>/local_storage/transactions_cache.json            # CacheEntry JSON
    <cache_root>/local_storage/transactions_cache_timestamp.json  # epoch millis

The timestamp key allows a staleness check without parsing the (large)
payload; when it is missing the payload's own timestamp is used.

A stale entry is ignored, not deleted; the next successful remote load
overwrites it. Every public method reports storage failures through its
return value and a log line, never by raising.

Atomicity: writes target ``.tmp`` first and then ``os.replace`` into place.
"""

from __future__ import annotations

import contextlib
import errno
import os
import re
import time
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from .config import DEFAULT_CACHE_DURATION_SECONDS, get_cache_root
from .errors import CacheWriteError
from .logging_setup import get_logger
from .models import CacheEntry, Transaction

CACHE_KEY = "transactions_cache"
CACHE_TIMESTAMP_KEY = "transactions_cache_timestamp"

_KEY_RE = re.compile(r"^[A-Za-z0-9_.-]+$")
_CAPACITY_ERRNOS = frozenset({errno.ENOSPC, errno.EDQUOT, errno.EFBIG})

_logger = get_logger("finance_dashboard.local_cache")


# ----------------------------------------------------------------------------
# Durable key-value storage
# ----------------------------------------------------------------------------


class KeyValueStore(Protocol):
    """String key-value storage; failures surface as ``OSError``."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


def _validate_key(key: str) -> str:
    """Keys become file names; reject anything that could escape the root."""

    if not _KEY_RE.fullmatch(key) or key in {".", ".."}:
        raise ValueError(f"Invalid storage key: {key!r}")
    return key


class FileKeyValueStore:
    """One UTF-8 file per key under ``root``."""

    def __init__(self, root: str | os.PathLike[str] | None = None) -> None:
        self.root = Path(root) if root is not None else get_cache_root() / "local_storage"

    def _path(self, key: str) -> Path:
        return self.root / f"{_validate_key(key)}.json"

    def get_item(self, key: str) -> str | None:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def set_item(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp = path.with_suffix(path.suffix + ".tmp")
        self.root.mkdir(parents=True, exist_ok=True)
        try:
            tmp.write_text(value, encoding="utf-8")
            os.replace(tmp, path)
        except Exception:
            with contextlib.suppress(FileNotFoundError):
                tmp.unlink()
            raise

    def remove_item(self, key: str) -> None:
        with contextlib.suppress(FileNotFoundError):
            self._path(key).unlink()


def _is_capacity_error(exc: BaseException | None) -> bool:
    return isinstance(exc, OSError) and exc.errno in _CAPACITY_ERRNOS


# ----------------------------------------------------------------------------
# Transaction cache
# ----------------------------------------------------------------------------


class TransactionCache:
    """Time-boxed cache of the whole transaction collection."""

    def __init__(
        self,
        storage: KeyValueStore | None = None,
        *,
        duration_seconds: float = DEFAULT_CACHE_DURATION_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._storage: KeyValueStore = storage if storage is not None else FileKeyValueStore()
        self.duration_ms = int(duration_seconds * 1000)
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _is_fresh(self, timestamp: int, now: int) -> bool:
        return now - timestamp < self.duration_ms

    def get(self) -> list[Transaction] | None:
        """Return cached transactions when present and fresh; otherwise ``None``."""

        try:
            raw_ts = self._storage.get_item(CACHE_TIMESTAMP_KEY)
            now = self._now_ms()
            ts = _parse_timestamp(raw_ts)
            if ts is not None and not self._is_fresh(ts, now):
                _logger.info("local_cache:expired age_min=%d", (now - ts) // 60_000)
                return None
            raw = self._storage.get_item(CACHE_KEY)
        except (OSError, ValueError):
            _logger.warning("local_cache:read_failed", exc_info=True)
            return None

        if raw is None:
            _logger.debug("local_cache:miss")
            return None

        try:
            entry = CacheEntry.model_validate_json(raw)
        except ValidationError:
            _logger.warning("local_cache:corrupt_payload; ignoring", exc_info=True)
            return None

        if ts is None:
            ts = entry.timestamp
            if not self._is_fresh(ts, now):
                _logger.info("local_cache:expired age_min=%d", (now - ts) // 60_000)
                return None

        _logger.info(
            "local_cache:hit transactions=%d age_min=%d",
            len(entry.transactions),
            (now - ts) // 60_000,
        )
        return list(entry.transactions)

    def is_valid(self) -> bool:
        return self.get() is not None

    def set(self, transactions: Iterable[Transaction]) -> bool:
        """Overwrite the slot with ``transactions`` stamped now.

        On a storage-capacity failure the slot is cleared and the write is
        retried once. Returns ``False`` (after logging) when the write could
        not be completed.
        """

        now = self._now_ms()
        entry = CacheEntry(transactions=list(transactions), timestamp=now)
        payload = entry.model_dump_json()

        try:
            self._write(payload, now)
        except CacheWriteError as e:
            if not _is_capacity_error(e.__cause__):
                _logger.warning("local_cache:write_failed %s", e)
                return False
            _logger.warning("local_cache:storage_full; clearing slot and retrying once")
        else:
            _logger.info("local_cache:stored transactions=%d", len(entry.transactions))
            return True

        try:
            self._remove_all()
            self._write(payload, now)
        except (CacheWriteError, OSError) as e:
            _logger.warning("local_cache:write_failed_after_cleanup %s", e)
            return False
        _logger.info(
            "local_cache:stored_after_cleanup transactions=%d", len(entry.transactions)
        )
        return True

    def clear(self) -> bool:
        try:
            self._remove_all()
        except (OSError, ValueError):
            _logger.warning("local_cache:clear_failed", exc_info=True)
            return False
        _logger.info("local_cache:cleared")
        return True

    def _write(self, payload: str, timestamp: int) -> None:
        try:
            self._storage.set_item(CACHE_KEY, payload)
            self._storage.set_item(CACHE_TIMESTAMP_KEY, str(timestamp))
        except OSError as e:
            raise CacheWriteError(f"failed to write transaction cache: {e}") from e

    def _remove_all(self) -> None:
        self._storage.remove_item(CACHE_KEY)
        self._storage.remove_item(CACHE_TIMESTAMP_KEY)


def _parse_timestamp(raw: str | None) -> int | None:
    if raw is None:
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return None


__all__ = [
    "CACHE_KEY",
    "CACHE_TIMESTAMP_KEY",
    "FileKeyValueStore",
    "KeyValueStore",
    "TransactionCache",
]
