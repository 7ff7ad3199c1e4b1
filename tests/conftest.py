"""Pytest configuration for test isolation.

The transaction cache persists under a default project-relative directory
(``./.cache``). When tests run in the same working tree, a cache written by
one test would be served to the next and skip the loader under test.

To keep tests hermetic, we redirect the cache root to a unique temporary
directory for each test via an autouse fixture, and drop any ``FD_*`` or
``DATABASE_URL`` values inherited from the developer's shell.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

# Make sure the workspace `packages/` and `libs/db/src` dirs are on sys.path so
# `finance_dashboard` and `db` are importable without an install.
_ROOT = Path(__file__).resolve().parents[1]
sys.path[:0] = [
    p
    for p in (str(_ROOT / "packages"), str(_ROOT / "libs" / "db" / "src"), str(_ROOT))
    if p not in sys.path
]

from db.client import dispose_engines  # noqa: E402

_ENV_VARS = (
    "DATABASE_URL",
    "FD_TARGET_CURRENCY",
    "FD_POLL_INTERVAL_SECONDS",
    "FD_CACHE_DURATION_SECONDS",
    "FD_PAGE_SIZE",
    "FD_IMPORT_BATCH_SIZE",
    "FD_HTTP_TIMEOUT_SECONDS",
)


@pytest.fixture(autouse=True)
def _isolate_cache_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Force a per-test cache root so tests don't share on-disk state.

    The application reads ``FD_CACHE_DIR`` (when set) to override the default
    ``./.cache`` location. We point it at the test's own temporary directory.
    """

    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)

    cache_root = tmp_path / "cache"
    # Ensure the directory exists to make behavior explicit and help debugging.
    cache_root.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("FD_CACHE_DIR", os.fspath(cache_root))
    # The CLI loads `.env` from the CWD; keep a stray one out of the tests.
    monkeypatch.chdir(tmp_path)
    yield
    dispose_engines()
