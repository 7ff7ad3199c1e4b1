"""db: shared database library (SQLAlchemy, hosted Postgres/Supabase or SQLite).

Public exports
--------------
- ``Base`` and ``metadata`` for schema creation
- ORM models in ``db.models.finance`` (re-exported for convenience)
- Engine/session helpers in ``db.client``
"""

from __future__ import annotations

from .models.finance import Base, TransactionRow

metadata = Base.metadata

__all__ = [
    "Base",
    "metadata",
    "TransactionRow",
]
