"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the ``transactions`` table read by ``finance_dashboard``.
"""

from .finance import Base, TransactionRow

__all__ = [
    "Base",
    "TransactionRow",
]
