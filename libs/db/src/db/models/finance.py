from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


# ---------------------------
# Core: transactions
# ---------------------------


class TransactionRow(Base):
    """One imported transaction as stored in the hosted ``transactions`` table.

    Column names are part of the import/export contract and must stay exactly
    as declared here (``item_name``, ``original_amount`` ...).
    """

    __tablename__ = "transactions"

    # SQLite only autoincrements an INTEGER PRIMARY KEY (rowid alias).
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    item_name: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("''"))
    category: Mapped[str] = mapped_column(String, nullable=False, server_default=text("'Other'"))
    original_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    # NULL means "no adjustment"; readers fall back to original_amount.
    final_amount: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    currency: Mapped[str] = mapped_column(String(8), nullable=False, server_default=text("'USD'"))
    share: Mapped[Decimal] = mapped_column(Numeric(10, 4), nullable=False, server_default=text("0"))
    exclude: Mapped[Decimal] = mapped_column(
        Numeric(10, 4), nullable=False, server_default=text("0")
    )
    gf: Mapped[Decimal] = mapped_column(Numeric(10, 4), nullable=False, server_default=text("0"))
    girl_friend_percentage: Mapped[Decimal] = mapped_column(
        Numeric(10, 4), nullable=False, server_default=text("0")
    )
    trip: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"))

    __table_args__ = (Index("ix_transactions_date", "date"),)


__all__ = [
    "Base",
    "TransactionRow",
]
