"""SQLAlchemy models for the event store."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, Index, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Decimal strings: uint256 needs 78 digits, more than SQLite integers hold
AMOUNT = String(78)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class LedgerEventRecord(Base):
    """Persisted copy of an emitted ledger event."""

    __tablename__ = "ledger_events"
    __table_args__ = (Index("ix_ledger_events_user_kind", "user", "kind"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    sequence: Mapped[int] = mapped_column(unique=True, nullable=False, index=True)
    kind: Mapped[str] = mapped_column(String(40), nullable=False)
    user: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    asset: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    amount: Mapped[Optional[str]] = mapped_column(AMOUNT, nullable=True)
    amount_in: Mapped[Optional[str]] = mapped_column(AMOUNT, nullable=True)
    amount_out: Mapped[Optional[str]] = mapped_column(AMOUNT, nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)  # adapter
    role: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    account: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    emitted_at: Mapped[float] = mapped_column(Float, nullable=False)  # unix time
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
