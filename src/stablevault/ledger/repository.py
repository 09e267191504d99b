"""Repository and sink for persisted ledger events."""

import logging
from contextlib import AbstractAsyncContextManager
from typing import Callable, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stablevault.ledger.database import get_db
from stablevault.ledger.events import EventKind, LedgerEvent
from stablevault.ledger.models import LedgerEventRecord

logger = logging.getLogger(__name__)


def _to_int(value: Optional[str]) -> Optional[int]:
    return None if value is None else int(value)


def _to_str(value: Optional[int]) -> Optional[str]:
    return None if value is None else str(value)


class EventRepository:
    """Event store operations on one session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def record(self, event: LedgerEvent) -> LedgerEventRecord:
        """Persist an event. Re-recording a known sequence returns the stored row."""
        existing = await self.get_by_sequence(event.sequence)
        if existing is not None:
            return existing

        record = LedgerEventRecord(
            sequence=event.sequence,
            kind=event.kind.value,
            user=event.user,
            asset=event.asset,
            amount=_to_str(event.amount),
            amount_in=_to_str(event.amount_in),
            amount_out=_to_str(event.amount_out),
            address=event.address,
            role=event.role,
            account=event.account,
            emitted_at=event.timestamp,
        )
        self.session.add(record)
        await self.session.flush()
        return record

    async def get_by_sequence(self, sequence: int) -> Optional[LedgerEventRecord]:
        stmt = select(LedgerEventRecord).where(LedgerEventRecord.sequence == sequence)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_events(self, after_sequence: int = 0) -> list[LedgerEvent]:
        """All events after a sequence number, in order."""
        stmt = (
            select(LedgerEventRecord)
            .where(LedgerEventRecord.sequence > after_sequence)
            .order_by(LedgerEventRecord.sequence)
        )
        result = await self.session.execute(stmt)
        return [self.to_event(r) for r in result.scalars().all()]

    async def get_user_events(
        self, user: str, limit: int = 20, offset: int = 0
    ) -> list[LedgerEvent]:
        """Event history for a user, newest first."""
        stmt = (
            select(LedgerEventRecord)
            .where(LedgerEventRecord.user == user.lower())
            .order_by(LedgerEventRecord.sequence.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return [self.to_event(r) for r in result.scalars().all()]

    async def get_recent_events(self, limit: int = 20, offset: int = 0) -> list[LedgerEvent]:
        stmt = (
            select(LedgerEventRecord)
            .order_by(LedgerEventRecord.sequence.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return [self.to_event(r) for r in result.scalars().all()]

    async def count_by_kind(self) -> dict[str, int]:
        stmt = select(LedgerEventRecord.kind, func.count(LedgerEventRecord.id)).group_by(
            LedgerEventRecord.kind
        )
        result = await self.session.execute(stmt)
        return {kind: count for kind, count in result.all()}

    async def last_sequence(self) -> int:
        value = await self.session.scalar(select(func.max(LedgerEventRecord.sequence)))
        return value or 0

    @staticmethod
    def to_event(record: LedgerEventRecord) -> LedgerEvent:
        return LedgerEvent(
            sequence=record.sequence,
            kind=EventKind(record.kind),
            user=record.user,
            asset=record.asset,
            amount=_to_int(record.amount),
            amount_in=_to_int(record.amount_in),
            amount_out=_to_int(record.amount_out),
            address=record.address,
            role=record.role,
            account=record.account,
            timestamp=record.emitted_at,
        )


class DatabaseEventSink:
    """Event log subscriber writing every event to the event store.

    Args:
        session_scope: Callable returning an async session context manager
            that commits on exit (``get_db`` by default)
    """

    def __init__(
        self,
        session_scope: Optional[Callable[[], AbstractAsyncContextManager[AsyncSession]]] = None,
    ):
        self.session_scope = session_scope or get_db
        self.recorded = 0

    async def __call__(self, event: LedgerEvent) -> None:
        async with self.session_scope() as session:
            await EventRepository(session).record(event)
        self.recorded += 1
        logger.debug(f"Persisted event #{event.sequence} {event.kind.value}")
