"""Append-only log of facts emitted by ledger operations."""

import logging
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Iterator, Optional

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    """Kinds of emitted facts."""

    STABLE_DEPOSIT = "stable_deposit"
    CONVERTED_DEPOSIT = "converted_deposit"
    WITHDRAWAL = "withdrawal"
    CAP_UPDATED = "cap_updated"
    ADAPTER_UPDATED = "adapter_updated"
    WITHDRAWAL_LIMIT_UPDATED = "withdrawal_limit_updated"
    ROLE_GRANTED = "role_granted"
    ROLE_REVOKED = "role_revoked"


@dataclass(frozen=True)
class LedgerEvent:
    """A single emitted fact. Unused fields stay None."""

    sequence: int
    kind: EventKind
    user: Optional[str] = None
    asset: Optional[str] = None
    amount: Optional[int] = None      # deposit/withdrawal amount, new cap or limit
    amount_in: Optional[int] = None   # converted deposits: source amount
    amount_out: Optional[int] = None  # converted deposits: realized stable output
    address: Optional[str] = None     # new adapter address
    role: Optional[str] = None
    account: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["kind"] = self.kind.value
        return {k: v for k, v in data.items() if v is not None}


EventSink = Callable[[LedgerEvent], Awaitable[None]]


class EventLog:
    """Ordered, append-only event log with async subscribers."""

    def __init__(self):
        self._events: list[LedgerEvent] = []
        self._sinks: list[EventSink] = []

    def subscribe(self, sink: EventSink) -> None:
        """Register a coroutine called with every new event."""
        self._sinks.append(sink)

    def unsubscribe(self, sink: EventSink) -> None:
        if sink in self._sinks:
            self._sinks.remove(sink)

    @property
    def next_sequence(self) -> int:
        return len(self._events) + 1

    def append(self, kind: EventKind, **fields) -> LedgerEvent:
        event = LedgerEvent(sequence=self.next_sequence, kind=kind, **fields)
        self._events.append(event)
        logger.debug(f"Event #{event.sequence} {kind.value}: {event.to_dict()}")
        return event

    def load(self, event: LedgerEvent) -> None:
        """Append an already-sequenced event (replay). Sinks are not notified."""
        if event.sequence != self.next_sequence:
            raise ValueError(
                f"Out-of-order event: got #{event.sequence}, expected #{self.next_sequence}"
            )
        self._events.append(event)

    async def publish(self, event: LedgerEvent) -> None:
        """Deliver event to subscribers. Sink failures are logged, never raised."""
        for sink in self._sinks:
            try:
                await sink(event)
            except Exception as e:
                logger.error(
                    f"Event sink {getattr(sink, '__qualname__', sink)} failed for "
                    f"#{event.sequence} {event.kind.value}: {type(e).__name__}: {e}"
                )

    def for_user(self, user: str) -> list[LedgerEvent]:
        user = user.lower()
        return [e for e in self._events if e.user == user]

    def of_kind(self, kind: EventKind) -> list[LedgerEvent]:
        return [e for e in self._events if e.kind == kind]

    @property
    def last(self) -> Optional[LedgerEvent]:
        return self._events[-1] if self._events else None

    def __iter__(self) -> Iterator[LedgerEvent]:
        return iter(list(self._events))

    def __len__(self) -> int:
        return len(self._events)
