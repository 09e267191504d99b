"""Ledger engine, state and event store."""

from stablevault.ledger.engine import StableVault
from stablevault.ledger.events import EventKind, EventLog, LedgerEvent
from stablevault.ledger.state import LedgerState

__all__ = [
    "StableVault",
    "LedgerState",
    "EventKind",
    "EventLog",
    "LedgerEvent",
]
