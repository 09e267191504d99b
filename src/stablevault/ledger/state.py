"""Ledger state aggregate.

Owned by a single vault and only mutated through its operations. Every
balance change goes through credit()/debit(), which move the aggregate total
in the same step.
"""

from dataclasses import dataclass, field
from typing import Optional

from stablevault.addresses import normalize_address
from stablevault.errors import BalanceError
from stablevault.ledger.events import EventLog
from stablevault.routing.base import SwapAdapter


@dataclass
class LedgerState:
    """Balances, cap, limits and counters of one vault."""

    stable_asset: str
    cap: int
    balances: dict[tuple[str, str], int] = field(default_factory=dict)
    total_deposits: int = 0
    withdrawal_limits: dict[str, int] = field(default_factory=dict)
    deposit_count: int = 0
    withdrawal_count: int = 0
    swap_adapter: Optional[SwapAdapter] = None
    events: EventLog = field(default_factory=EventLog)

    def __post_init__(self):
        self.stable_asset = normalize_address(self.stable_asset)

    def balance_of(self, owner: str, asset: Optional[str] = None) -> int:
        key = (normalize_address(owner), normalize_address(asset or self.stable_asset))
        return self.balances.get(key, 0)

    def credit(self, owner: str, amount: int) -> int:
        """Add amount to owner's stable balance and the aggregate.

        Returns:
            New balance
        """
        key = (normalize_address(owner), self.stable_asset)
        self.balances[key] = self.balances.get(key, 0) + amount
        self.total_deposits += amount
        return self.balances[key]

    def debit(self, owner: str, amount: int) -> int:
        """Subtract amount from owner's stable balance and the aggregate.

        Raises:
            BalanceError: If the balance does not cover amount
        """
        key = (normalize_address(owner), self.stable_asset)
        have = self.balances.get(key, 0)
        if have < amount:
            raise BalanceError(have=have, want=amount)
        self.balances[key] = have - amount
        self.total_deposits -= amount
        return self.balances[key]

    @property
    def remaining_capacity(self) -> int:
        return max(self.cap - self.total_deposits, 0)

    def withdrawal_limit(self, asset: Optional[str] = None) -> int:
        """Per-withdrawal ceiling for asset (0 = unlimited)."""
        return self.withdrawal_limits.get(normalize_address(asset or self.stable_asset), 0)

    def set_withdrawal_limit(self, limit: int, asset: Optional[str] = None) -> None:
        self.withdrawal_limits[normalize_address(asset or self.stable_asset)] = limit

    def holders(self) -> list[str]:
        """Accounts with a nonzero stable balance."""
        return sorted(
            owner
            for (owner, asset), amount in self.balances.items()
            if asset == self.stable_asset and amount
        )

    def check_invariant(self) -> bool:
        """Aggregate equals the sum of all stable balances."""
        total = sum(
            amount for (_, asset), amount in self.balances.items() if asset == self.stable_asset
        )
        return total == self.total_deposits
