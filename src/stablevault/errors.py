"""Error taxonomy for ledger operations.

Every error aborts the whole operation. Fields are kept as attributes so
callers (and the HTTP layer) can report them without parsing messages.
"""

from typing import Any


class VaultError(Exception):
    """Base class for all ledger errors."""

    kind = "vault_error"

    def __init__(self, message: str, **fields: Any):
        self.message = message
        self.fields = fields
        super().__init__(message)

    def to_dict(self) -> dict:
        """Serialize for API responses."""
        return {"error": self.kind, "detail": self.message, **self.fields}


class InputError(VaultError):
    """Zero address, zero amount or otherwise malformed request."""

    kind = "input_error"


class UnsolicitedTransferError(InputError):
    """Native currency sent outside of deposit()."""

    kind = "unsolicited_transfer"

    def __init__(self, sender: str, value: int):
        self.sender = sender
        self.value = value
        super().__init__(
            f"Direct native transfers are not accepted (from {sender}, value {value})",
            sender=sender,
            value=value,
        )


class CapacityError(VaultError):
    """Deposit would push the aggregate above the cap."""

    kind = "capacity_error"

    def __init__(self, attempted: int, remaining: int):
        self.attempted = attempted
        self.remaining = remaining
        super().__init__(
            f"Deposit of {attempted} exceeds remaining capacity {remaining}",
            attempted=attempted,
            remaining=remaining,
        )


class BalanceError(VaultError):
    """Withdrawal exceeds the caller's balance."""

    kind = "balance_error"

    def __init__(self, have: int, want: int):
        self.have = have
        self.want = want
        super().__init__(
            f"Insufficient balance: have {have}, want {want}",
            have=have,
            want=want,
        )


class LimitError(VaultError):
    """Withdrawal exceeds the per-transaction ceiling."""

    kind = "limit_error"

    def __init__(self, amount: int, limit: int):
        self.amount = amount
        self.limit = limit
        super().__init__(
            f"Withdrawal of {amount} exceeds limit {limit}",
            amount=amount,
            limit=limit,
        )


class RouteError(VaultError):
    """No viable conversion path, or the router quoted zero."""

    kind = "route_error"


class ExecutionError(VaultError):
    """Swap executed but yielded zero output."""

    kind = "execution_error"


class RouterRevertError(VaultError):
    """Router rejected the swap (expired deadline, output below floor)."""

    kind = "router_revert"


class TransferError(VaultError):
    """A token call failed or returned false."""

    kind = "transfer_error"


class AuthorizationError(VaultError):
    """Caller lacks the role required by a privileged operation."""

    kind = "authorization_error"

    def __init__(self, caller: str, role: str):
        self.caller = caller
        self.role = role
        super().__init__(
            f"Account {caller} is missing role {role}",
            caller=caller,
            role=role,
        )


class ReentrancyError(VaultError):
    """A guarded operation was re-entered from one of its own external calls."""

    kind = "reentrancy_error"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Reentrant call rejected: {operation}", operation=operation)
