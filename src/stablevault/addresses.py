"""Address helpers shared by the ledger and routing layers."""

from typing import Optional

from stablevault.errors import InputError

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Sentinel asset identifier for the chain's native currency
NATIVE_ASSET = "0xeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeee"

# Unbounded allowance (uint256 max)
MAX_UINT256 = 2**256 - 1


def normalize_address(address: Optional[str]) -> str:
    """Lower-case an address for comparisons. Returns "" for missing values."""
    if not address:
        return ""
    return address.strip().lower()


def is_zero_address(address: Optional[str]) -> bool:
    """Check for an empty or all-zero address."""
    normalized = normalize_address(address)
    return not normalized or normalized == ZERO_ADDRESS


def require_address(address: Optional[str], name: str = "address") -> str:
    """Normalize an address, raising InputError for zero/empty values."""
    if is_zero_address(address):
        raise InputError(f"{name} must not be the zero address", field=name)
    return normalize_address(address)


def require_amount(amount: int, name: str = "amount") -> int:
    """Reject zero, negative and non-integer amounts."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InputError(f"{name} must be an integer", field=name)
    if amount <= 0:
        raise InputError(f"{name} must be greater than zero", field=name)
    return amount
