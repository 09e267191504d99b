"""Fungible token interface and safe-call wrappers.

Tokens in the wild do not agree on return values: some return True, some
return nothing at all. The ``safe_*`` helpers accept both and treat an
explicit False (or a raised error) as a failed call.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from stablevault.addresses import is_zero_address, normalize_address
from stablevault.errors import InputError, TransferError, VaultError

logger = logging.getLogger(__name__)


class Token(ABC):
    """Fungible token collaborator.

    The first argument of every state-changing call is the account acting on
    the token (the platform's implicit sender).
    """

    @property
    @abstractmethod
    def address(self) -> str:
        """Token contract address."""
        pass

    @property
    def symbol(self) -> str:
        return self.address[:10]

    @abstractmethod
    async def balance_of(self, account: str) -> int:
        pass

    @abstractmethod
    async def allowance(self, owner: str, spender: str) -> int:
        pass

    @abstractmethod
    async def approve(self, owner: str, spender: str, amount: int) -> Optional[bool]:
        pass

    @abstractmethod
    async def transfer(self, sender: str, recipient: str, amount: int) -> Optional[bool]:
        pass

    @abstractmethod
    async def transfer_from(
        self, spender: str, owner: str, recipient: str, amount: int
    ) -> Optional[bool]:
        pass


class TokenRegistry:
    """Resolves asset addresses to token collaborators."""

    def __init__(self, tokens: Optional[list[Token]] = None):
        self._tokens: dict[str, Token] = {}
        for token in tokens or []:
            self.register(token)

    def register(self, token: Token) -> None:
        address = normalize_address(token.address)
        if is_zero_address(address):
            raise InputError("token address must not be the zero address", field="token")
        self._tokens[address] = token

    def get(self, address: str) -> Token:
        """Get token by address. Raises InputError for unknown assets."""
        token = self._tokens.get(normalize_address(address))
        if token is None:
            raise InputError(f"Unknown asset {address}", field="asset")
        return token

    def __contains__(self, address: str) -> bool:
        return normalize_address(address) in self._tokens

    def __len__(self) -> int:
        return len(self._tokens)

    @property
    def addresses(self) -> list[str]:
        return list(self._tokens.keys())


async def _safe_call(token: Token, operation: str, call) -> None:
    try:
        result = await call
    except VaultError:
        raise
    except Exception as e:
        logger.error(f"{operation} on {token.symbol} raised {type(e).__name__}: {e}")
        raise TransferError(
            f"{operation} on {token.address} failed: {e}",
            token=token.address,
            operation=operation,
        ) from e

    # None is the non-standard "no return value" convention
    if result is False:
        logger.error(f"{operation} on {token.symbol} returned false")
        raise TransferError(
            f"{operation} on {token.address} did not succeed",
            token=token.address,
            operation=operation,
        )


async def safe_transfer(token: Token, sender: str, recipient: str, amount: int) -> None:
    await _safe_call(token, "transfer", token.transfer(sender, recipient, amount))


async def safe_transfer_from(
    token: Token, spender: str, owner: str, recipient: str, amount: int
) -> None:
    await _safe_call(
        token, "transferFrom", token.transfer_from(spender, owner, recipient, amount)
    )


async def safe_approve(token: Token, owner: str, spender: str, amount: int) -> None:
    await _safe_call(token, "approve", token.approve(owner, spender, amount))


async def return_unspent(
    token: Token, holder: str, recipient: str, baseline: int, amount: int
) -> int:
    """Send back whatever part of ``amount`` ``holder`` still holds above ``baseline``.

    Used to unwind a pull into custody when the rest of the operation fails.

    Returns:
        Amount returned
    """
    held = await token.balance_of(holder) - baseline
    refund = min(max(held, 0), amount)
    if refund:
        await safe_transfer(token, holder, recipient, refund)
    if refund < amount:
        logger.error(
            f"Unwind of {amount} {token.symbol} to {recipient} incomplete: "
            f"only {refund} still held by {holder}"
        )
    else:
        logger.warning(f"Returned {refund} {token.symbol} to {recipient}")
    return refund
