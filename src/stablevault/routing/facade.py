"""Router facade: quotes and executes conversions into the stable asset.

Usable standalone (callers convert tokens and receive stable output directly)
or installed on the ledger as its swap adapter.
"""

import logging
import time
from typing import Callable, Optional

from stablevault.addresses import (
    MAX_UINT256,
    NATIVE_ASSET,
    normalize_address,
    require_address,
    require_amount,
)
from stablevault.errors import InputError
from stablevault.routing.base import AmmRouter, SwapAdapter, build_stable_path, quote_output
from stablevault.routing.tokens import (
    Token,
    TokenRegistry,
    return_unspent,
    safe_approve,
    safe_transfer_from,
)

logger = logging.getLogger(__name__)


class RouterFacade(SwapAdapter):
    """Converts tokens into the stable asset through an AMM router.

    Allowances to the router are raised to the unbounded value the first time
    they run short, so repeat conversions of the same token skip the approval.
    """

    def __init__(
        self,
        router: AmmRouter,
        tokens: TokenRegistry,
        stable_asset: str,
        address: str,
        clock: Optional[Callable[[], int]] = None,
    ):
        """Initialize the facade.

        Args:
            router: AMM router collaborator
            tokens: Registry resolving asset addresses
            stable_asset: Address of the stable asset
            address: Custody address of the facade itself
            clock: Returns the current unix time (seconds)
        """
        self.router = router
        self.tokens = tokens
        self.stable_asset = require_address(stable_asset, "stable_asset")
        self._address = require_address(address, "address")
        self._clock = clock or (lambda: int(time.time()))

    @property
    def address(self) -> str:
        return self._address

    async def build_path(self, token_in: str) -> list[str]:
        """Swap path from token_in to the stable asset."""
        base = await self.router.base_asset()
        if normalize_address(token_in) == NATIVE_ASSET:
            token_in = base
        return build_stable_path(token_in, base, self.stable_asset)

    async def preview_to_stable(self, token_in: str, amount_in: int) -> int:
        """Quote the stable output for amount_in of token_in.

        The native currency is priced as the router's base asset.
        """
        token_in = require_address(token_in, "token_in")
        require_amount(amount_in, "amount_in")

        if token_in == self.stable_asset:
            return amount_in

        path = await self.build_path(token_in)
        out = await quote_output(self.router, amount_in, path)
        logger.debug(f"Preview {amount_in} {token_in} -> {out} stable via {len(path) - 1} hop(s)")
        return out

    async def swap_to_stable(
        self,
        caller: str,
        token_in: str,
        amount_in: int,
        min_out: int,
        recipient: str,
    ) -> int:
        """Pull amount_in of token_in from caller and deliver stable output to recipient.

        Args:
            caller: Account the tokens are pulled from (must have approved the facade)
            token_in: Asset to convert
            amount_in: Exact input amount
            min_out: Slippage floor for the swap output
            recipient: Receiver of the stable asset

        Returns:
            Stable amount delivered to recipient
        """
        token_in = require_address(token_in, "token_in")
        recipient = require_address(recipient, "recipient")
        require_amount(amount_in, "amount_in")
        if isinstance(min_out, bool) or not isinstance(min_out, int) or min_out < 0:
            raise InputError("min_out must be a non-negative integer", field="min_out")
        if token_in == NATIVE_ASSET:
            raise InputError("Native currency cannot be converted by the facade", field="token_in")

        token = self.tokens.get(token_in)

        if token_in == self.stable_asset:
            await safe_transfer_from(token, self.address, caller, recipient, amount_in)
            logger.info(f"Passed through {amount_in} stable from {caller} to {recipient}")
            return amount_in

        baseline = await token.balance_of(self.address)
        await safe_transfer_from(token, self.address, caller, self.address, amount_in)

        try:
            await self._ensure_allowance(token, amount_in)
            path = await self.build_path(token_in)
            amounts = await self.router.swap_exact(
                self.address,
                amount_in,
                min_out,
                path,
                recipient,
                self._clock(),
            )
        except BaseException:
            await return_unspent(token, self.address, caller, baseline, amount_in)
            raise

        out = int(amounts[-1]) if amounts else 0
        logger.info(
            f"Converted {amount_in} {token.symbol} -> {out} stable for {recipient} "
            f"(min_out={min_out})"
        )
        return out

    async def _ensure_allowance(self, token: Token, amount: int) -> None:
        current = await token.allowance(self.address, self.router.address)
        if current >= amount:
            return
        logger.debug(f"Raising {token.symbol} allowance for router {self.router.address}")
        await safe_approve(token, self.address, self.router.address, MAX_UINT256)
