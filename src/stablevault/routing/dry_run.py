"""In-process simulated collaborators for dry-run mode and tests.

SimulatedToken keeps balances and allowances in memory. DryRunRouter prices
every hop at a fixed integer rate (1:1 unless configured) and settles swaps
out of its own stable-asset inventory. Neither models AMM curves.
"""

import logging
import time
from typing import Callable, Optional

from stablevault.addresses import normalize_address, require_address
from stablevault.errors import RouteError, RouterRevertError
from stablevault.routing.base import AmmRouter
from stablevault.routing.tokens import Token, TokenRegistry

logger = logging.getLogger(__name__)

# Rate as (numerator, denominator): out = in * numerator // denominator
Rate = tuple[int, int]


class SimulatedToken(Token):
    """In-memory fungible token.

    Args:
        address: Token address
        symbol: Display symbol
        decimals: Display decimals (amounts are always integers)
        returns_value: False to mimic tokens whose calls return nothing
        require_zero_reset: Reject changing a nonzero allowance to another nonzero value
    """

    def __init__(
        self,
        address: str,
        symbol: str = "TKN",
        decimals: int = 18,
        returns_value: bool = True,
        require_zero_reset: bool = False,
    ):
        self._address = require_address(address, "address")
        self._symbol = symbol
        self.decimals = decimals
        self.returns_value = returns_value
        self.require_zero_reset = require_zero_reset
        self.balances: dict[str, int] = {}
        self.allowances: dict[tuple[str, str], int] = {}
        self.total_supply = 0

    @property
    def address(self) -> str:
        return self._address

    @property
    def symbol(self) -> str:
        return self._symbol

    def mint(self, account: str, amount: int) -> None:
        account = normalize_address(account)
        self.balances[account] = self.balances.get(account, 0) + amount
        self.total_supply += amount

    async def balance_of(self, account: str) -> int:
        return self.balances.get(normalize_address(account), 0)

    async def allowance(self, owner: str, spender: str) -> int:
        return self.allowances.get((normalize_address(owner), normalize_address(spender)), 0)

    async def approve(self, owner: str, spender: str, amount: int) -> Optional[bool]:
        key = (normalize_address(owner), normalize_address(spender))
        if self.require_zero_reset and amount and self.allowances.get(key, 0):
            raise ValueError(f"{self.symbol}: approve from non-zero to non-zero allowance")
        self.allowances[key] = amount
        return self._result()

    async def transfer(self, sender: str, recipient: str, amount: int) -> Optional[bool]:
        self._move(sender, recipient, amount)
        return self._result()

    async def transfer_from(
        self, spender: str, owner: str, recipient: str, amount: int
    ) -> Optional[bool]:
        key = (normalize_address(owner), normalize_address(spender))
        allowed = self.allowances.get(key, 0)
        if allowed < amount:
            raise ValueError(f"{self.symbol}: insufficient allowance ({allowed} < {amount})")
        self._move(owner, recipient, amount)
        self.allowances[key] = allowed - amount
        return self._result()

    def _move(self, sender: str, recipient: str, amount: int) -> None:
        sender = normalize_address(sender)
        recipient = normalize_address(recipient)
        have = self.balances.get(sender, 0)
        if amount < 0 or have < amount:
            raise ValueError(f"{self.symbol}: transfer amount exceeds balance ({have} < {amount})")
        self.balances[sender] = have - amount
        self.balances[recipient] = self.balances.get(recipient, 0) + amount

    def _result(self) -> Optional[bool]:
        return True if self.returns_value else None


class DryRunRouter(AmmRouter):
    """Fixed-rate router for dry runs.

    Args:
        address: Router address
        tokens: Registry used to settle token legs
        base_asset: Wrapped native currency address
        default_rate: Rate applied to hops without an explicit rate
        slippage_bps: Difference between quoted and executed output in basis
            points (positive = worse than quoted, negative = better)
        clock: Returns the current unix time (seconds)
    """

    def __init__(
        self,
        address: str,
        tokens: TokenRegistry,
        base_asset: str,
        default_rate: Optional[Rate] = (1, 1),
        slippage_bps: int = 0,
        clock: Optional[Callable[[], int]] = None,
    ):
        self._address = require_address(address, "address")
        self.tokens = tokens
        self._base_asset = require_address(base_asset, "base_asset")
        self.default_rate = default_rate
        self.slippage_bps = slippage_bps
        self._clock = clock or (lambda: int(time.time()))
        self.rates: dict[tuple[str, str], Rate] = {}
        self.native_received = 0
        self.swap_count = 0

    @property
    def address(self) -> str:
        return self._address

    async def base_asset(self) -> str:
        return self._base_asset

    def set_rate(self, token_in: str, token_out: str, numerator: int, denominator: int = 1) -> None:
        """Set the hop rate token_in -> token_out."""
        self.rates[(normalize_address(token_in), normalize_address(token_out))] = (
            numerator,
            denominator,
        )

    def _rate(self, token_in: str, token_out: str) -> Rate:
        rate = self.rates.get((token_in, token_out), self.default_rate)
        if rate is None:
            raise RouteError(f"No pool for {token_in}/{token_out}", path=[token_in, token_out])
        return rate

    async def quote(self, amount_in: int, path: list[str]) -> list[int]:
        if len(path) < 2:
            raise RouteError("Path needs at least two assets", path=path)
        path = [normalize_address(p) for p in path]
        amounts = [amount_in]
        for token_in, token_out in zip(path, path[1:]):
            numerator, denominator = self._rate(token_in, token_out)
            amounts.append(amounts[-1] * numerator // denominator)
        return amounts

    async def swap_exact(
        self,
        caller: str,
        amount_in: int,
        amount_out_min: int,
        path: list[str],
        recipient: str,
        deadline: int,
    ) -> list[int]:
        amounts = await self._prepare(amount_in, amount_out_min, path, deadline)
        token_in = self.tokens.get(path[0])
        await token_in.transfer_from(self.address, caller, self.address, amount_in)
        await self._settle(path, amounts, recipient)
        logger.info(f"Dry-run swap {amount_in} {token_in.symbol} -> {amounts[-1]} for {recipient}")
        return amounts

    async def swap_exact_native(
        self,
        caller: str,
        value: int,
        amount_out_min: int,
        path: list[str],
        recipient: str,
        deadline: int,
    ) -> list[int]:
        if normalize_address(path[0]) != self._base_asset:
            raise RouterRevertError("Native swaps must start at the base asset", path=path)
        amounts = await self._prepare(value, amount_out_min, path, deadline)
        self.native_received += value
        await self._settle(path, amounts, recipient)
        logger.info(f"Dry-run native swap {value} -> {amounts[-1]} for {recipient}")
        return amounts

    async def _prepare(
        self, amount_in: int, amount_out_min: int, path: list[str], deadline: int
    ) -> list[int]:
        if self._clock() > deadline:
            raise RouterRevertError("Swap deadline expired", deadline=deadline)
        amounts = await self.quote(amount_in, path)
        executed = amounts[-1] * (10_000 - self.slippage_bps) // 10_000
        amounts[-1] = max(executed, 0)
        if amounts[-1] < amount_out_min:
            raise RouterRevertError(
                f"Insufficient output amount: {amounts[-1]} < {amount_out_min}",
                amount_out=amounts[-1],
                amount_out_min=amount_out_min,
            )
        return amounts

    async def _settle(self, path: list[str], amounts: list[int], recipient: str) -> None:
        self.swap_count += 1
        if amounts[-1]:
            token_out = self.tokens.get(path[-1])
            await token_out.transfer(self.address, recipient, amounts[-1])
