"""Ledger engine: custody deposits, convert them into the stable asset, pay out withdrawals.

Deposit flow:
1. Validate the request (no external calls before this passes)
2. Quote the stable output (non-stable assets only)
3. Check the cap against the quote
4. Pull the asset into custody
5. Swap it into the stable asset
6. Credit the realized output

Withdrawal flow: check balance and limit, debit, then pay out.

Every mutating operation holds the vault's reentrancy guard from entry to
exit. A failure after funds were pulled returns them before the error
propagates, so an operation either completes or leaves no trace.
"""

import logging
import time
from typing import Callable, Iterable, Optional

from stablevault.access.roles import AccessControl, Role, require_role
from stablevault.addresses import (
    NATIVE_ASSET,
    normalize_address,
    require_address,
    require_amount,
)
from stablevault.errors import (
    BalanceError,
    CapacityError,
    ExecutionError,
    InputError,
    LimitError,
    RouteError,
    UnsolicitedTransferError,
    VaultError,
)
from stablevault.ledger.events import EventKind, LedgerEvent
from stablevault.ledger.state import LedgerState
from stablevault.routing.base import AmmRouter, SwapAdapter, build_stable_path, quote_output
from stablevault.routing.tokens import (
    Token,
    TokenRegistry,
    return_unspent,
    safe_approve,
    safe_transfer,
    safe_transfer_from,
)
from stablevault.utils.locks import ReentrancyGuard

logger = logging.getLogger(__name__)


def _require_non_negative(value: int, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InputError(f"{name} must be a non-negative integer", field=name)
    return value


class StableVault:
    """Custodial stable-asset ledger."""

    def __init__(
        self,
        router: AmmRouter,
        tokens: TokenRegistry,
        stable_asset: str,
        address: str,
        admin: str,
        cap: int,
        swap_adapter: Optional[SwapAdapter] = None,
        deadline_seconds: int = 300,
        guard_timeout: Optional[float] = 30.0,
        state: Optional[LedgerState] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        """Initialize the vault.

        Args:
            router: AMM router (fixed for the vault's lifetime)
            tokens: Registry resolving asset addresses; must contain the stable asset
            stable_asset: Address of the stable asset
            address: Custody address of the vault
            admin: Initial admin, also granted the operator role
            cap: Initial ceiling on aggregate deposits
            swap_adapter: Optional adapter used for deposit quotes
            deadline_seconds: Swap execution deadline relative to call time
            guard_timeout: Max wait for the reentrancy guard
            state: Pre-built state aggregate (a fresh one is created if omitted)
            clock: Returns the current unix time (seconds)
        """
        self._router = router
        self.tokens = tokens
        self._address = require_address(address, "address")
        stable_asset = require_address(stable_asset, "stable_asset")
        self.stable: Token = tokens.get(stable_asset)
        self.deadline_seconds = deadline_seconds
        self._clock = clock or (lambda: int(time.time()))

        self.state = state or LedgerState(
            stable_asset=stable_asset,
            cap=_require_non_negative(cap, "cap"),
        )
        self.state.swap_adapter = swap_adapter or self.state.swap_adapter

        admin = require_address(admin, "admin")
        self.access = AccessControl(admins=[admin])
        self.access.apply(Role.OPERATOR, admin, granted=True)

        self.guard = ReentrancyGuard(name=f"vault {self._address[:10]}", timeout=guard_timeout)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def address(self) -> str:
        return self._address

    @property
    def router(self) -> AmmRouter:
        return self._router

    @property
    def stable_asset(self) -> str:
        return self.state.stable_asset

    @property
    def swap_adapter(self) -> Optional[SwapAdapter]:
        return self.state.swap_adapter

    @property
    def cap(self) -> int:
        return self.state.cap

    @property
    def total_deposits(self) -> int:
        return self.state.total_deposits

    @property
    def remaining_capacity(self) -> int:
        return self.state.remaining_capacity

    @property
    def withdrawal_limit(self) -> int:
        return self.state.withdrawal_limit()

    @property
    def deposit_count(self) -> int:
        return self.state.deposit_count

    @property
    def withdrawal_count(self) -> int:
        return self.state.withdrawal_count

    @property
    def events(self):
        return self.state.events

    def get_balance(self, user: str) -> int:
        """Stable balance of user."""
        return self.state.balance_of(user)

    def balance_of(self, user: str, asset: Optional[str] = None) -> int:
        return self.state.balance_of(user, asset)

    def stats(self) -> dict:
        """Summary of the ledger for reporting."""
        return {
            "address": self.address,
            "stable_asset": self.stable_asset,
            "router": self.router.address,
            "swap_adapter": self.swap_adapter.address if self.swap_adapter else None,
            "total_deposits": self.total_deposits,
            "cap": self.cap,
            "remaining_capacity": self.remaining_capacity,
            "withdrawal_limit": self.withdrawal_limit,
            "deposit_count": self.deposit_count,
            "withdrawal_count": self.withdrawal_count,
            "holders": len(self.state.holders()),
            "events": len(self.events),
            "admins": self.access.members(Role.ADMIN),
            "operators": self.access.members(Role.OPERATOR),
        }

    async def preview_deposit(self, asset: str, amount: int) -> int:
        """Estimated credit for depositing amount of asset (cap not checked)."""
        asset = require_address(asset, "asset")
        require_amount(amount)
        if asset == self.stable_asset:
            return amount
        if asset != NATIVE_ASSET:
            self.tokens.get(asset)
        return await self._quote(asset, amount)

    # ------------------------------------------------------------------
    # Deposits
    # ------------------------------------------------------------------

    async def deposit(
        self,
        caller: str,
        asset: str,
        amount: int,
        min_out: int = 0,
        *,
        value: int = 0,
    ) -> int:
        """Deposit amount of asset and credit its stable value to caller.

        Args:
            caller: Depositing account (must have approved the vault for tokens)
            asset: Stable asset, NATIVE_ASSET, or any registered token
            amount: Amount of asset to deposit
            min_out: Slippage floor for the conversion swap
            value: Native currency attached to the call (must equal amount for
                native deposits and be zero otherwise)

        Returns:
            Stable amount credited
        """
        caller = require_address(caller, "caller")
        asset = require_address(asset, "asset")
        require_amount(amount)
        _require_non_negative(min_out, "min_out")
        _require_non_negative(value, "value")

        if asset == NATIVE_ASSET:
            if value != amount:
                raise InputError(
                    f"Attached value {value} does not match amount {amount}",
                    field="value",
                )
        elif value:
            raise InputError("Native value attached to a token deposit", field="value")

        async with self.guard.hold("deposit"):
            if asset == self.stable_asset:
                event = await self._deposit_stable(caller, amount)
            elif asset == NATIVE_ASSET:
                event = await self._deposit_native(caller, amount, min_out)
            else:
                event = await self._deposit_token(caller, asset, amount, min_out)

        await self.events.publish(event)
        return event.amount if event.kind == EventKind.STABLE_DEPOSIT else event.amount_out

    async def _deposit_stable(self, caller: str, amount: int) -> LedgerEvent:
        self._check_capacity(amount)
        await safe_transfer_from(self.stable, self.address, caller, self.address, amount)

        balance = self.state.credit(caller, amount)
        self.state.deposit_count += 1
        logger.info(
            f"Stable deposit {amount} from {caller} "
            f"(balance={balance}, total={self.total_deposits})"
        )
        return self.events.append(
            EventKind.STABLE_DEPOSIT, user=caller, asset=self.stable_asset, amount=amount
        )

    async def _deposit_native(self, caller: str, amount: int, min_out: int) -> LedgerEvent:
        quoted = await self._quote(NATIVE_ASSET, amount)
        if quoted == 0:
            raise RouteError(f"Zero quote for {amount} native", asset=NATIVE_ASSET)
        self._check_capacity(quoted)

        path = await self._path(NATIVE_ASSET)
        amounts = await self.router.swap_exact_native(
            self.address, amount, min_out, path, self.address, self._deadline()
        )
        out = int(amounts[-1]) if amounts else 0
        if out == 0:
            raise ExecutionError(f"Swap of {amount} native returned nothing", asset=NATIVE_ASSET)

        return self._credit_converted(caller, NATIVE_ASSET, amount, quoted, out)

    async def _deposit_token(
        self, caller: str, asset: str, amount: int, min_out: int
    ) -> LedgerEvent:
        token = self.tokens.get(asset)
        quoted = await self._quote(asset, amount)
        if quoted == 0:
            raise RouteError(f"Zero quote for {amount} {token.symbol}", asset=asset)
        self._check_capacity(quoted)

        path = await self._path(asset)
        # Anything pulled goes back to the caller on failure or cancellation
        baseline = await token.balance_of(self.address)
        await safe_transfer_from(token, self.address, caller, self.address, amount)

        try:
            # Exact allowance for this swap only; reset first for tokens that
            # refuse nonzero -> nonzero changes
            await safe_approve(token, self.address, self.router.address, 0)
            await safe_approve(token, self.address, self.router.address, amount)
            amounts = await self.router.swap_exact(
                self.address, amount, min_out, path, self.address, self._deadline()
            )
            out = int(amounts[-1]) if amounts else 0
            if out == 0:
                raise ExecutionError(
                    f"Swap of {amount} {token.symbol} returned nothing", asset=asset
                )
        except BaseException as e:
            logger.warning(
                f"Deposit of {amount} {token.symbol} from {caller} failed after pull: "
                f"{type(e).__name__}: {e}"
            )
            await self._unwind_pull(token, caller, baseline, amount)
            raise

        return self._credit_converted(caller, asset, amount, quoted, out)

    def _credit_converted(
        self, caller: str, asset: str, amount_in: int, quoted: int, out: int
    ) -> LedgerEvent:
        # Realized output is credited even when it differs from the checked quote
        balance = self.state.credit(caller, out)
        self.state.deposit_count += 1
        logger.info(
            f"Converted deposit {amount_in} {asset} -> {out} stable for {caller} "
            f"(quoted={quoted}, balance={balance}, total={self.total_deposits})"
        )
        return self.events.append(
            EventKind.CONVERTED_DEPOSIT,
            user=caller,
            asset=asset,
            amount_in=amount_in,
            amount_out=out,
        )

    async def _unwind_pull(self, token: Token, caller: str, baseline: int, amount: int) -> None:
        try:
            await safe_approve(token, self.address, self.router.address, 0)
            await return_unspent(token, self.address, caller, baseline, amount)
        except Exception as e:
            logger.error(
                f"Could not return {amount} {token.symbol} to {caller}: "
                f"{type(e).__name__}: {e}"
            )

    async def _quote(self, asset: str, amount: int) -> int:
        adapter = self.state.swap_adapter
        if adapter is None:
            path = await self._path(asset)
            return await quote_output(self.router, amount, path)

        token_in = await self.router.base_asset() if asset == NATIVE_ASSET else asset
        try:
            return int(await adapter.preview_to_stable(token_in, amount))
        except VaultError:
            raise
        except Exception as e:
            logger.warning(f"Adapter {adapter.address} preview failed: {type(e).__name__}: {e}")
            raise RouteError(f"Adapter could not price {asset}: {e}", asset=asset) from e

    async def _path(self, asset: str) -> list[str]:
        base = await self.router.base_asset()
        token_in = base if asset == NATIVE_ASSET else asset
        return build_stable_path(token_in, base, self.stable_asset)

    def _check_capacity(self, amount: int) -> None:
        if self.state.total_deposits + amount > self.state.cap:
            logger.warning(
                f"Deposit of {amount} rejected: total={self.total_deposits}, cap={self.cap}"
            )
            raise CapacityError(attempted=amount, remaining=self.state.remaining_capacity)

    def _deadline(self) -> int:
        return self._clock() + self.deadline_seconds

    # ------------------------------------------------------------------
    # Withdrawals
    # ------------------------------------------------------------------

    async def withdraw(self, caller: str, amount: int) -> int:
        """Pay amount of the stable asset out of caller's balance.

        Returns:
            Amount paid out
        """
        caller = require_address(caller, "caller")
        require_amount(amount)

        async with self.guard.hold("withdraw"):
            limit = self.state.withdrawal_limit()
            have = self.state.balance_of(caller)
            if amount > have:
                raise BalanceError(have=have, want=amount)
            if limit and amount > limit:
                raise LimitError(amount=amount, limit=limit)

            # Debit before paying out
            balance = self.state.debit(caller, amount)
            self.state.withdrawal_count += 1
            try:
                await safe_transfer(self.stable, self.address, caller, amount)
            except BaseException as e:
                self.state.credit(caller, amount)
                self.state.withdrawal_count -= 1
                logger.error(
                    f"Payout of {amount} to {caller} failed, debit reverted: "
                    f"{type(e).__name__}: {e}"
                )
                raise

            logger.info(
                f"Withdrawal {amount} to {caller} (balance={balance}, total={self.total_deposits})"
            )
            event = self.events.append(
                EventKind.WITHDRAWAL, user=caller, asset=self.stable_asset, amount=amount
            )

        await self.events.publish(event)
        return amount

    async def receive(self, caller: str, value: int) -> None:
        """Entry point for native currency sent outside deposit(). Always rejected."""
        logger.warning(f"Rejected unsolicited native transfer of {value} from {caller}")
        raise UnsolicitedTransferError(sender=normalize_address(caller), value=value)

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    @require_role(Role.ADMIN)
    async def set_cap(self, caller: str, new_cap: int) -> None:
        """Set the ceiling on aggregate deposits. Admin only."""
        _require_non_negative(new_cap, "new_cap")
        async with self.guard.hold("set_cap"):
            old_cap = self.state.cap
            self.state.cap = new_cap
            event = self.events.append(EventKind.CAP_UPDATED, amount=new_cap)
        logger.info(f"Cap updated {old_cap} -> {new_cap} by {caller}")
        await self.events.publish(event)

    @require_role(Role.OPERATOR)
    async def set_withdrawal_limit(self, caller: str, limit: int) -> None:
        """Set the per-withdrawal ceiling (0 = unlimited). Operator only."""
        _require_non_negative(limit, "limit")
        async with self.guard.hold("set_withdrawal_limit"):
            self.state.set_withdrawal_limit(limit)
            event = self.events.append(
                EventKind.WITHDRAWAL_LIMIT_UPDATED, asset=self.stable_asset, amount=limit
            )
        logger.info(f"Withdrawal limit set to {limit or 'unlimited'} by {caller}")
        await self.events.publish(event)

    @require_role(Role.ADMIN)
    async def set_swap_adapter(self, caller: str, adapter: SwapAdapter) -> None:
        """Replace the swap adapter used for deposit quotes. Admin only."""
        if adapter is None:
            raise InputError("adapter must not be empty", field="adapter")
        adapter_address = require_address(adapter.address, "adapter")
        async with self.guard.hold("set_swap_adapter"):
            self.state.swap_adapter = adapter
            event = self.events.append(EventKind.ADAPTER_UPDATED, address=adapter_address)
        logger.info(f"Swap adapter set to {adapter_address} by {caller}")
        await self.events.publish(event)

    @require_role(Role.ADMIN)
    async def grant_role(self, caller: str, role: Role, account: str) -> bool:
        """Grant role to account. Admin only."""
        async with self.guard.hold("grant_role"):
            changed = self.access.grant_role(caller, role, account)
            event = None
            if changed:
                event = self.events.append(
                    EventKind.ROLE_GRANTED,
                    role=Role(role).value,
                    account=normalize_address(account),
                    user=normalize_address(caller),
                )
        if event:
            await self.events.publish(event)
        return changed

    @require_role(Role.ADMIN)
    async def revoke_role(self, caller: str, role: Role, account: str) -> bool:
        """Revoke role from account. Admin only."""
        async with self.guard.hold("revoke_role"):
            changed = self.access.revoke_role(caller, role, account)
            event = None
            if changed:
                event = self.events.append(
                    EventKind.ROLE_REVOKED,
                    role=Role(role).value,
                    account=normalize_address(account),
                    user=normalize_address(caller),
                )
        if event:
            await self.events.publish(event)
        return changed

    # ------------------------------------------------------------------
    # Replay
    # ------------------------------------------------------------------

    async def restore(
        self,
        events: Iterable[LedgerEvent],
        adapters: Optional[dict[str, SwapAdapter]] = None,
    ) -> int:
        """Rebuild state from previously emitted events on a fresh vault.

        Args:
            events: Events in sequence order
            adapters: Known adapters by address, used to resolve adapter updates

        Returns:
            Number of events applied
        """
        adapters = {normalize_address(k): v for k, v in (adapters or {}).items()}
        async with self.guard.hold("restore"):
            if len(self.events):
                raise InputError("Ledger already has events; restore needs a fresh vault")
            applied = 0
            for event in events:
                self._apply(event, adapters)
                self.events.load(event)
                applied += 1

        logger.info(
            f"Restored {applied} events: total={self.total_deposits}, cap={self.cap}, "
            f"holders={len(self.state.holders())}"
        )
        return applied

    def _apply(self, event: LedgerEvent, adapters: dict[str, SwapAdapter]) -> None:
        state = self.state
        if event.kind == EventKind.STABLE_DEPOSIT:
            state.credit(event.user, event.amount)
            state.deposit_count += 1
        elif event.kind == EventKind.CONVERTED_DEPOSIT:
            state.credit(event.user, event.amount_out)
            state.deposit_count += 1
        elif event.kind == EventKind.WITHDRAWAL:
            state.debit(event.user, event.amount)
            state.withdrawal_count += 1
        elif event.kind == EventKind.CAP_UPDATED:
            state.cap = event.amount
        elif event.kind == EventKind.WITHDRAWAL_LIMIT_UPDATED:
            state.set_withdrawal_limit(event.amount, event.asset)
        elif event.kind == EventKind.ADAPTER_UPDATED:
            adapter = adapters.get(normalize_address(event.address))
            if adapter is None:
                logger.warning(f"Adapter {event.address} from event #{event.sequence} is unknown")
            state.swap_adapter = adapter
        elif event.kind == EventKind.ROLE_GRANTED:
            self.access.apply(Role(event.role), event.account, granted=True)
        elif event.kind == EventKind.ROLE_REVOKED:
            self.access.apply(Role(event.role), event.account, granted=False)
