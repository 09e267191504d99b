"""Tests for simulated collaborators and token safe-call wrappers."""

import pytest

from conftest import ALICE, BASE, BOB, NOW, ROUTER, STABLE, TOKEN
from stablevault.addresses import ZERO_ADDRESS
from stablevault.errors import InputError, RouteError, RouterRevertError, TransferError
from stablevault.routing.base import quote_output
from stablevault.routing.dry_run import SimulatedToken
from stablevault.routing.tokens import (
    TokenRegistry,
    return_unspent,
    safe_approve,
    safe_transfer,
    safe_transfer_from,
)


class FalseToken(SimulatedToken):
    """Token that reports failure by returning False."""

    async def transfer(self, sender, recipient, amount):
        return False


class TestSimulatedToken:
    """In-memory token semantics."""

    @pytest.mark.asyncio
    async def test_mint_and_transfer(self):
        token = SimulatedToken(TOKEN)
        token.mint(ALICE, 100)

        assert await token.transfer(ALICE, BOB, 30) is True
        assert await token.balance_of(ALICE) == 70
        assert await token.balance_of(BOB) == 30
        assert token.total_supply == 100

    @pytest.mark.asyncio
    async def test_transfer_from_consumes_allowance(self):
        token = SimulatedToken(TOKEN)
        token.mint(ALICE, 100)
        await token.approve(ALICE, BOB, 50)

        await token.transfer_from(BOB, ALICE, BOB, 20)

        assert await token.allowance(ALICE, BOB) == 30

    @pytest.mark.asyncio
    async def test_insufficient_allowance(self):
        token = SimulatedToken(TOKEN)
        token.mint(ALICE, 100)

        with pytest.raises(ValueError, match="allowance"):
            await token.transfer_from(BOB, ALICE, BOB, 1)

    @pytest.mark.asyncio
    async def test_insufficient_balance(self):
        token = SimulatedToken(TOKEN)

        with pytest.raises(ValueError, match="exceeds balance"):
            await token.transfer(ALICE, BOB, 1)

    @pytest.mark.asyncio
    async def test_zero_reset_required(self):
        token = SimulatedToken(TOKEN, require_zero_reset=True)
        await token.approve(ALICE, BOB, 5)

        with pytest.raises(ValueError):
            await token.approve(ALICE, BOB, 6)

        await token.approve(ALICE, BOB, 0)
        await token.approve(ALICE, BOB, 6)
        assert await token.allowance(ALICE, BOB) == 6

    @pytest.mark.asyncio
    async def test_no_return_value(self):
        token = SimulatedToken(TOKEN, returns_value=False)
        token.mint(ALICE, 10)

        assert await token.transfer(ALICE, BOB, 10) is None


class TestSafeCalls:
    """Wrappers tolerant of tokens that return nothing."""

    @pytest.mark.asyncio
    async def test_none_counts_as_success(self):
        token = SimulatedToken(TOKEN, returns_value=False)
        token.mint(ALICE, 10)
        await safe_approve(token, ALICE, BOB, 10)

        await safe_transfer_from(token, BOB, ALICE, BOB, 4)
        await safe_transfer(token, ALICE, BOB, 6)

        assert await token.balance_of(BOB) == 10

    @pytest.mark.asyncio
    async def test_false_is_failure(self):
        token = FalseToken(TOKEN)
        token.mint(ALICE, 10)

        with pytest.raises(TransferError) as exc_info:
            await safe_transfer(token, ALICE, BOB, 1)

        assert exc_info.value.fields["operation"] == "transfer"

    @pytest.mark.asyncio
    async def test_raised_error_is_failure(self):
        token = SimulatedToken(TOKEN)

        with pytest.raises(TransferError):
            await safe_transfer(token, ALICE, BOB, 1)

    @pytest.mark.asyncio
    async def test_return_unspent_caps_at_amount(self):
        token = SimulatedToken(TOKEN)
        token.mint(BOB, 25)  # 10 baseline + 15 pulled

        refunded = await return_unspent(token, BOB, ALICE, baseline=10, amount=15)

        assert refunded == 15
        assert await token.balance_of(BOB) == 10
        assert await token.balance_of(ALICE) == 15

    @pytest.mark.asyncio
    async def test_return_unspent_partial(self):
        token = SimulatedToken(TOKEN)
        token.mint(BOB, 4)

        refunded = await return_unspent(token, BOB, ALICE, baseline=0, amount=15)

        assert refunded == 4


class TestTokenRegistry:
    def test_lookup_is_case_insensitive(self):
        token = SimulatedToken(TOKEN)
        registry = TokenRegistry([token])

        assert registry.get(TOKEN.upper().replace("0X", "0x")) is token
        assert TOKEN in registry
        assert len(registry) == 1

    def test_unknown_asset(self):
        with pytest.raises(InputError):
            TokenRegistry().get(TOKEN)

    def test_zero_address_rejected(self):
        with pytest.raises(InputError):
            SimulatedToken(ZERO_ADDRESS)


class TestDryRunRouter:
    """Fixed-rate router behavior."""

    @pytest.mark.asyncio
    async def test_quote_every_hop(self, router):
        router.set_rate(TOKEN, BASE, 3, 2)

        assert await router.quote(10, [TOKEN, BASE, STABLE]) == [10, 15, 15]

    @pytest.mark.asyncio
    async def test_quote_needs_two_assets(self, router):
        with pytest.raises(RouteError):
            await router.quote(10, [TOKEN])

    @pytest.mark.asyncio
    async def test_quote_output_last_leg(self, router):
        router.set_rate(BASE, STABLE, 7)

        assert await quote_output(router, 3, [BASE, STABLE]) == 21

    @pytest.mark.asyncio
    async def test_swap_settles_from_inventory(self, router, token, stable):
        token.mint(ALICE, 10)
        await token.approve(ALICE, ROUTER, 10)

        amounts = await router.swap_exact(ALICE, 10, 10, [TOKEN, BASE, STABLE], BOB, NOW)

        assert amounts[-1] == 10
        assert await stable.balance_of(BOB) == 10
        assert await token.balance_of(ROUTER) == 10
        assert router.swap_count == 1

    @pytest.mark.asyncio
    async def test_expired_deadline(self, router):
        with pytest.raises(RouterRevertError):
            await router.swap_exact(ALICE, 10, 0, [TOKEN, BASE, STABLE], BOB, NOW - 1)

    @pytest.mark.asyncio
    async def test_native_path_must_start_at_base(self, router):
        with pytest.raises(RouterRevertError):
            await router.swap_exact_native(ALICE, 10, 0, [TOKEN, STABLE], BOB, NOW)

    @pytest.mark.asyncio
    async def test_native_swap(self, router, stable):
        amounts = await router.swap_exact_native(ALICE, 10, 0, [BASE, STABLE], BOB, NOW)

        assert amounts == [10, 10]
        assert router.native_received == 10
        assert await stable.balance_of(BOB) == 10
