"""Ledger integrity tests.

These tests ensure that:
1. The aggregate always equals the sum of all balances
2. Successful deposits never leave the aggregate above the cap
3. Failed operations leave no trace
4. Balances never go negative
"""

import pytest

from conftest import ADMIN, ALICE, BOB, STABLE, TOKEN
from stablevault.errors import BalanceError, VaultError
from stablevault.ledger.state import LedgerState


def test_debit_cannot_go_negative():
    state = LedgerState(stable_asset=STABLE, cap=100)
    state.credit(ALICE, 10)

    with pytest.raises(BalanceError):
        state.debit(ALICE, 11)

    assert state.balance_of(ALICE) == 10
    assert state.total_deposits == 10


def test_credit_then_debit_consistent():
    state = LedgerState(stable_asset=STABLE, cap=100)

    state.credit(ALICE, 15)
    state.credit(BOB, 5)
    state.debit(ALICE, 15)

    assert state.balance_of(ALICE) == 0
    assert state.total_deposits == 5
    assert state.holders() == [BOB]
    assert state.check_invariant()


def test_remaining_capacity_never_negative():
    state = LedgerState(stable_asset=STABLE, cap=10)
    state.credit(ALICE, 12)

    assert state.remaining_capacity == 0


@pytest.mark.asyncio
async def test_invariant_holds_through_mixed_operations(vault, funded):
    """Run a scripted sequence, some steps failing, and check after each."""
    await vault.set_cap(ADMIN, 500)
    await vault.set_withdrawal_limit(ADMIN, 80)

    steps = [
        ("deposit", ALICE, STABLE, 100),
        ("deposit", BOB, TOKEN, 200),
        ("withdraw", ALICE, 90),   # over limit
        ("withdraw", ALICE, 50),
        ("deposit", ALICE, TOKEN, 300),  # over cap
        ("deposit", BOB, STABLE, 250),
        ("withdraw", BOB, 80),
        ("withdraw", ALICE, 60),  # over balance
        ("deposit", ALICE, STABLE, 0),  # invalid
    ]

    failures = 0
    for op, user, *args in steps:
        try:
            if op == "deposit":
                await vault.deposit(user, *args)
            else:
                await vault.withdraw(user, *args)
        except VaultError:
            failures += 1

        assert vault.state.check_invariant()
        assert vault.total_deposits <= vault.cap
        assert all(v >= 0 for v in vault.state.balances.values())

    assert failures == 4
    assert vault.get_balance(ALICE) == 50
    assert vault.get_balance(BOB) == 370
    assert vault.total_deposits == 420
    assert vault.deposit_count == 3
    assert vault.withdrawal_count == 2


@pytest.mark.asyncio
async def test_vault_holds_what_it_owes(vault, stable, funded):
    """Stable custody covers every balance when swaps settle in full."""
    await vault.deposit(ALICE, STABLE, 100)
    await vault.deposit(BOB, TOKEN, 60)
    await vault.withdraw(ALICE, 30)

    assert await stable.balance_of(vault.address) == vault.total_deposits


@pytest.mark.asyncio
async def test_events_replay_to_same_totals(vault, funded):
    await vault.deposit(ALICE, STABLE, 100)
    await vault.deposit(BOB, TOKEN, 60)
    await vault.withdraw(ALICE, 30)

    totals: dict[str, int] = {}
    for event in vault.events:
        if event.kind.value == "stable_deposit":
            totals[event.user] = totals.get(event.user, 0) + event.amount
        elif event.kind.value == "converted_deposit":
            totals[event.user] = totals.get(event.user, 0) + event.amount_out
        elif event.kind.value == "withdrawal":
            totals[event.user] -= event.amount

    assert totals == {ALICE: 70, BOB: 60}
    assert sum(totals.values()) == vault.total_deposits
