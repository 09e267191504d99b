"""User-facing ledger endpoints: deposits, withdrawals, balances, history."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from stablevault.api.deps import get_caller, get_vault
from stablevault.config import get_settings
from stablevault.ledger.database import get_db
from stablevault.ledger.engine import StableVault
from stablevault.ledger.repository import EventRepository

router = APIRouter()


class DepositRequest(BaseModel):
    """Deposit of the stable asset, the native currency or a registered token."""

    asset: str = Field(..., min_length=1, max_length=64, description="Asset address")
    amount: int = Field(..., description="Amount in the asset's smallest unit")
    min_out: int = Field(default=0, ge=0, description="Slippage floor for the conversion")
    value: int = Field(default=0, ge=0, description="Attached native value (native deposits)")


class PreviewRequest(BaseModel):
    asset: str = Field(..., min_length=1, max_length=64)
    amount: int


class WithdrawalRequest(BaseModel):
    amount: int = Field(..., description="Stable amount to withdraw")


class NativeTransferRequest(BaseModel):
    value: int = Field(..., ge=0)


class DepositResponse(BaseModel):
    user: str
    asset: str
    amount: int
    credited: int
    balance: int


class PreviewResponse(BaseModel):
    asset: str
    amount: int
    estimated_credit: int
    remaining_capacity: int


class WithdrawalResponse(BaseModel):
    user: str
    amount: int
    balance: int


class BalanceResponse(BaseModel):
    user: str
    asset: str
    balance: int


@router.post("/deposits", response_model=DepositResponse)
async def deposit(
    request: DepositRequest,
    caller: str = Depends(get_caller),
    vault: StableVault = Depends(get_vault),
) -> DepositResponse:
    """Deposit an asset and credit its stable value."""
    credited = await vault.deposit(
        caller, request.asset, request.amount, request.min_out, value=request.value
    )
    return DepositResponse(
        user=caller,
        asset=request.asset.lower(),
        amount=request.amount,
        credited=credited,
        balance=vault.get_balance(caller),
    )


@router.post("/deposits/preview", response_model=PreviewResponse)
async def preview_deposit(
    request: PreviewRequest,
    vault: StableVault = Depends(get_vault),
) -> PreviewResponse:
    """Estimate the credit for a deposit without executing it."""
    estimate = await vault.preview_deposit(request.asset, request.amount)
    return PreviewResponse(
        asset=request.asset.lower(),
        amount=request.amount,
        estimated_credit=estimate,
        remaining_capacity=vault.remaining_capacity,
    )


@router.post("/withdrawals", response_model=WithdrawalResponse)
async def withdraw(
    request: WithdrawalRequest,
    caller: str = Depends(get_caller),
    vault: StableVault = Depends(get_vault),
) -> WithdrawalResponse:
    """Withdraw the stable asset to the caller."""
    paid = await vault.withdraw(caller, request.amount)
    return WithdrawalResponse(user=caller, amount=paid, balance=vault.get_balance(caller))


@router.get("/balances/{user}", response_model=BalanceResponse)
async def get_balance(user: str, vault: StableVault = Depends(get_vault)) -> BalanceResponse:
    return BalanceResponse(
        user=user.lower(), asset=vault.stable_asset, balance=vault.get_balance(user)
    )


@router.get("/events")
async def list_events(
    user: Optional[str] = None,
    limit: int = Query(default=20, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    vault: StableVault = Depends(get_vault),
) -> dict:
    """Event history, newest first. Served from the event store when persistence is on."""
    if get_settings().persist_events:
        async with get_db() as session:
            repo = EventRepository(session)
            if user:
                events = await repo.get_user_events(user, limit=limit, offset=offset)
            else:
                events = await repo.get_recent_events(limit=limit, offset=offset)
        source = "store"
    else:
        events = list(vault.events.for_user(user) if user else vault.events)
        events = list(reversed(events))[offset : offset + limit]
        source = "memory"

    return {
        "source": source,
        "count": len(events),
        "events": [e.to_dict() for e in events],
    }


@router.post("/native")
async def send_native(
    request: NativeTransferRequest,
    caller: str = Depends(get_caller),
    vault: StableVault = Depends(get_vault),
) -> dict:
    """Plain native transfer to the ledger. Always rejected."""
    await vault.receive(caller, request.value)
    return {"accepted": True}
