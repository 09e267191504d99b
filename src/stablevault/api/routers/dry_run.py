"""Dry-run helpers: fund accounts and set allowances on simulated tokens."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from stablevault.addresses import normalize_address, require_address, require_amount
from stablevault.api.deps import get_caller, get_stack
from stablevault.routing.dry_run import SimulatedToken
from stablevault.routing.factory import VaultStack

router = APIRouter(prefix="/api/v1/dry-run", tags=["dry-run"])


class MintRequest(BaseModel):
    asset: str = Field(..., min_length=1, max_length=64)
    account: str = Field(..., min_length=1, max_length=64)
    amount: int


class ApproveRequest(BaseModel):
    asset: str = Field(..., min_length=1, max_length=64)
    amount: int = Field(..., ge=0)
    spender: Optional[str] = Field(default=None, description="Defaults to the vault")


def _simulated_token(stack: VaultStack, asset: str) -> SimulatedToken:
    if not stack.simulated:
        raise HTTPException(status_code=404, detail="Dry-run endpoints are disabled")
    token = stack.tokens.get(require_address(asset, "asset"))
    if not isinstance(token, SimulatedToken):
        raise HTTPException(status_code=400, detail=f"{asset} is not a simulated token")
    return token


@router.post("/mint")
async def mint(request: MintRequest, stack: VaultStack = Depends(get_stack)) -> dict:
    """Credit simulated tokens to an account."""
    token = _simulated_token(stack, request.asset)
    account = require_address(request.account, "account")
    token.mint(account, require_amount(request.amount))
    return {
        "asset": token.address,
        "account": account,
        "balance": await token.balance_of(account),
    }


@router.post("/approve")
async def approve(
    request: ApproveRequest,
    caller: str = Depends(get_caller),
    stack: VaultStack = Depends(get_stack),
) -> dict:
    """Approve a spender (the vault by default) on behalf of the caller."""
    token = _simulated_token(stack, request.asset)
    spender = (
        require_address(request.spender, "spender") if request.spender else stack.vault.address
    )
    await token.approve(caller, spender, request.amount)
    return {
        "asset": token.address,
        "owner": normalize_address(caller),
        "spender": spender,
        "allowance": await token.allowance(caller, spender),
    }
