"""Admin and operator endpoints.

Authorization is enforced by the ledger itself from the X-Account caller.
Read-only views and lookups that precede a ledger call are admin-gated here.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from stablevault.access.roles import Role
from stablevault.api.deps import get_caller, get_stack, get_vault, require_admin
from stablevault.config import get_settings
from stablevault.ledger.engine import StableVault
from stablevault.routing.factory import VaultStack

router = APIRouter(prefix="/admin", tags=["admin"])


class CapUpdate(BaseModel):
    cap: int = Field(..., ge=0, description="New ceiling on aggregate deposits")


class WithdrawalLimitUpdate(BaseModel):
    limit: int = Field(..., ge=0, description="Per-withdrawal ceiling, 0 = unlimited")


class SwapAdapterUpdate(BaseModel):
    address: str = Field(..., min_length=1, max_length=64)


class RoleChange(BaseModel):
    role: Role
    account: str = Field(..., min_length=1, max_length=64)


class LedgerStats(BaseModel):
    """Ledger statistics."""

    address: str
    stable_asset: str
    router: str
    swap_adapter: Optional[str]
    total_deposits: int
    cap: int
    remaining_capacity: int
    withdrawal_limit: int
    deposit_count: int
    withdrawal_count: int
    holders: int
    events: int
    admins: list[str]
    operators: list[str]
    dry_run: bool


@router.get("/stats", response_model=LedgerStats)
async def get_stats(
    caller: str = Depends(require_admin),
    stack: VaultStack = Depends(get_stack),
) -> LedgerStats:
    """Get ledger statistics."""
    return LedgerStats(**stack.vault.stats(), dry_run=stack.simulated)


@router.put("/cap")
async def set_cap(
    update: CapUpdate,
    caller: str = Depends(get_caller),
    vault: StableVault = Depends(get_vault),
) -> dict:
    await vault.set_cap(caller, update.cap)
    return {"cap": vault.cap, "remaining_capacity": vault.remaining_capacity}


@router.put("/withdrawal-limit")
async def set_withdrawal_limit(
    update: WithdrawalLimitUpdate,
    caller: str = Depends(get_caller),
    vault: StableVault = Depends(get_vault),
) -> dict:
    await vault.set_withdrawal_limit(caller, update.limit)
    return {"withdrawal_limit": vault.withdrawal_limit}


@router.put("/swap-adapter")
async def set_swap_adapter(
    update: SwapAdapterUpdate,
    caller: str = Depends(require_admin),
    stack: VaultStack = Depends(get_stack),
) -> dict:
    """Install one of the adapters known to this deployment."""
    adapter = stack.get_adapter(update.address)
    if adapter is None:
        raise HTTPException(status_code=404, detail=f"Unknown swap adapter: {update.address}")
    await stack.vault.set_swap_adapter(caller, adapter)
    return {"swap_adapter": adapter.address}


@router.post("/roles/grant")
async def grant_role(
    change: RoleChange,
    caller: str = Depends(get_caller),
    vault: StableVault = Depends(get_vault),
) -> dict:
    changed = await vault.grant_role(caller, change.role, change.account)
    return {"role": change.role.value, "account": change.account.lower(), "changed": changed}


@router.post("/roles/revoke")
async def revoke_role(
    change: RoleChange,
    caller: str = Depends(get_caller),
    vault: StableVault = Depends(get_vault),
) -> dict:
    changed = await vault.revoke_role(caller, change.role, change.account)
    return {"role": change.role.value, "account": change.account.lower(), "changed": changed}


@router.get("/config")
async def get_config(caller: str = Depends(require_admin)) -> dict:
    """Settings with secrets redacted."""
    return get_settings().get_safe_dict()
