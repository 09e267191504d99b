"""Shared FastAPI dependencies."""

from fastapi import Depends, Header, HTTPException, Request

from stablevault.access.roles import Role
from stablevault.ledger.engine import StableVault
from stablevault.routing.factory import VaultStack


def get_stack(request: Request) -> VaultStack:
    """Vault stack built by create_app()."""
    stack = getattr(request.app.state, "stack", None)
    if stack is None:
        raise HTTPException(status_code=503, detail="Ledger not initialized")
    return stack


def get_vault(stack: VaultStack = Depends(get_stack)) -> StableVault:
    return stack.vault


async def get_caller(x_account: str = Header(..., description="Acting account")) -> str:
    """Acting principal, set by the fronting gateway."""
    return x_account.strip().lower()


async def require_admin(
    caller: str = Depends(get_caller),
    vault: StableVault = Depends(get_vault),
) -> str:
    """Caller holding the admin role; AuthorizationError (403) otherwise."""
    vault.access.check_role(caller, Role.ADMIN)
    return caller
