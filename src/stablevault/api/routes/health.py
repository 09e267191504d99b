"""Health check endpoints."""

from fastapi import APIRouter, Depends

from stablevault import __version__
from stablevault.api.deps import get_stack
from stablevault.config import get_settings
from stablevault.routing.factory import VaultStack

router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy", "service": "stablevault"}


@router.get("/health/detailed")
async def detailed_health(stack: VaultStack = Depends(get_stack)):
    """Detailed health check with configuration and ledger info."""
    settings = get_settings()
    vault = stack.vault
    return {
        "status": "healthy",
        "service": "stablevault",
        "version": __version__,
        "config": settings.get_safe_dict(),
        "ledger": {
            "simulated": stack.simulated,
            "events": len(vault.events),
            "guard_locked": vault.guard.locked,
            "total_deposits": vault.total_deposits,
            "cap": vault.cap,
        },
    }
