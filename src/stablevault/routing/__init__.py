"""Routing: AMM router and token interfaces, the router facade, dry-run collaborators.

Components:
- AmmRouter / SwapAdapter: collaborator interfaces
- Token / TokenRegistry: token interface and safe-call wrappers
- RouterFacade: quotes and converts tokens into the stable asset
- DryRunRouter / SimulatedToken: in-process simulated collaborators
"""

from stablevault.routing.base import AmmRouter, SwapAdapter, build_stable_path, quote_output
from stablevault.routing.dry_run import DryRunRouter, SimulatedToken
from stablevault.routing.facade import RouterFacade
from stablevault.routing.tokens import (
    Token,
    TokenRegistry,
    safe_approve,
    safe_transfer,
    safe_transfer_from,
)

__all__ = [
    # Interfaces
    "AmmRouter",
    "SwapAdapter",
    "Token",
    "TokenRegistry",
    # Implementations
    "RouterFacade",
    "DryRunRouter",
    "SimulatedToken",
    # Helpers
    "build_stable_path",
    "quote_output",
    "safe_approve",
    "safe_transfer",
    "safe_transfer_from",
]
