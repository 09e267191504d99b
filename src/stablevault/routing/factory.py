"""Factory for wiring the router, facade and vault from settings.

Only the dry-run collaborators ship in-process; live routers and tokens are
injected by the deployment. Without them the factory falls back to the
simulated stack, the same way quotes fall back to simulated providers.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from stablevault.access.roles import Role
from stablevault.config import Settings, get_settings
from stablevault.ledger.engine import StableVault
from stablevault.routing.base import AmmRouter, SwapAdapter
from stablevault.routing.dry_run import DryRunRouter, SimulatedToken
from stablevault.routing.facade import RouterFacade
from stablevault.routing.tokens import TokenRegistry

logger = logging.getLogger(__name__)

DRY_RUN_ROUTER_ADDRESS = "0xd1ce000000000000000000000000000000000001"


@dataclass
class VaultStack:
    """Everything a running vault needs, built once at startup."""

    vault: StableVault
    router: AmmRouter
    tokens: TokenRegistry
    adapters: dict[str, SwapAdapter] = field(default_factory=dict)
    simulated: bool = False

    def get_adapter(self, address: str) -> Optional[SwapAdapter]:
        return self.adapters.get(address.lower())

    async def restore_simulated_custody(self) -> int:
        """Mint the stable asset the vault owes but no longer holds.

        Simulated tokens live in memory, so after a restart a replayed ledger
        would have balances with nothing behind them. Live stacks are left
        alone.

        Returns:
            Amount minted
        """
        if not self.simulated:
            return 0
        stable = self.tokens.get(self.vault.stable_asset)
        held = await stable.balance_of(self.vault.address)
        shortfall = self.vault.total_deposits - held
        if shortfall <= 0:
            return 0
        stable.mint(self.vault.address, shortfall)
        logger.warning(
            f"Dry-run: minted {shortfall} simulated stable to {self.vault.address} "
            f"to back replayed balances"
        )
        return shortfall


def create_dry_run_router(
    settings: Optional[Settings] = None,
    clock: Optional[Callable[[], int]] = None,
) -> tuple[DryRunRouter, TokenRegistry]:
    """Create simulated stable/base tokens and a 1:1 router holding stable liquidity."""
    settings = settings or get_settings()

    stable = SimulatedToken(settings.stable_asset, symbol="USDT")
    base = SimulatedToken(settings.base_asset, symbol="WNATIVE")
    tokens = TokenRegistry([stable, base])

    router = DryRunRouter(
        address=DRY_RUN_ROUTER_ADDRESS,
        tokens=tokens,
        base_asset=base.address,
        clock=clock,
    )
    stable.mint(router.address, settings.dry_run_stable_liquidity)
    return router, tokens


def create_swap_adapter(
    router: AmmRouter,
    tokens: TokenRegistry,
    settings: Optional[Settings] = None,
    clock: Optional[Callable[[], int]] = None,
) -> RouterFacade:
    settings = settings or get_settings()
    return RouterFacade(
        router=router,
        tokens=tokens,
        stable_asset=settings.stable_asset,
        address=settings.facade_address,
        clock=clock,
    )


def create_vault(
    router: AmmRouter,
    tokens: TokenRegistry,
    settings: Optional[Settings] = None,
    swap_adapter: Optional[SwapAdapter] = None,
    clock: Optional[Callable[[], int]] = None,
) -> StableVault:
    """Create a vault with the configured admin (and optional extra operator)."""
    settings = settings or get_settings()

    vault = StableVault(
        router=router,
        tokens=tokens,
        stable_asset=settings.stable_asset,
        address=settings.vault_address,
        admin=settings.admin_address,
        cap=settings.default_cap,
        swap_adapter=swap_adapter,
        deadline_seconds=settings.swap_deadline_seconds,
        guard_timeout=settings.guard_timeout_seconds or None,
        clock=clock,
    )
    if settings.operator_address:
        vault.access.apply(Role.OPERATOR, settings.operator_address, granted=True)

    logger.info(
        f"Vault {vault.address} ready: stable={vault.stable_asset}, cap={vault.cap}, "
        f"router={router.address}, adapter={swap_adapter.address if swap_adapter else None}"
    )
    return vault


def create_stack(
    settings: Optional[Settings] = None,
    router: Optional[AmmRouter] = None,
    tokens: Optional[TokenRegistry] = None,
    clock: Optional[Callable[[], int]] = None,
) -> VaultStack:
    """Build the full stack.

    Args:
        settings: Settings (cached settings if omitted)
        router: Live router; requires tokens as well
        tokens: Live token registry
        clock: Clock shared by vault, facade and router

    Returns:
        VaultStack with the facade installed as swap adapter
    """
    settings = settings or get_settings()
    simulated = router is None or tokens is None

    if simulated:
        if not settings.dry_run:
            logger.warning("No live router configured - falling back to dry-run router")
        router, tokens = create_dry_run_router(settings, clock=clock)

    adapter = create_swap_adapter(router, tokens, settings, clock=clock)
    vault = create_vault(router, tokens, settings, swap_adapter=adapter, clock=clock)

    return VaultStack(
        vault=vault,
        router=router,
        tokens=tokens,
        adapters={adapter.address: adapter},
        simulated=simulated,
    )
