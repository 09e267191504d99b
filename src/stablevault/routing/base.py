"""Abstract interfaces for the AMM router and swap adapters."""

import logging
from abc import ABC, abstractmethod

from stablevault.addresses import normalize_address
from stablevault.errors import RouteError, VaultError

logger = logging.getLogger(__name__)


class AmmRouter(ABC):
    """Constant-product style router collaborator (Uniswap V2 shaped).

    Quotes and swaps return the amount at every hop of ``path``; the last
    element is the output.
    """

    @property
    @abstractmethod
    def address(self) -> str:
        """Router address (spender for allowances)."""
        pass

    @abstractmethod
    async def base_asset(self) -> str:
        """Base pairing asset (wrapped native currency)."""
        pass

    @abstractmethod
    async def quote(self, amount_in: int, path: list[str]) -> list[int]:
        """Get amounts out for each hop of path."""
        pass

    @abstractmethod
    async def swap_exact(
        self,
        caller: str,
        amount_in: int,
        amount_out_min: int,
        path: list[str],
        recipient: str,
        deadline: int,
    ) -> list[int]:
        """Swap an exact amount of path[0], pulled from caller, into path[-1]."""
        pass

    @abstractmethod
    async def swap_exact_native(
        self,
        caller: str,
        value: int,
        amount_out_min: int,
        path: list[str],
        recipient: str,
        deadline: int,
    ) -> list[int]:
        """Swap attached native currency into path[-1]. path[0] must be the base asset."""
        pass


class SwapAdapter(ABC):
    """Replaceable component that previews and executes conversions to the stable asset."""

    @property
    @abstractmethod
    def address(self) -> str:
        pass

    @abstractmethod
    async def preview_to_stable(self, token_in: str, amount_in: int) -> int:
        """Quoted stable output for amount_in of token_in."""
        pass

    @abstractmethod
    async def swap_to_stable(
        self,
        caller: str,
        token_in: str,
        amount_in: int,
        min_out: int,
        recipient: str,
    ) -> int:
        """Convert amount_in of token_in (pulled from caller) and deliver to recipient."""
        pass


def build_stable_path(token_in: str, base: str, stable: str) -> list[str]:
    """Path from token_in to the stable asset.

    Two hops when token_in is the base pairing asset, otherwise routed
    through the base asset.
    """
    token_in = normalize_address(token_in)
    base = normalize_address(base)
    stable = normalize_address(stable)
    if token_in == base:
        return [token_in, stable]
    return [token_in, base, stable]


async def quote_output(router: AmmRouter, amount_in: int, path: list[str]) -> int:
    """Last-leg output the router quotes for path (0 if it returns nothing).

    Raises:
        RouteError: If the router cannot price the path
    """
    try:
        amounts = await router.quote(amount_in, path)
    except VaultError:
        raise
    except Exception as e:
        logger.warning(f"Quote failed for path {' -> '.join(path)}: {type(e).__name__}: {e}")
        raise RouteError(f"No route for {' -> '.join(path)}: {e}", path=path) from e

    if not amounts:
        return 0
    return int(amounts[-1])
