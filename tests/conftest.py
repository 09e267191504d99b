"""Pytest configuration and fixtures."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Awaitable, Callable, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DEBUG"] = "false"
os.environ["DRY_RUN"] = "true"
os.environ["PERSIST_EVENTS"] = "true"
os.environ["OPERATOR_ADDRESS"] = ""

from stablevault.ledger.engine import StableVault
from stablevault.ledger.models import Base
from stablevault.routing.dry_run import DryRunRouter, SimulatedToken
from stablevault.routing.facade import RouterFacade
from stablevault.routing.tokens import TokenRegistry

NOW = 1_700_000_000

STABLE = "0x55d398326f99059ff775485246999027b3197955"
BASE = "0xbb4cdb9cbd36b01bd1cbaebf2de08d9173bc095c"
TOKEN = "0x7070000000000000000000000000000000000001"
ROUTER = "0xd1ce000000000000000000000000000000000001"
VAULT = "0x5afe000000000000000000000000000000000001"
FACADE = "0x5afe000000000000000000000000000000000002"
ADMIN = "0xad00000000000000000000000000000000000001"
ALICE = "0xa11ce00000000000000000000000000000000001"
BOB = "0xb0b0000000000000000000000000000000000002"

ROUTER_LIQUIDITY = 10**24


class HookedToken(SimulatedToken):
    """Simulated token that can call back into other code before moving funds."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.on_move: Optional[Callable[[str, str, int], Awaitable[None]]] = None

    async def transfer(self, sender, recipient, amount):
        if self.on_move:
            await self.on_move(sender, recipient, amount)
        return await super().transfer(sender, recipient, amount)

    async def transfer_from(self, spender, owner, recipient, amount):
        if self.on_move:
            await self.on_move(owner, recipient, amount)
        return await super().transfer_from(spender, owner, recipient, amount)


@pytest.fixture
def clock() -> Callable[[], int]:
    return lambda: NOW


@pytest.fixture
def stable() -> HookedToken:
    return HookedToken(STABLE, symbol="USDT")


@pytest.fixture
def base() -> HookedToken:
    return HookedToken(BASE, symbol="WBNB")


@pytest.fixture
def token() -> HookedToken:
    return HookedToken(TOKEN, symbol="CAKE")


@pytest.fixture
def tokens(stable, base, token) -> TokenRegistry:
    return TokenRegistry([stable, base, token])


@pytest.fixture
def router(tokens, stable, clock) -> DryRunRouter:
    """1:1 router holding stable liquidity."""
    router = DryRunRouter(ROUTER, tokens, BASE, clock=clock)
    stable.mint(router.address, ROUTER_LIQUIDITY)
    return router


@pytest.fixture
def facade(router, tokens, clock) -> RouterFacade:
    return RouterFacade(router, tokens, STABLE, FACADE, clock=clock)


@pytest.fixture
def vault(router, tokens, clock) -> StableVault:
    return StableVault(
        router=router,
        tokens=tokens,
        stable_asset=STABLE,
        address=VAULT,
        admin=ADMIN,
        cap=1_000_000,
        clock=clock,
    )


@pytest_asyncio.fixture
async def funded(stable, token, base):
    """Alice and Bob hold 1000 of each token and have approved the vault."""
    for account in (ALICE, BOB):
        for t in (stable, token, base):
            t.mint(account, 1000)
            await t.approve(account, VAULT, 1000)
    return stable, token, base


@pytest_asyncio.fixture
async def db_engine():
    """Create in-memory database engine for testing."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for testing."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def session_scope(session_factory):
    """Committing session scope bound to the test engine."""

    @asynccontextmanager
    async def scope():
        async with session_factory() as session:
            yield session
            await session.commit()

    return scope
