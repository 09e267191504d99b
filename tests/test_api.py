"""Tests for the FastAPI endpoints."""

import pytest
from httpx import ASGITransport, AsyncClient

from conftest import ALICE, BOB, NOW
from stablevault.addresses import NATIVE_ASSET
from stablevault.api.app import create_app
from stablevault.config import get_settings
from stablevault.routing.factory import create_stack

settings = get_settings()
ADMIN = settings.admin_address
STABLE = settings.stable_asset
BASE = settings.base_asset


@pytest.fixture
async def test_app():
    """Create test application with a fresh in-memory event store."""
    app = create_app(create_stack(settings, clock=lambda: NOW))

    async with app.router.lifespan_context(app):
        yield app


@pytest.fixture
async def client(test_app):
    """Create async test client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def fund(client, account, asset=STABLE, amount=1000):
    """Mint and approve the vault through the dry-run endpoints."""
    response = await client.post(
        "/api/v1/dry-run/mint", json={"asset": asset, "account": account, "amount": amount}
    )
    assert response.status_code == 200
    response = await client.post(
        "/api/v1/dry-run/approve",
        json={"asset": asset, "amount": amount},
        headers={"X-Account": account},
    )
    assert response.status_code == 200


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    @pytest.mark.asyncio
    async def test_health_check(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "stablevault"

    @pytest.mark.asyncio
    async def test_detailed_health(self, client):
        response = await client.get("/health/detailed")

        assert response.status_code == 200
        data = response.json()
        assert "environment" in data["config"]
        assert data["ledger"]["simulated"] is True
        assert data["ledger"]["cap"] == settings.default_cap


class TestDepositEndpoints:
    """Deposits, previews and balances."""

    @pytest.mark.asyncio
    async def test_stable_deposit(self, client):
        await fund(client, ALICE)

        response = await client.post(
            "/api/v1/deposits",
            json={"asset": STABLE, "amount": 100},
            headers={"X-Account": ALICE},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["credited"] == 100
        assert data["balance"] == 100

        response = await client.get(f"/api/v1/balances/{ALICE}")
        assert response.json()["balance"] == 100

    @pytest.mark.asyncio
    async def test_native_deposit(self, client):
        response = await client.post(
            "/api/v1/deposits",
            json={"asset": NATIVE_ASSET, "amount": 5, "value": 5},
            headers={"X-Account": BOB},
        )

        assert response.status_code == 200
        assert response.json()["credited"] == 5

    @pytest.mark.asyncio
    async def test_base_asset_deposit(self, client):
        await fund(client, ALICE, asset=BASE, amount=50)

        response = await client.post(
            "/api/v1/deposits",
            json={"asset": BASE, "amount": 50},
            headers={"X-Account": ALICE},
        )

        assert response.status_code == 200
        assert response.json()["credited"] == 50

    @pytest.mark.asyncio
    async def test_zero_amount(self, client):
        response = await client.post(
            "/api/v1/deposits",
            json={"asset": STABLE, "amount": 0},
            headers={"X-Account": ALICE},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "input_error"

    @pytest.mark.asyncio
    async def test_missing_account_header(self, client):
        response = await client.post("/api/v1/deposits", json={"asset": STABLE, "amount": 1})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_over_cap(self, client):
        await fund(client, ALICE, amount=settings.default_cap + 1)

        response = await client.post(
            "/api/v1/deposits",
            json={"asset": STABLE, "amount": settings.default_cap + 1},
            headers={"X-Account": ALICE},
        )

        assert response.status_code == 409
        data = response.json()
        assert data["error"] == "capacity_error"
        assert data["remaining"] == settings.default_cap

    @pytest.mark.asyncio
    async def test_preview(self, client):
        response = await client.post(
            "/api/v1/deposits/preview", json={"asset": NATIVE_ASSET, "amount": 9}
        )

        assert response.status_code == 200
        assert response.json()["estimated_credit"] == 9

    @pytest.mark.asyncio
    async def test_unsolicited_native_rejected(self, client):
        response = await client.post(
            "/api/v1/native", json={"value": 1}, headers={"X-Account": ALICE}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "unsolicited_transfer"


class TestWithdrawalEndpoints:
    """Withdrawals and event history."""

    @pytest.mark.asyncio
    async def test_withdraw(self, client):
        await fund(client, ALICE)
        await client.post(
            "/api/v1/deposits", json={"asset": STABLE, "amount": 100}, headers={"X-Account": ALICE}
        )

        response = await client.post(
            "/api/v1/withdrawals", json={"amount": 30}, headers={"X-Account": ALICE}
        )

        assert response.status_code == 200
        assert response.json()["balance"] == 70

    @pytest.mark.asyncio
    async def test_withdraw_over_balance(self, client):
        response = await client.post(
            "/api/v1/withdrawals", json={"amount": 1}, headers={"X-Account": BOB}
        )

        assert response.status_code == 409
        data = response.json()
        assert data["error"] == "balance_error"
        assert data["have"] == 0

    @pytest.mark.asyncio
    async def test_event_history_from_store(self, client):
        await fund(client, ALICE)
        await client.post(
            "/api/v1/deposits", json={"asset": STABLE, "amount": 100}, headers={"X-Account": ALICE}
        )
        await client.post(
            "/api/v1/withdrawals", json={"amount": 10}, headers={"X-Account": ALICE}
        )

        response = await client.get("/api/v1/events", params={"user": ALICE})

        assert response.status_code == 200
        data = response.json()
        assert data["source"] == "store"
        assert [e["kind"] for e in data["events"]] == ["withdrawal", "stable_deposit"]


class TestAdminEndpoints:
    """Role-gated endpoints."""

    @pytest.mark.asyncio
    async def test_stats(self, client):
        response = await client.get("/admin/stats", headers={"X-Account": ADMIN})

        assert response.status_code == 200
        data = response.json()
        assert data["cap"] == settings.default_cap
        assert data["admins"] == [ADMIN]
        assert data["dry_run"] is True

    @pytest.mark.asyncio
    async def test_stats_requires_admin(self, client):
        response = await client.get("/admin/stats", headers={"X-Account": ALICE})

        assert response.status_code == 403
        assert response.json()["error"] == "authorization_error"

    @pytest.mark.asyncio
    async def test_config_requires_admin(self, client):
        response = await client.get("/admin/config", headers={"X-Account": ALICE})
        assert response.status_code == 403

        response = await client.get("/admin/config", headers={"X-Account": ADMIN})
        assert response.status_code == 200
        assert response.json()["limits"]["default_cap"] == settings.default_cap

    @pytest.mark.asyncio
    async def test_set_cap_requires_admin(self, client):
        response = await client.put("/admin/cap", json={"cap": 5}, headers={"X-Account": ALICE})

        assert response.status_code == 403
        assert response.json()["error"] == "authorization_error"

    @pytest.mark.asyncio
    async def test_admin_sets_cap(self, client):
        response = await client.put("/admin/cap", json={"cap": 5}, headers={"X-Account": ADMIN})

        assert response.status_code == 200
        assert response.json()["cap"] == 5

    @pytest.mark.asyncio
    async def test_withdrawal_limit(self, client):
        await fund(client, ALICE)
        await client.post(
            "/api/v1/deposits", json={"asset": STABLE, "amount": 100}, headers={"X-Account": ALICE}
        )

        response = await client.put(
            "/admin/withdrawal-limit", json={"limit": 10}, headers={"X-Account": ADMIN}
        )
        assert response.status_code == 200

        response = await client.post(
            "/api/v1/withdrawals", json={"amount": 50}, headers={"X-Account": ALICE}
        )
        assert response.status_code == 409
        assert response.json()["error"] == "limit_error"

    @pytest.mark.asyncio
    async def test_swap_adapter(self, client):
        response = await client.put(
            "/admin/swap-adapter",
            json={"address": "0x1234000000000000000000000000000000000000"},
            headers={"X-Account": ADMIN},
        )
        assert response.status_code == 404

        response = await client.put(
            "/admin/swap-adapter",
            json={"address": settings.facade_address},
            headers={"X-Account": ADMIN},
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_swap_adapter_checks_role_before_lookup(self, client):
        response = await client.put(
            "/admin/swap-adapter",
            json={"address": "0x1234000000000000000000000000000000000000"},
            headers={"X-Account": ALICE},
        )

        assert response.status_code == 403
        assert response.json()["error"] == "authorization_error"

    @pytest.mark.asyncio
    async def test_grant_and_revoke_role(self, client):
        response = await client.post(
            "/admin/roles/grant",
            json={"role": "operator", "account": BOB},
            headers={"X-Account": ADMIN},
        )
        assert response.status_code == 200
        assert response.json()["changed"] is True

        response = await client.put(
            "/admin/withdrawal-limit", json={"limit": 10}, headers={"X-Account": BOB}
        )
        assert response.status_code == 200

        response = await client.post(
            "/admin/roles/revoke",
            json={"role": "operator", "account": BOB},
            headers={"X-Account": ADMIN},
        )
        assert response.json()["changed"] is True

        response = await client.put(
            "/admin/withdrawal-limit", json={"limit": 20}, headers={"X-Account": BOB}
        )
        assert response.status_code == 403
