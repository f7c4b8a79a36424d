"""HTTP API tests over the sandbox-backed gateway."""

import datetime
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from conftest import TENANT
from httpx import ASGITransport, AsyncClient

from finance_gateway.api import create_app
from finance_gateway.gateway.capabilities import Operation
from finance_gateway.gateway.types import StatementEntry

pytestmark = pytest.mark.asyncio

HEADERS = {"X-Tenant-ID": TENANT}


@pytest_asyncio.fixture
async def client(gateway) -> AsyncGenerator[AsyncClient, None]:
    app = create_app(gateway=gateway)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


def pix_body(amount=5000, **extra):
    return {"method": "instant", "amount_minor_units": amount, "destination": "x@y.com", **extra}


class TestTenantHeader:
    async def test_missing_tenant(self, client):
        response = await client.get("/api/v1/accounts")
        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"

    async def test_blank_tenant(self, client):
        response = await client.get("/api/v1/accounts", headers={"X-Tenant-ID": "  "})
        assert response.status_code == 400


class TestAccountEndpoints:
    async def test_list_accounts(self, client):
        response = await client.get("/api/v1/accounts", headers=HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert [a["account_id"] for a in body] == ["acc-balance-only", "acc-full"]
        assert body[0]["category"] == "bank"
        assert body[0]["capabilities"]["balance_inquiry"] is True
        assert body[0]["capabilities"]["outbound_transfer"] is False

    async def test_balance(self, client, sandbox):
        sandbox.seed_balance("acc-full", 12345, pending=55)

        response = await client.get("/api/v1/accounts/acc-full/balance", headers=HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["available"] == 12345
        assert body["pending"] == 55
        assert body["currency"] == "BRL"

    async def test_other_tenant_account_is_not_found(self, client):
        response = await client.get("/api/v1/accounts/acc-other/balance", headers=HEADERS)
        assert response.status_code == 404
        assert response.json()["code"] == "account_not_found"

    async def test_provider_outage(self, client, sandbox):
        sandbox.simulate_outage(Operation.BALANCE)
        response = await client.get("/api/v1/accounts/acc-full/balance", headers=HEADERS)
        assert response.status_code == 503
        assert response.json()["code"] == "provider_unavailable"

    async def test_all_balances_report_failures_per_account(self, client, sandbox):
        sandbox.seed_balance("acc-full", 100)

        response = await client.get("/api/v1/accounts/balances", headers=HEADERS)

        assert response.status_code == 200
        by_id = {o["account_id"]: o for o in response.json()}
        assert by_id["acc-full"]["balance"]["available"] == 100
        assert by_id["acc-full"]["error"] is None
        assert by_id["acc-balance-only"]["balance"]["available"] == 0


class TestStatementEndpoint:
    async def test_statement(self, client, sandbox):
        sandbox.seed_entries(
            "acc-full",
            [
                StatementEntry.credit(datetime.date(2025, 1, 5), "Sale", 10000),
                StatementEntry.debit(datetime.date(2025, 1, 6), "Fee", 300),
            ],
        )

        response = await client.get(
            "/api/v1/accounts/acc-full/statement",
            params={"start": "2025-01-01", "end": "2025-01-31"},
            headers=HEADERS,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["summary"] == {"count": 2, "total_credits": 10000, "total_debits": 300, "net": 9700}
        assert body["entries"][1]["direction"] == "debit"
        assert body["entries"][1]["amount_minor_units"] == -300

    async def test_inverted_range(self, client):
        response = await client.get(
            "/api/v1/accounts/acc-full/statement",
            params={"start": "2025-02-01", "end": "2025-01-01"},
            headers=HEADERS,
        )
        assert response.status_code == 400

    async def test_malformed_date(self, client):
        response = await client.get(
            "/api/v1/accounts/acc-full/statement",
            params={"start": "yesterday", "end": "2025-01-01"},
            headers=HEADERS,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"

    async def test_capability_unsupported(self, client):
        response = await client.get(
            "/api/v1/accounts/acc-balance-only/statement",
            params={"start": "2025-01-01", "end": "2025-01-31"},
            headers=HEADERS,
        )
        assert response.status_code == 422
        assert response.json()["code"] == "capability_unsupported"


class TestTransferEndpoints:
    async def test_submit_is_idempotent(self, client, sandbox):
        sandbox.seed_balance("acc-full", 10000)
        headers = {**HEADERS, "Idempotency-Key": "key-1"}

        first = await client.post("/api/v1/accounts/acc-full/transfers", json=pix_body(), headers=headers)
        second = await client.post("/api/v1/accounts/acc-full/transfers", json=pix_body(), headers=headers)

        assert first.status_code == 200
        assert first.json() == second.json()
        assert first.json()["status"] == "confirmed"
        assert sandbox.ledger("acc-full").available == 5000

    async def test_token_required(self, client):
        response = await client.post(
            "/api/v1/accounts/acc-full/transfers", json=pix_body(), headers=HEADERS
        )
        assert response.status_code == 400

    async def test_header_and_body_tokens_must_match(self, client):
        response = await client.post(
            "/api/v1/accounts/acc-full/transfers",
            json=pix_body(idempotency_token="a"),
            headers={**HEADERS, "Idempotency-Key": "b"},
        )
        assert response.status_code == 400

    @pytest.mark.parametrize("amount", [0, -1, True, "100"])
    async def test_bad_amounts(self, client, amount):
        response = await client.post(
            "/api/v1/accounts/acc-full/transfers",
            json=pix_body(amount=amount, idempotency_token="tok"),
            headers=HEADERS,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"

    async def test_rejection(self, client, sandbox):
        sandbox.seed_balance("acc-full", 10)
        response = await client.post(
            "/api/v1/accounts/acc-full/transfers",
            json=pix_body(idempotency_token="tok"),
            headers=HEADERS,
        )
        assert response.status_code == 422
        assert response.json()["code"] == "transfer_rejected"

    async def test_transfer_record(self, client, sandbox):
        sandbox.seed_balance("acc-full", 10000)
        await client.post(
            "/api/v1/accounts/acc-full/transfers",
            json=pix_body(idempotency_token="tok"),
            headers=HEADERS,
        )

        response = await client.get("/api/v1/accounts/acc-full/transfers/tok", headers=HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["state"] == "confirmed"
        assert body["external_id"] == "E1"
        assert body["attempts"] == 1

    async def test_unknown_transfer(self, client):
        response = await client.get("/api/v1/accounts/acc-full/transfers/nope", headers=HEADERS)
        assert response.status_code == 404
        assert response.json()["code"] == "transfer_not_found"


class TestHealthEndpoints:
    async def test_health_lists_providers(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["providers"] == ["sandbox"]

    async def test_live(self, client):
        response = await client.get("/live")
        assert response.json() == {"status": "alive"}
