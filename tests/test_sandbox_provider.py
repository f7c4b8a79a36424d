"""Tests for the in-memory sandbox provider."""

import datetime

import pytest
from conftest import make_account

from finance_gateway.gateway.capabilities import Capabilities, Operation
from finance_gateway.gateway.types import (
    DateRange,
    StatementEntry,
    TransferMethod,
    TransferRequest,
    TransferStatus,
)
from finance_gateway.providers import (
    DuplicateSubmission,
    InvalidRange,
    ProviderAuthError,
    ProviderRejection,
    ProviderResponseError,
    ProviderUnavailableError,
    SandboxProvider,
    UnsupportedByProvider,
)

pytestmark = pytest.mark.asyncio

JAN = DateRange(datetime.date(2025, 1, 1), datetime.date(2025, 1, 31))


def pix(amount: int = 5000, token: str = "abc") -> TransferRequest:
    return TransferRequest(TransferMethod.INSTANT, amount, token, destination="x@y")


class TestSandboxBalance:
    async def test_seeded_balance(self, sandbox):
        account = make_account()
        sandbox.seed_balance(account.account_id, 10000, pending=250, blocked=100)

        snapshot = await sandbox.fetch_balance(account)

        assert snapshot.available == 10000
        assert snapshot.pending == 250
        assert snapshot.blocked == 100
        assert snapshot.currency == "BRL"
        assert snapshot.fetched_at.tzinfo is not None

    async def test_unseeded_account_is_empty(self, sandbox):
        snapshot = await sandbox.fetch_balance(make_account())
        assert (snapshot.available, snapshot.pending) == (0, 0)

    async def test_capability_recheck(self):
        """The adapter refuses operations outside its own capability set."""
        provider = SandboxProvider(capabilities=Capabilities(statement_retrieval=True))
        with pytest.raises(UnsupportedByProvider) as exc_info:
            await provider.fetch_balance(make_account())
        assert exc_info.value.capability == "balance_inquiry"


class TestSandboxStatement:
    async def test_statement_clamped_to_range(self, sandbox):
        account = make_account()
        sandbox.seed_entries(
            account.account_id,
            [
                StatementEntry.credit(datetime.date(2025, 1, 5), "Sale", 10000),
                StatementEntry.credit(datetime.date(2025, 2, 1), "Next month", 50),
            ],
        )
        statement = await sandbox.fetch_statement(account, JAN)
        assert [e.description for e in statement.entries] == ["Sale"]

    async def test_inverted_range(self, sandbox):
        with pytest.raises(InvalidRange):
            await sandbox.fetch_statement(
                make_account(), DateRange(datetime.date(2025, 2, 1), datetime.date(2025, 1, 1))
            )
        assert sandbox.calls == []


class TestSandboxTransfers:
    async def test_transfer_debits_and_records_entry(self, sandbox):
        account = make_account()
        sandbox.seed_balance(account.account_id, 10000)

        result = await sandbox.execute_transfer(account, pix())

        assert result.status == TransferStatus.CONFIRMED
        assert result.external_id == "E1"
        assert result.amount_minor_units == 5000
        assert sandbox.ledger(account.account_id).available == 5000
        statement = await sandbox.fetch_statement(account, JAN)
        assert statement.summary.total_debits == 5000
        assert statement.entries[0].reference == "E1"

    async def test_repeated_token_returns_original(self, sandbox):
        account = make_account()
        sandbox.seed_balance(account.account_id, 10000)

        first = await sandbox.execute_transfer(account, pix())
        second = await sandbox.execute_transfer(account, pix())

        assert first == second
        assert sandbox.ledger(account.account_id).available == 5000
        assert sandbox.calls.count(("transfer", account.account_id)) == 1

    async def test_repeated_token_raises_when_configured(self):
        provider = SandboxProvider(raise_on_duplicate=True)
        account = make_account()
        provider.seed_balance(account.account_id, 10000)
        first = await provider.execute_transfer(account, pix())

        with pytest.raises(DuplicateSubmission) as exc_info:
            await provider.execute_transfer(account, pix())
        assert exc_info.value.original == first

    async def test_insufficient_funds(self, sandbox):
        account = make_account()
        sandbox.seed_balance(account.account_id, 100)
        with pytest.raises(ProviderRejection) as exc_info:
            await sandbox.execute_transfer(account, pix())
        assert exc_info.value.reason_code == "AM04"

    async def test_pending_until_settled(self):
        provider = SandboxProvider(auto_settle=False)
        account = make_account()
        provider.seed_balance(account.account_id, 10000)

        result = await provider.execute_transfer(account, pix())
        assert result.status == TransferStatus.PENDING

        provider.simulate_settlement(account.account_id, result.external_id)
        replay = await provider.execute_transfer(account, pix())
        assert replay.status == TransferStatus.CONFIRMED


class TestSandboxFailureInjection:
    async def test_outage(self, sandbox):
        sandbox.simulate_outage(Operation.BALANCE)
        with pytest.raises(ProviderUnavailableError):
            await sandbox.fetch_balance(make_account())

        sandbox.recover()
        await sandbox.fetch_balance(make_account())

    async def test_auth_rejection(self, sandbox):
        sandbox.simulate_auth_rejection()
        with pytest.raises(ProviderAuthError):
            await sandbox.fetch_statement(make_account(), JAN)

    async def test_garbled_response(self, sandbox):
        sandbox.simulate_garbled_response(Operation.STATEMENT)
        with pytest.raises(ProviderResponseError) as exc_info:
            await sandbox.fetch_statement(make_account(), JAN)
        assert exc_info.value.payload == {"unexpected": True}

    async def test_rejection(self, sandbox):
        account = make_account()
        sandbox.seed_balance(account.account_id, 10000)
        sandbox.simulate_rejection("compliance hold")
        with pytest.raises(ProviderRejection, match="compliance hold"):
            await sandbox.execute_transfer(account, pix())
        assert sandbox.ledger(account.account_id).available == 10000
