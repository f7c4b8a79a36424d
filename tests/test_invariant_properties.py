"""Property-based tests for gateway invariants.

Random statements, amounts and submission sequences; the invariants must
hold for every one of them.
"""

from __future__ import annotations

import asyncio
import datetime
from decimal import Decimal

from conftest import make_account
from hypothesis import given, settings
from hypothesis import strategies as st

from finance_gateway.gateway.normalization import build_statement, make_entry, to_minor_units
from finance_gateway.gateway.types import (
    DateRange,
    Direction,
    TransferMethod,
    TransferRequest,
)
from finance_gateway.providers import ProviderRejection, SandboxProvider

JAN = DateRange(datetime.date(2025, 1, 1), datetime.date(2025, 1, 31))

days = st.dates(min_value=datetime.date(2024, 12, 15), max_value=datetime.date(2025, 2, 15))
raw_entries = st.lists(
    st.tuples(days, st.integers(min_value=-10**9, max_value=10**9), st.sampled_from(list(Direction))),
    max_size=40,
)


class TestStatementProperties:
    @given(raw_entries)
    def test_summary_matches_entries(self, raw):
        entries = [
            make_entry(date=day, description="x", amount_minor_units=amount, direction=direction)
            for day, amount, direction in raw
        ]

        statement = build_statement(JAN, entries)

        kept = statement.entries
        credits = sum(e.amount_minor_units for e in kept if e.direction == Direction.CREDIT)
        debits = -sum(e.amount_minor_units for e in kept if e.direction == Direction.DEBIT)
        assert statement.summary.count == len(kept)
        assert statement.summary.total_credits == credits
        assert statement.summary.total_debits == debits
        assert statement.summary.net == credits - debits
        assert all(JAN.contains(e.date) for e in kept)
        assert [e.date for e in kept] == sorted(e.date for e in kept)
        assert len(kept) == sum(1 for day, _, _ in raw if JAN.contains(day))

    @given(st.integers(min_value=-10**12, max_value=10**12))
    def test_minor_units_exact(self, cents):
        major = Decimal(cents) / 100
        assert to_minor_units(major) == cents
        assert to_minor_units(str(major)) == cents


class TestTransferProperties:
    @settings(max_examples=50, deadline=None)
    @given(
        st.lists(
            st.tuples(st.sampled_from(["t1", "t2", "t3", "t4"]), st.integers(min_value=1, max_value=5000)),
            max_size=20,
        )
    )
    def test_each_token_moves_money_once(self, submissions):
        provider = SandboxProvider()
        account = make_account()
        provider.seed_balance(account.account_id, 8000)
        first_amount: dict[str, int] = {}
        attempts = 0

        async def run() -> None:
            nonlocal attempts
            for token, amount in submissions:
                if token not in first_amount:
                    attempts += 1
                request = TransferRequest(TransferMethod.INSTANT, amount, token, destination="k")
                try:
                    await provider.execute_transfer(account, request)
                except ProviderRejection:
                    continue
                first_amount.setdefault(token, amount)

        asyncio.run(run())

        available = provider.ledger(account.account_id).available
        assert available == 8000 - sum(first_amount.values())
        assert available >= 0
        assert provider.calls.count(("transfer", account.account_id)) == attempts
