"""Tests for the common data model and normalization helpers."""

import datetime
from decimal import Decimal

import pytest

from finance_gateway.gateway.normalization import (
    build_statement,
    direction_from_marker,
    ensure_minor_units,
    make_entry,
    parse_date,
    to_minor_units,
)
from finance_gateway.gateway.types import (
    BankAccountDetails,
    DateRange,
    Direction,
    StatementEntry,
    StatementSummary,
    TransferMethod,
    TransferRequest,
)


def d(day: int, month: int = 1) -> datetime.date:
    return datetime.date(2025, month, day)


class TestMinorUnits:
    """Test money conversion into integer cents."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("12.34", 1234),
            (Decimal("0.10"), 10),
            (10, 1000),
            (0.1, 10),
            ("-25.5", -2550),
            ("1.005", 101),
        ],
    )
    def test_to_minor_units(self, value, expected):
        assert to_minor_units(value) == expected

    @pytest.mark.parametrize("value", [None, True, "abc", "NaN", float("inf")])
    def test_to_minor_units_rejects(self, value):
        with pytest.raises(ValueError):
            to_minor_units(value)

    def test_ensure_minor_units(self):
        assert ensure_minor_units(1500) == 1500
        assert ensure_minor_units("1500") == 1500
        assert ensure_minor_units(Decimal("1500")) == 1500

    @pytest.mark.parametrize("value", [False, 15.5, Decimal("15.5"), "15.50"])
    def test_ensure_minor_units_rejects_fractions(self, value):
        with pytest.raises(ValueError):
            ensure_minor_units(value)


class TestDatesAndMarkers:
    @pytest.mark.parametrize(
        "value",
        ["2025-01-05", "05/01/2025", "05.01.2025", "05012025", "2025-01-05T23:59:59-03:00"],
    )
    def test_parse_date_formats(self, value):
        assert parse_date(value) == d(5)

    def test_parse_date_truncates_datetimes(self):
        stamp = datetime.datetime(2025, 1, 5, 18, 30)
        assert parse_date(stamp) == d(5)

    def test_parse_date_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_date("yesterday")

    @pytest.mark.parametrize("marker", ["D", "debit", "DEBITO", "saida"])
    def test_debit_markers(self, marker):
        assert direction_from_marker(marker) == Direction.DEBIT

    @pytest.mark.parametrize("marker", ["C", "credit", "CREDITO", "entrada"])
    def test_credit_markers(self, marker):
        assert direction_from_marker(marker) == Direction.CREDIT

    def test_unknown_marker(self):
        with pytest.raises(ValueError):
            direction_from_marker("X")


class TestStatementEntries:
    def test_sign_must_agree_with_direction(self):
        with pytest.raises(ValueError):
            StatementEntry(d(1), "bad", -100, Direction.CREDIT)
        with pytest.raises(ValueError):
            StatementEntry(d(1), "bad", 100, Direction.DEBIT)

    def test_make_entry_forces_sign(self):
        """Providers that report debits as positive values get normalized."""
        entry = make_entry(
            date="2025-01-10",
            description="  Fee  ",
            amount_minor_units=2500,
            direction=Direction.DEBIT,
            reference="",
        )
        assert entry.amount_minor_units == -2500
        assert entry.description == "Fee"
        assert entry.reference is None

    def test_summary_from_entries(self):
        entries = [
            StatementEntry.credit(d(5), "Sale", 10000),
            StatementEntry.debit(d(10), "Fee", 2500),
            StatementEntry.debit(d(31), "Transfer", 500),
        ]
        summary = StatementSummary.from_entries(entries)
        assert summary == StatementSummary(count=3, total_credits=10000, total_debits=3000, net=7000)

    def test_empty_summary(self):
        assert StatementSummary.from_entries([]) == StatementSummary(0, 0, 0, 0)


class TestBuildStatement:
    """Test clamping, ordering and summarizing."""

    def test_clamps_to_inclusive_range_and_sorts(self):
        entries = [
            StatementEntry.debit(d(31), "late", 500),
            StatementEntry.credit(d(1, month=2), "outside", 999),
            StatementEntry.credit(d(1), "first day", 100),
            StatementEntry.debit(datetime.date(2024, 12, 31), "before", 1),
        ]
        statement = build_statement(DateRange(d(1), d(31)), entries)

        assert [e.description for e in statement.entries] == ["first day", "late"]
        assert statement.summary.count == 2
        assert statement.summary.net == -400

    def test_same_day_entries_keep_provider_order(self):
        entries = [
            StatementEntry.credit(d(3), "a", 1),
            StatementEntry.credit(d(2), "b", 1),
            StatementEntry.credit(d(3), "c", 1),
        ]
        statement = build_statement(DateRange(d(1), d(5)), entries)
        assert [e.description for e in statement.entries] == ["b", "a", "c"]

    def test_single_day_range(self):
        entries = [StatementEntry.credit(d(5), "only", 10), StatementEntry.credit(d(6), "next", 10)]
        statement = build_statement(DateRange(d(5), d(5)), entries)
        assert len(statement.entries) == 1


class TestDateRange:
    def test_days_counts_both_ends(self):
        assert DateRange(d(1), d(1)).days == 1
        assert DateRange(d(1), d(31)).days == 31

    def test_ordering(self):
        assert DateRange(d(1), d(2)).is_ordered()
        assert not DateRange(d(2), d(1)).is_ordered()


class TestTransferRequest:
    def test_new_mints_uuid4_tokens(self):
        first = TransferRequest.new(method=TransferMethod.INSTANT, amount_minor_units=100, destination="k")
        second = TransferRequest.new(method=TransferMethod.INSTANT, amount_minor_units=100, destination="k")
        assert first.idempotency_token != second.idempotency_token
        assert len(first.idempotency_token) == 36

    def test_fingerprint_ignores_token_and_description(self):
        a = TransferRequest(TransferMethod.INSTANT, 100, "t1", destination="k", description="x")
        b = TransferRequest(TransferMethod.INSTANT, 100, "t2", destination="k", description="y")
        assert a.fingerprint() == b.fingerprint()

    def test_fingerprint_changes_with_money_moving_fields(self):
        base = TransferRequest(TransferMethod.INSTANT, 100, "t", destination="k")
        assert base.fingerprint() != TransferRequest(TransferMethod.INSTANT, 101, "t", destination="k").fingerprint()
        assert base.fingerprint() != TransferRequest(TransferMethod.INSTANT, 100, "t", destination="j").fingerprint()

    def test_fingerprint_covers_bank_account(self):
        bank = BankAccountDetails("001", "1234", "98765", "0", "Ana", "12345678900")
        other = BankAccountDetails("001", "1234", "98766", "0", "Ana", "12345678900")
        a = TransferRequest(TransferMethod.WIRE, 100, "t", bank_account=bank)
        b = TransferRequest(TransferMethod.WIRE, 100, "t", bank_account=other)
        assert a.fingerprint() != b.fingerprint()
