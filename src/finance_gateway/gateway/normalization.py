"""Normalization helpers shared by provider adapters.

Providers disagree on money representation (decimal reais vs. integer
cents), date formats and debit/credit markers. Adapters run every value
through these helpers so the common model stays uniform.
"""

from __future__ import annotations

import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable

from finance_gateway.gateway.types import (
    DateRange,
    Direction,
    Statement,
    StatementEntry,
    StatementSummary,
)

_CENT = Decimal("0.01")

# Date layouts seen across provider payloads, tried in order
DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d.%m.%Y", "%d%m%Y")

DEBIT_MARKERS = {"D", "DEBIT", "DEBITO", "DÉBITO", "SAIDA", "OUT"}
CREDIT_MARKERS = {"C", "CREDIT", "CREDITO", "CRÉDITO", "ENTRADA", "IN"}


def to_minor_units(value: Any) -> int:
    """Convert a major-unit amount (e.g. ``"12.34"`` reais) to integer cents.

    Floats are routed through ``str`` so binary artefacts never leak in.
    Raises ValueError for anything that is not a finite number.
    """
    if value is None or isinstance(value, bool):
        raise ValueError(f"Not a monetary amount: {value!r}")
    try:
        amount = Decimal(str(value)) if not isinstance(value, Decimal) else value
    except InvalidOperation as exc:
        raise ValueError(f"Not a monetary amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Not a monetary amount: {value!r}")
    return int((amount.quantize(_CENT, rounding=ROUND_HALF_UP) * 100).to_integral_value())


def ensure_minor_units(value: Any) -> int:
    """Validate an amount that a provider already reports in cents."""
    if isinstance(value, bool):
        raise ValueError(f"Not an integer amount: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, Decimal) and value == value.to_integral_value():
        return int(value)
    if isinstance(value, str) and value.lstrip("-").isdigit():
        return int(value)
    raise ValueError(f"Not an integer amount: {value!r}")


def parse_date(value: Any) -> datetime.date:
    """Parse a provider date (ISO, ``dd/mm/yyyy``, ``dd.mm.yyyy``, ``ddmmyyyy``).

    Timestamps are truncated to their calendar date.
    """
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, int):
        value = f"{value:08d}"
    if not isinstance(value, str) or not value:
        raise ValueError(f"Not a date: {value!r}")
    text = value.strip()
    if "T" in text:
        text = text.split("T", 1)[0]
    for fmt in DATE_FORMATS:
        try:
            return datetime.datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Unrecognized date format: {value!r}")


def direction_from_marker(marker: Any) -> Direction:
    """Map a provider debit/credit indicator to a Direction."""
    text = str(marker or "").strip().upper()
    if text in DEBIT_MARKERS:
        return Direction.DEBIT
    if text in CREDIT_MARKERS:
        return Direction.CREDIT
    raise ValueError(f"Unknown debit/credit marker: {marker!r}")


def make_entry(
    *,
    date: Any,
    description: Any,
    amount_minor_units: int,
    direction: Direction,
    reference: Any = None,
) -> StatementEntry:
    """Build an entry whose sign is forced to agree with ``direction``."""
    magnitude = abs(amount_minor_units)
    signed = magnitude if direction == Direction.CREDIT else -magnitude
    return StatementEntry(
        date=parse_date(date),
        description=str(description or "").strip(),
        amount_minor_units=signed,
        direction=direction,
        reference=str(reference) if reference not in (None, "") else None,
    )


def build_statement(date_range: DateRange, entries: Iterable[StatementEntry]) -> Statement:
    """Clamp entries to the inclusive range, sort ascending, and summarize.

    Sorting is stable so same-day entries keep provider order. The
    summary is always computed from the returned entries.
    """
    kept = sorted(
        (e for e in entries if date_range.contains(e.date)),
        key=lambda e: e.date,
    )
    return Statement(
        date_range=date_range,
        entries=kept,
        summary=StatementSummary.from_entries(kept),
    )
