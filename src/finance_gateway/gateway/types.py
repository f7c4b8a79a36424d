"""Common data model shared by the facade and every provider adapter.

All monetary values are integers in minor currency units. Statement
ranges are calendar dates, never timestamps.
"""

from __future__ import annotations

import datetime
import hashlib
import json
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any

from finance_gateway.gateway.capabilities import Capabilities


class Environment(str, Enum):
    """Provider environment an account is configured against."""

    PRODUCTION = "production"
    SANDBOX = "sandbox"


class AccountCategory(str, Enum):
    """Kind of institution behind an account."""

    BANK = "bank"
    PSP = "psp"


class Direction(str, Enum):
    """Direction of a statement movement."""

    CREDIT = "credit"
    DEBIT = "debit"


class TransferMethod(str, Enum):
    """Outbound transfer rails."""

    INSTANT = "instant"  # key-addressed, pix-equivalent
    WIRE = "wire"  # bank-account-addressed, TED-equivalent


class TransferStatus(str, Enum):
    """Provider-reported outcome of a transfer."""

    CONFIRMED = "confirmed"
    PENDING = "pending"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Account:
    """A configured financial account.

    Read-only once onboarded; capabilities never change through a
    financial operation.
    """

    account_id: str
    tenant_id: str
    provider: str
    label: str
    environment: Environment
    category: AccountCategory
    capabilities: Capabilities
    external_ref: str | None = None
    active: bool = True

    @property
    def is_sandbox(self) -> bool:
        return self.environment == Environment.SANDBOX


@dataclass(frozen=True)
class BalanceSnapshot:
    """Point-in-time balance read. Never cached, no monotonicity."""

    available: int
    pending: int
    currency: str
    fetched_at: datetime.datetime
    blocked: int | None = None


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar date range."""

    start: datetime.date
    end: datetime.date

    @property
    def days(self) -> int:
        """Number of calendar days covered, both ends included."""
        return (self.end - self.start).days + 1

    def contains(self, day: datetime.date) -> bool:
        return self.start <= day <= self.end

    def is_ordered(self) -> bool:
        return self.start <= self.end


@dataclass(frozen=True)
class StatementEntry:
    """Single statement movement.

    ``amount_minor_units`` is signed (credits positive, debits negative)
    and must agree with ``direction``.
    """

    date: datetime.date
    description: str
    amount_minor_units: int
    direction: Direction
    reference: str | None = None

    def __post_init__(self) -> None:
        if self.direction == Direction.CREDIT and self.amount_minor_units < 0:
            raise ValueError("credit entries cannot carry a negative amount")
        if self.direction == Direction.DEBIT and self.amount_minor_units > 0:
            raise ValueError("debit entries cannot carry a positive amount")

    @classmethod
    def credit(
        cls,
        date: datetime.date,
        description: str,
        amount: int,
        reference: str | None = None,
    ) -> StatementEntry:
        return cls(date, description, abs(amount), Direction.CREDIT, reference)

    @classmethod
    def debit(
        cls,
        date: datetime.date,
        description: str,
        amount: int,
        reference: str | None = None,
    ) -> StatementEntry:
        return cls(date, description, -abs(amount), Direction.DEBIT, reference)

    @property
    def magnitude(self) -> int:
        return abs(self.amount_minor_units)


@dataclass(frozen=True)
class StatementSummary:
    """Aggregates of the entries returned for one statement query."""

    count: int
    total_credits: int
    total_debits: int
    net: int

    @classmethod
    def from_entries(cls, entries: list[StatementEntry]) -> StatementSummary:
        credits = sum(e.magnitude for e in entries if e.direction == Direction.CREDIT)
        debits = sum(e.magnitude for e in entries if e.direction == Direction.DEBIT)
        return cls(
            count=len(entries),
            total_credits=credits,
            total_debits=debits,
            net=credits - debits,
        )


@dataclass(frozen=True)
class Statement:
    """Entries plus the summary computed from exactly those entries."""

    date_range: DateRange
    entries: list[StatementEntry]
    summary: StatementSummary


@dataclass(frozen=True)
class BankAccountDetails:
    """Wire destination. Holder document is digits only."""

    bank_code: str
    branch: str
    account_number: str
    account_digit: str
    holder_name: str
    holder_document: str
    account_type: str = "checking"  # checking | savings


@dataclass(frozen=True)
class TransferRequest:
    """Outbound transfer as submitted by a caller.

    The idempotency token is client-generated; use ``TransferRequest.new``
    to mint one when the caller has none.
    """

    method: TransferMethod
    amount_minor_units: int
    idempotency_token: str
    destination: str | None = None
    destination_key_type: str | None = None  # cpf/cnpj/email/phone/random
    bank_account: BankAccountDetails | None = None
    description: str | None = None

    @classmethod
    def new(
        cls,
        *,
        method: TransferMethod,
        amount_minor_units: int,
        destination: str | None = None,
        destination_key_type: str | None = None,
        bank_account: BankAccountDetails | None = None,
        description: str | None = None,
    ) -> TransferRequest:
        """Create a draft request with a fresh UUID4 idempotency token."""
        return cls(
            method=method,
            amount_minor_units=amount_minor_units,
            idempotency_token=str(uuid.uuid4()),
            destination=destination,
            destination_key_type=destination_key_type,
            bank_account=bank_account,
            description=description,
        )

    def fingerprint(self) -> str:
        """Stable hash of the money-moving parameters.

        Used to detect a token reused for a different transfer.
        """
        payload: dict[str, Any] = {
            "method": TransferMethod(self.method).value,
            "amount": self.amount_minor_units,
            "destination": self.destination,
            "bank_account": (
                [
                    self.bank_account.bank_code,
                    self.bank_account.branch,
                    self.bank_account.account_number,
                    self.bank_account.account_digit,
                ]
                if self.bank_account
                else None
            ),
        }
        encoded = json.dumps(payload, sort_keys=True).encode()
        return hashlib.sha256(encoded).hexdigest()


@dataclass(frozen=True)
class TransferResult:
    """Provider outcome of a transfer."""

    status: TransferStatus
    external_id: str
    amount_minor_units: int
