"""Pydantic schemas for API request/response models."""

from __future__ import annotations

import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

# ============================================================================
# Errors
# ============================================================================


class ErrorResponse(BaseModel):
    """Error body returned for every failure."""

    code: str
    message: str


# ============================================================================
# Accounts
# ============================================================================


class AccountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    account_id: str
    provider: str
    label: str
    environment: str
    category: str
    capabilities: dict[str, bool]


class BalanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    available: int
    pending: int
    blocked: int | None = None
    currency: str
    fetched_at: datetime.datetime


class BalanceOutcomeResponse(BaseModel):
    account_id: str
    label: str
    provider: str
    balance: BalanceResponse | None = None
    error: ErrorResponse | None = None


# ============================================================================
# Statement
# ============================================================================


class StatementEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date: datetime.date
    description: str
    amount_minor_units: int
    direction: str
    reference: str | None = None


class StatementSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    count: int
    total_credits: int
    total_debits: int
    net: int


class StatementResponse(BaseModel):
    start: datetime.date
    end: datetime.date
    entries: list[StatementEntryResponse]
    summary: StatementSummaryResponse


# ============================================================================
# Transfers
# ============================================================================


class BankAccountPayload(BaseModel):
    bank_code: str
    branch: str
    account_number: str
    account_digit: str = ""
    holder_name: str
    holder_document: str
    account_type: Literal["checking", "savings"] = "checking"


class TransferCreate(BaseModel):
    """Outbound transfer request.

    ``amount_minor_units`` is validated by the gateway, not here, so a bad
    amount yields the gateway's validation_error body.
    """

    method: Literal["instant", "wire"]
    amount_minor_units: int = Field(strict=True)
    destination: str | None = None
    destination_key_type: str | None = None
    bank_account: BankAccountPayload | None = None
    description: str | None = Field(default=None, max_length=140)
    idempotency_token: str | None = None


class TransferResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    status: str
    external_id: str
    amount_minor_units: int


class TransferRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    account_id: str
    idempotency_token: str
    state: str
    method: str
    amount_minor_units: int
    destination: str | None = None
    external_id: str | None = None
    error_code: str | None = None
    error_message: str | None = None
    attempts: int
    created_at: datetime.datetime | None = None
    updated_at: datetime.datetime | None = None
