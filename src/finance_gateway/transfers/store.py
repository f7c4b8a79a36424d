"""Transfer records and the store that persists them.

A record is written in ``draft`` before the provider is contacted, so a
retried request with the same token always finds it.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, replace
from typing import Any, Protocol

from finance_gateway.gateway.types import (
    TransferMethod,
    TransferRequest,
    TransferResult,
    TransferStatus,
)
from finance_gateway.transfers.state_machine import TransferState, TransferStateMachine


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class TransferAlreadyRecorded(Exception):
    """A record for (account_id, idempotency_token) already exists."""

    def __init__(self, account_id: str, idempotency_token: str):
        self.account_id = account_id
        self.idempotency_token = idempotency_token
        super().__init__(
            f"Transfer {idempotency_token} already recorded for account {account_id}"
        )


@dataclass(frozen=True)
class TransferRecord:
    """Recorded state of one logical transfer."""

    account_id: str
    tenant_id: str
    idempotency_token: str
    fingerprint: str
    method: TransferMethod
    amount_minor_units: int
    state: TransferState = TransferState.DRAFT
    destination: str | None = None
    description: str | None = None
    external_id: str | None = None
    result_amount_minor_units: int | None = None
    error_code: str | None = None
    error_message: str | None = None
    attempts: int = 0
    created_at: datetime.datetime | None = None
    updated_at: datetime.datetime | None = None

    @classmethod
    def draft(cls, tenant_id: str, account_id: str, request: TransferRequest) -> TransferRecord:
        now = _utcnow()
        return cls(
            account_id=account_id,
            tenant_id=tenant_id,
            idempotency_token=request.idempotency_token,
            fingerprint=request.fingerprint(),
            method=TransferMethod(request.method),
            amount_minor_units=request.amount_minor_units,
            destination=request.destination,
            description=request.description,
            created_at=now,
            updated_at=now,
        )

    def transition(self, to_state: TransferState, **changes: Any) -> TransferRecord:
        """Return a copy in ``to_state``; raises InvalidTransitionError."""
        TransferStateMachine.validate_transition(self.state, to_state)
        return replace(self, state=to_state, updated_at=_utcnow(), **changes)

    def submitted(self) -> TransferRecord:
        return self.transition(
            TransferState.SUBMITTED,
            attempts=self.attempts + 1,
            error_code=None,
            error_message=None,
        )

    def with_result(self, result: TransferResult) -> TransferRecord:
        return self.transition(
            TransferStateMachine.from_status(result.status),
            external_id=result.external_id,
            result_amount_minor_units=result.amount_minor_units,
        )

    def failed(self, error_code: str, message: str) -> TransferRecord:
        return self.transition(
            TransferState.FAILED, error_code=error_code, error_message=message
        )

    def rejected(self, error_code: str, message: str) -> TransferRecord:
        return self.transition(
            TransferState.REJECTED, error_code=error_code, error_message=message
        )

    @property
    def has_outcome(self) -> bool:
        return TransferStateMachine.has_outcome(self.state)

    def result(self) -> TransferResult | None:
        """The provider outcome, when one was recorded with an external id."""
        if self.state in (TransferState.CONFIRMED, TransferState.PENDING) and self.external_id:
            return TransferResult(
                status=TransferStatus(self.state.value),
                external_id=self.external_id,
                amount_minor_units=(
                    self.result_amount_minor_units
                    if self.result_amount_minor_units is not None
                    else self.amount_minor_units
                ),
            )
        if self.state == TransferState.REJECTED and self.external_id:
            return TransferResult(
                status=TransferStatus.REJECTED,
                external_id=self.external_id,
                amount_minor_units=0,
            )
        return None


class TransferStore(Protocol):
    """Persistence for transfer records, keyed by (account_id, token)."""

    async def get(self, account_id: str, idempotency_token: str) -> TransferRecord | None:
        ...

    async def create(self, record: TransferRecord) -> TransferRecord:
        """Insert a new record; raises TransferAlreadyRecorded on conflict."""
        ...

    async def save(self, record: TransferRecord) -> TransferRecord:
        """Persist the new state of an existing record."""
        ...


class InMemoryTransferStore:
    """Dict-backed store for tests and the sandbox."""

    def __init__(self) -> None:
        self._records: dict[tuple[str, str], TransferRecord] = {}

    async def get(self, account_id: str, idempotency_token: str) -> TransferRecord | None:
        return self._records.get((account_id, idempotency_token))

    async def create(self, record: TransferRecord) -> TransferRecord:
        key = (record.account_id, record.idempotency_token)
        if key in self._records:
            raise TransferAlreadyRecorded(*key)
        self._records[key] = record
        return record

    async def save(self, record: TransferRecord) -> TransferRecord:
        key = (record.account_id, record.idempotency_token)
        if key not in self._records:
            raise KeyError(key)
        self._records[key] = record
        return record

    def all(self) -> list[TransferRecord]:
        return list(self._records.values())
