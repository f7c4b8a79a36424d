"""SQL-backed transfer store (table ``gateway_transfer``)."""

from __future__ import annotations

import datetime
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from finance_gateway.gateway.types import TransferMethod
from finance_gateway.models import GatewayTransfer
from finance_gateway.transfers.state_machine import TransferState
from finance_gateway.transfers.store import TransferAlreadyRecorded, TransferRecord

logger = logging.getLogger(__name__)


def _aware(value: datetime.datetime | None) -> datetime.datetime | None:
    # SQLite drops tzinfo; stored values are always UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value


def _to_record(row: GatewayTransfer) -> TransferRecord:
    return TransferRecord(
        account_id=row.account_id,
        tenant_id=row.tenant_id,
        idempotency_token=row.idempotency_token,
        fingerprint=row.fingerprint,
        method=TransferMethod(row.method),
        amount_minor_units=row.amount_minor_units,
        state=TransferState(row.state),
        destination=row.destination,
        description=row.description,
        external_id=row.external_id,
        result_amount_minor_units=row.result_amount_minor_units,
        error_code=row.error_code,
        error_message=row.error_message,
        attempts=row.attempts,
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


def _apply(row: GatewayTransfer, record: TransferRecord) -> None:
    row.state = TransferState(record.state).value
    row.external_id = record.external_id
    row.result_amount_minor_units = record.result_amount_minor_units
    row.error_code = record.error_code
    row.error_message = (record.error_message or "")[:500] or None
    row.attempts = record.attempts
    if record.state == TransferState.SUBMITTED:
        row.submitted_at = record.updated_at


class SqlTransferStore:
    """Transfer records persisted through SQLAlchemy async sessions.

    The unique constraint on (account_id, idempotency_token) backs up the
    in-process account lock when several workers share one database.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def _row(
        self, session: AsyncSession, account_id: str, idempotency_token: str
    ) -> GatewayTransfer | None:
        result = await session.execute(
            select(GatewayTransfer).where(
                GatewayTransfer.account_id == account_id,
                GatewayTransfer.idempotency_token == idempotency_token,
            )
        )
        return result.scalar_one_or_none()

    async def get(self, account_id: str, idempotency_token: str) -> TransferRecord | None:
        async with self._session_factory() as session:
            row = await self._row(session, account_id, idempotency_token)
            return _to_record(row) if row is not None else None

    async def create(self, record: TransferRecord) -> TransferRecord:
        row = GatewayTransfer(
            account_id=record.account_id,
            tenant_id=record.tenant_id,
            idempotency_token=record.idempotency_token,
            fingerprint=record.fingerprint,
            method=TransferMethod(record.method).value,
            amount_minor_units=record.amount_minor_units,
            destination=record.destination,
            description=record.description,
        )
        _apply(row, record)
        async with self._session_factory() as session:
            session.add(row)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise TransferAlreadyRecorded(
                    record.account_id, record.idempotency_token
                ) from exc
        return record

    async def save(self, record: TransferRecord) -> TransferRecord:
        async with self._session_factory() as session:
            row = await self._row(session, record.account_id, record.idempotency_token)
            if row is None:
                raise KeyError((record.account_id, record.idempotency_token))
            _apply(row, record)
            await session.commit()
        logger.debug(
            "transfer_record_saved",
            extra={
                "account_id": record.account_id,
                "idempotency_token": record.idempotency_token,
                "state": TransferState(record.state).value,
            },
        )
        return record
