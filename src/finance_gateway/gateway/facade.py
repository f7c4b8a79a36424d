"""Financial gateway facade.

Single entry point for balance, statement and transfer operations across
every configured provider:

    gateway = FinancialGateway(directory, registry, transfers=store)

    # Balance of one account
    snapshot = await gateway.get_balance(tenant_id, account_id)

    # Statement for an inclusive date range
    statement = await gateway.get_statement(tenant_id, account_id, start, end)

    # Outbound transfer, idempotent per token
    result = await gateway.submit_transfer(tenant_id, account_id, request)

    # Balances of every account, failures isolated per account
    outcomes = await gateway.fetch_all_balances(tenant_id)

Each call resolves the account, checks its capability, validates the
input, dispatches to the adapter under a timeout, validates the result
and maps adapter failures into the GatewayError taxonomy.
"""

from __future__ import annotations

import asyncio
import dataclasses
import datetime
import logging
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from finance_gateway.directory.base import AccountDirectory
from finance_gateway.events.emitter import EventEmitter
from finance_gateway.events.types import (
    DomainEvent,
    EventMetadata,
    ProviderCallFailed,
    TransferConfirmed,
    TransferFailed,
    TransferPending,
    TransferReplayed,
    TransferSubmitted,
)
from finance_gateway.events.types import TransferRejected as TransferRejectedEvent
from finance_gateway.gateway.capabilities import Operation, flag_for
from finance_gateway.gateway.config import (
    GatewayConfig,
    RetryConfig,
    StatementConfig,
    TimeoutConfig,
)
from finance_gateway.gateway.errors import (
    AuthFailure,
    CapabilityUnsupported,
    DuplicateRequest,
    GatewayError,
    ProviderNotRegistered,
    ProviderUnavailable,
    TransferNotFound,
    TransferRejected,
    UnknownProviderResponse,
    ValidationError,
)
from finance_gateway.gateway.locks import AccountLocks
from finance_gateway.gateway.types import (
    Account,
    BalanceSnapshot,
    DateRange,
    Statement,
    StatementSummary,
    TransferMethod,
    TransferRequest,
    TransferResult,
    TransferStatus,
)
from finance_gateway.providers.base import (
    DuplicateSubmission,
    FinancialProvider,
    InvalidRange,
    ProviderAuthError,
    ProviderError,
    ProviderRejection,
    ProviderResponseError,
    ProviderUnavailableError,
    UnsupportedByProvider,
)
from finance_gateway.providers.registry import ProviderRegistry
from finance_gateway.transfers.state_machine import TransferState
from finance_gateway.transfers.store import (
    InMemoryTransferStore,
    TransferAlreadyRecorded,
    TransferRecord,
    TransferStore,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CURRENCY = re.compile(r"^[A-Z]{3}$")


@dataclass(frozen=True)
class BalanceOutcome:
    """Balance of one account in a multi-account view."""

    account: Account
    balance: BalanceSnapshot | None = None
    error: GatewayError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class FinancialGateway:
    """Capability-aware facade over the provider adapters."""

    def __init__(
        self,
        directory: AccountDirectory,
        registry: ProviderRegistry,
        *,
        transfers: TransferStore | None = None,
        config: GatewayConfig | None = None,
        emitter: EventEmitter | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.directory = directory
        self.registry = registry
        self.transfers = transfers if transfers is not None else InMemoryTransferStore()
        self.timeouts = config.timeouts if config else TimeoutConfig()
        self.retries = config.retries if config else RetryConfig()
        self.statement_limits = config.statement if config else StatementConfig()
        self.emit_events = config.emit_events if config else True
        self.emitter = emitter or EventEmitter()
        self.locks = AccountLocks()
        self._sleep = sleep

    # =========================================================================
    # Accounts
    # =========================================================================

    async def list_accounts(self, tenant_id: str) -> list[Account]:
        """Active accounts of the tenant, ordered by label."""
        return await self.directory.list_accounts(tenant_id)

    async def get_account(self, tenant_id: str, account_id: str) -> Account:
        return await self.directory.get_account(tenant_id, account_id)

    # =========================================================================
    # Balance
    # =========================================================================

    async def get_balance(self, tenant_id: str, account_id: str) -> BalanceSnapshot:
        """Fetch the current balance of an account.

        Raises:
            AccountNotFound, CapabilityUnsupported, ProviderNotRegistered,
            AuthFailure, ProviderUnavailable, UnknownProviderResponse.
        """
        account = await self._account_for(tenant_id, account_id, Operation.BALANCE)
        provider = self._adapter_for(account)

        snapshot = await self._read(
            account,
            Operation.BALANCE,
            lambda: provider.fetch_balance(account),
            self.timeouts.balance_seconds,
        )
        problem = _balance_problem(snapshot)
        if problem:
            raise await self._unmappable(account, Operation.BALANCE, problem)
        return snapshot

    async def fetch_all_balances(self, tenant_id: str) -> list[BalanceOutcome]:
        """Balances of every balance-capable account, fetched concurrently.

        One failing provider never fails the whole view: its account gets
        a BalanceOutcome carrying the error instead.
        """
        accounts = [
            a
            for a in await self.directory.list_accounts(tenant_id)
            if a.capabilities.supports(Operation.BALANCE)
        ]
        return list(
            await asyncio.gather(*(self._balance_outcome(tenant_id, a) for a in accounts))
        )

    async def _balance_outcome(self, tenant_id: str, account: Account) -> BalanceOutcome:
        try:
            snapshot = await self.get_balance(tenant_id, account.account_id)
        except GatewayError as exc:
            return BalanceOutcome(account=account, error=exc)
        return BalanceOutcome(account=account, balance=snapshot)

    # =========================================================================
    # Statement
    # =========================================================================

    async def get_statement(
        self,
        tenant_id: str,
        account_id: str,
        start: datetime.date,
        end: datetime.date,
    ) -> Statement:
        """Fetch movements within the inclusive range ``[start, end]``.

        Raises:
            ValidationError: start after end, timestamps instead of dates,
                or span longer than the configured maximum.
            AccountNotFound, CapabilityUnsupported, ProviderNotRegistered,
            AuthFailure, ProviderUnavailable, UnknownProviderResponse.
        """
        account = await self._account_for(tenant_id, account_id, Operation.STATEMENT)
        date_range = self._validate_range(start, end)
        provider = self._adapter_for(account)

        statement = await self._read(
            account,
            Operation.STATEMENT,
            lambda: provider.fetch_statement(account, date_range),
            self.timeouts.statement_seconds,
        )
        problem = _statement_problem(statement, date_range)
        if problem:
            raise await self._unmappable(account, Operation.STATEMENT, problem)
        return statement

    def _validate_range(self, start: Any, end: Any) -> DateRange:
        for name, value in (("start", start), ("end", end)):
            if not isinstance(value, datetime.date) or isinstance(value, datetime.datetime):
                raise ValidationError(f"{name} must be a calendar date", field=name)
        date_range = DateRange(start, end)
        if not date_range.is_ordered():
            raise ValidationError("start must not be after end", field="start")
        if date_range.days > self.statement_limits.max_span_days:
            raise ValidationError(
                f"range spans {date_range.days} days; "
                f"maximum is {self.statement_limits.max_span_days}",
                field="end",
            )
        return date_range

    # =========================================================================
    # Transfers
    # =========================================================================

    async def submit_transfer(
        self,
        tenant_id: str,
        account_id: str,
        request: TransferRequest,
    ) -> TransferResult:
        """Submit an outbound transfer.

        Idempotent per (account, idempotency token): repeating a token
        returns the recorded result and never moves money twice. A token
        whose earlier attempt failed is resubmitted with the same token.
        Transfers on one account are serialized.

        Raises:
            ValidationError: bad amount, missing destination or token, or a
                token reused with different parameters.
            TransferRejected: provider refused the transfer.
            DuplicateRequest: provider saw the token before and the original
                outcome is unrecoverable; the record stays submitted.
            AccountNotFound, CapabilityUnsupported, ProviderNotRegistered,
            AuthFailure, ProviderUnavailable, UnknownProviderResponse.
        """
        account = await self._account_for(tenant_id, account_id, Operation.TRANSFER)
        _validate_transfer(request)
        provider = self._adapter_for(account)

        async with self.locks.hold(account.account_id):
            return await self._submit_locked(account, provider, request)

    async def get_transfer(
        self, tenant_id: str, account_id: str, idempotency_token: str
    ) -> TransferRecord:
        """Recorded state of a transfer, looked up by its token."""
        account = await self.directory.get_account(tenant_id, account_id)
        record = await self.transfers.get(account.account_id, idempotency_token)
        if record is None or record.tenant_id != tenant_id:
            raise TransferNotFound(account.account_id, idempotency_token)
        return record

    async def _submit_locked(
        self,
        account: Account,
        provider: FinancialProvider,
        request: TransferRequest,
    ) -> TransferResult:
        record = await self.transfers.get(account.account_id, request.idempotency_token)

        if record is not None:
            if record.fingerprint != request.fingerprint():
                raise ValidationError(
                    "idempotency token already used for a different transfer",
                    field="idempotency_token",
                )
            if record.has_outcome:
                return await self._replay(account, record)
            record = await self._resubmit(record)
        else:
            try:
                record = await self.transfers.create(
                    TransferRecord.draft(account.tenant_id, account.account_id, request)
                )
            except TransferAlreadyRecorded:
                # Another worker recorded the token first
                return await self._submit_locked(account, provider, request)
            record = await self.transfers.save(record.submitted())

        logger.info(
            "transfer_submitted",
            extra={
                "account_id": account.account_id,
                "provider": account.provider,
                "idempotency_token": request.idempotency_token,
                "attempt": record.attempts,
            },
        )
        await self._emit(
            TransferSubmitted(
                metadata=self._metadata(account),
                idempotency_token=request.idempotency_token,
                amount_minor_units=request.amount_minor_units,
                method=TransferMethod(request.method).value,
                attempt=record.attempts,
            )
        )

        try:
            result = await asyncio.wait_for(
                provider.execute_transfer(account, request),
                self.timeouts.transfer_seconds,
            )
        except DuplicateSubmission as exc:
            if exc.original is None:
                error = DuplicateRequest(
                    f"Provider '{account.provider}' already processed token "
                    f"'{request.idempotency_token}' and did not return the original result"
                )
                # Outcome unknown: the record stays submitted
                await self._report(account, Operation.TRANSFER, error)
                raise error from exc
            result = exc.original
        except ProviderRejection as exc:
            await self._transfer_rejected(account, record, exc)
            raise TransferRejected(exc.message, reason_code=exc.reason_code) from exc
        except (ProviderError, asyncio.TimeoutError) as exc:
            error = self._map_error(account, Operation.TRANSFER, exc)
            await self._transfer_failed(account, record, error)
            raise error from exc
        except Exception as exc:
            logger.exception(
                "transfer_adapter_crashed",
                extra={"account_id": account.account_id, "provider": account.provider},
            )
            error = UnknownProviderResponse(account.provider, Operation.TRANSFER.value)
            await self._transfer_failed(account, record, error)
            raise error from exc

        problem = _transfer_problem(result)
        if problem:
            error = await self._unmappable(account, Operation.TRANSFER, problem)
            await self._transfer_failed(account, record, error, report=False)
            raise error

        record = await self.transfers.save(record.with_result(result))
        await self._emit(self._outcome_event(account, record, result))
        return result

    async def _resubmit(self, record: TransferRecord) -> TransferRecord:
        if record.state == TransferState.SUBMITTED:
            # Left over from an interrupted attempt; the provider dedups the token
            updated = dataclasses.replace(record, attempts=record.attempts + 1)
        else:
            updated = record.submitted()
        return await self.transfers.save(updated)

    async def _replay(self, account: Account, record: TransferRecord) -> TransferResult:
        result = record.result()
        await self._emit(
            TransferReplayed(
                metadata=self._metadata(account),
                idempotency_token=record.idempotency_token,
                amount_minor_units=record.amount_minor_units,
                method=TransferMethod(record.method).value,
                external_id=record.external_id or "",
                status=TransferState(record.state).value,
            )
        )
        if result is None:
            raise TransferRejected(
                record.error_message or "Transfer was rejected by the provider",
                reason_code=record.error_code,
            )
        return result

    async def _transfer_rejected(
        self, account: Account, record: TransferRecord, exc: ProviderRejection
    ) -> None:
        await self.transfers.save(
            record.rejected(exc.reason_code or TransferRejected.code, exc.message)
        )
        logger.info(
            "transfer_rejected",
            extra={
                "account_id": account.account_id,
                "provider": account.provider,
                "reason_code": exc.reason_code,
            },
        )
        await self._emit(
            TransferRejectedEvent(
                metadata=self._metadata(account),
                idempotency_token=record.idempotency_token,
                amount_minor_units=record.amount_minor_units,
                method=TransferMethod(record.method).value,
                reason=exc.message,
                reason_code=exc.reason_code,
            )
        )

    async def _transfer_failed(
        self,
        account: Account,
        record: TransferRecord,
        error: GatewayError,
        report: bool = True,
    ) -> None:
        await self.transfers.save(record.failed(error.code, error.message))
        if report:
            await self._report(account, Operation.TRANSFER, error)
        await self._emit(
            TransferFailed(
                metadata=self._metadata(account),
                idempotency_token=record.idempotency_token,
                amount_minor_units=record.amount_minor_units,
                method=TransferMethod(record.method).value,
                error_code=error.code,
                message=error.message,
            )
        )

    def _outcome_event(
        self, account: Account, record: TransferRecord, result: TransferResult
    ) -> DomainEvent:
        common = dict(
            metadata=self._metadata(account),
            idempotency_token=record.idempotency_token,
            amount_minor_units=record.amount_minor_units,
            method=TransferMethod(record.method).value,
        )
        if result.status == TransferStatus.CONFIRMED:
            return TransferConfirmed(external_id=result.external_id, **common)
        if result.status == TransferStatus.PENDING:
            return TransferPending(external_id=result.external_id, **common)
        return TransferRejectedEvent(reason="rejected by provider", **common)

    # =========================================================================
    # Dispatch
    # =========================================================================

    async def _account_for(
        self, tenant_id: str, account_id: str, operation: Operation
    ) -> Account:
        account = await self.directory.get_account(tenant_id, account_id)
        if not account.capabilities.supports(operation):
            raise CapabilityUnsupported(account.account_id, flag_for(operation))
        return account

    def _adapter_for(self, account: Account) -> FinancialProvider:
        provider = self.registry.get(account.provider)
        if provider is None:
            logger.error(
                "provider_not_registered",
                extra={"account_id": account.account_id, "provider": account.provider},
            )
            raise ProviderNotRegistered(account.provider)
        return provider

    async def _read(
        self,
        account: Account,
        operation: Operation,
        call: Callable[[], Awaitable[T]],
        timeout: float,
    ) -> T:
        """Run a read with the configured retry policy.

        Only ProviderUnavailable is retried; backoff doubles per attempt.
        """
        attempt = 1
        while True:
            try:
                return await self._dispatch(account, operation, call, timeout)
            except ProviderUnavailable:
                if attempt >= self.retries.read_attempts:
                    raise
                delay = min(
                    self.retries.backoff_base_seconds * (2 ** (attempt - 1)),
                    self.retries.backoff_max_seconds,
                )
                logger.info(
                    "provider_read_retry",
                    extra={
                        "account_id": account.account_id,
                        "operation": operation.value,
                        "attempt": attempt,
                        "delay": delay,
                    },
                )
                await self._sleep(delay)
                attempt += 1

    async def _dispatch(
        self,
        account: Account,
        operation: Operation,
        call: Callable[[], Awaitable[T]],
        timeout: float,
    ) -> T:
        try:
            return await asyncio.wait_for(call(), timeout)
        except (ProviderError, asyncio.TimeoutError) as exc:
            error = self._map_error(account, operation, exc)
            await self._report(account, operation, error)
            raise error from exc
        except GatewayError:
            raise
        except Exception as exc:
            logger.exception(
                "provider_adapter_crashed",
                extra={
                    "account_id": account.account_id,
                    "provider": account.provider,
                    "operation": operation.value,
                },
            )
            error = UnknownProviderResponse(account.provider, operation.value)
            await self._report(account, operation, error)
            raise error from exc

    def _map_error(
        self, account: Account, operation: Operation, exc: BaseException
    ) -> GatewayError:
        """Translate an adapter failure into the gateway taxonomy."""
        provider = account.provider
        if isinstance(exc, asyncio.TimeoutError):
            return ProviderUnavailable(
                f"Provider '{provider}' timed out during {operation.value}"
            )
        if isinstance(exc, ProviderUnavailableError):
            return ProviderUnavailable(
                f"Provider '{provider}' is unavailable: {exc.message}"
            )
        if isinstance(exc, ProviderAuthError):
            logger.error(
                "provider_auth_failure",
                extra={
                    "account_id": account.account_id,
                    "provider": provider,
                    "operation": operation.value,
                },
            )
            return AuthFailure(f"Provider '{provider}' rejected the configured credentials")
        if isinstance(exc, UnsupportedByProvider):
            return CapabilityUnsupported(account.account_id, exc.capability, exc.message)
        if isinstance(exc, InvalidRange):
            return ValidationError(exc.message, field="start")
        if isinstance(exc, ProviderRejection):
            return TransferRejected(exc.message, reason_code=exc.reason_code)
        if isinstance(exc, DuplicateSubmission):
            return DuplicateRequest(exc.message)

        payload = exc.payload if isinstance(exc, ProviderResponseError) else None
        logger.warning(
            "provider_unknown_response",
            extra={
                "account_id": account.account_id,
                "provider": provider,
                "operation": operation.value,
                "detail": str(exc),
                "payload_excerpt": repr(payload)[:300] if payload is not None else None,
            },
        )
        return UnknownProviderResponse(provider, operation.value)

    async def _unmappable(
        self, account: Account, operation: Operation, problem: str
    ) -> UnknownProviderResponse:
        logger.warning(
            "provider_result_invalid",
            extra={
                "account_id": account.account_id,
                "provider": account.provider,
                "operation": operation.value,
                "problem": problem,
            },
        )
        error = UnknownProviderResponse(account.provider, operation.value)
        await self._report(account, operation, error)
        return error

    # =========================================================================
    # Events
    # =========================================================================

    def _metadata(self, account: Account) -> EventMetadata:
        return EventMetadata.create(account.tenant_id, account.account_id, account.provider)

    async def _report(self, account: Account, operation: Operation, error: GatewayError) -> None:
        await self._emit(
            ProviderCallFailed(
                metadata=self._metadata(account),
                operation=operation.value,
                error_code=error.code,
                retryable=error.retryable,
            )
        )

    async def _emit(self, event: DomainEvent) -> None:
        if self.emit_events:
            await self.emitter.emit(event)


# =============================================================================
# Validation
# =============================================================================


def _validate_transfer(request: TransferRequest) -> None:
    amount = request.amount_minor_units
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError("amount_minor_units must be an integer", field="amount_minor_units")
    if amount <= 0:
        raise ValidationError("amount_minor_units must be positive", field="amount_minor_units")
    try:
        method = TransferMethod(request.method)
    except ValueError:
        raise ValidationError(f"unknown transfer method {request.method!r}", field="method") from None
    token = request.idempotency_token
    if not isinstance(token, str) or not token.strip():
        raise ValidationError("idempotency_token is required", field="idempotency_token")
    if method == TransferMethod.INSTANT and not (request.destination or "").strip():
        raise ValidationError("instant transfers require a destination key", field="destination")


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _balance_problem(snapshot: Any) -> str | None:
    if not isinstance(snapshot, BalanceSnapshot):
        return f"expected BalanceSnapshot, got {type(snapshot).__name__}"
    if not _is_int(snapshot.available) or not _is_int(snapshot.pending):
        return "balance amounts are not integers"
    if snapshot.blocked is not None and not _is_int(snapshot.blocked):
        return "blocked amount is not an integer"
    if not isinstance(snapshot.currency, str) or not _CURRENCY.match(snapshot.currency):
        return f"invalid currency {snapshot.currency!r}"
    if not isinstance(snapshot.fetched_at, datetime.datetime) or snapshot.fetched_at.tzinfo is None:
        return "fetched_at is not an aware timestamp"
    return None


def _statement_problem(statement: Any, date_range: DateRange) -> str | None:
    if not isinstance(statement, Statement):
        return f"expected Statement, got {type(statement).__name__}"
    previous: datetime.date | None = None
    for entry in statement.entries:
        if not _is_int(entry.amount_minor_units):
            return "entry amount is not an integer"
        if not date_range.contains(entry.date):
            return f"entry dated {entry.date.isoformat()} outside the requested range"
        if previous is not None and entry.date < previous:
            return "entries are not sorted by date"
        previous = entry.date
    if statement.summary != StatementSummary.from_entries(list(statement.entries)):
        return "summary does not match entries"
    return None


def _transfer_problem(result: Any) -> str | None:
    if not isinstance(result, TransferResult):
        return f"expected TransferResult, got {type(result).__name__}"
    try:
        TransferStatus(result.status)
    except ValueError:
        return f"unknown transfer status {result.status!r}"
    if not isinstance(result.external_id, str) or not result.external_id:
        return "missing external id"
    if not _is_int(result.amount_minor_units) or result.amount_minor_units < 0:
        return "debited amount is not a non-negative integer"
    return None
