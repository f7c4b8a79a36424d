"""Account, balance, statement and transfer endpoints."""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Header, Path, Query, status

from finance_gateway.api.dependencies import Gateway, TenantId
from finance_gateway.api.schemas import (
    AccountResponse,
    BalanceOutcomeResponse,
    BalanceResponse,
    ErrorResponse,
    StatementEntryResponse,
    StatementResponse,
    StatementSummaryResponse,
    TransferCreate,
    TransferRecordResponse,
    TransferResultResponse,
)
from finance_gateway.gateway.errors import ValidationError
from finance_gateway.gateway.types import (
    Account,
    BankAccountDetails,
    TransferMethod,
    TransferRequest,
)

router = APIRouter(prefix="/accounts", tags=["accounts"])

ERRORS = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}

AccountId = Annotated[str, Path(min_length=1, max_length=64)]


def _account(account: Account) -> AccountResponse:
    return AccountResponse(
        account_id=account.account_id,
        provider=account.provider,
        label=account.label,
        environment=account.environment.value,
        category=account.category.value,
        capabilities=account.capabilities.to_dict(),
    )


# ============================================================================
# Accounts
# ============================================================================


@router.get("", response_model=list[AccountResponse], responses={400: {"model": ErrorResponse}})
async def list_accounts(gateway: Gateway, tenant_id: TenantId) -> list[AccountResponse]:
    """List the tenant's active accounts with their capabilities."""
    return [_account(a) for a in await gateway.list_accounts(tenant_id)]


@router.get("/balances", response_model=list[BalanceOutcomeResponse])
async def list_balances(gateway: Gateway, tenant_id: TenantId) -> list[BalanceOutcomeResponse]:
    """Balances of every balance-capable account; failures reported per account."""
    outcomes = await gateway.fetch_all_balances(tenant_id)
    return [
        BalanceOutcomeResponse(
            account_id=o.account.account_id,
            label=o.account.label,
            provider=o.account.provider,
            balance=BalanceResponse.model_validate(o.balance) if o.balance else None,
            error=ErrorResponse(**o.error.to_dict()) if o.error else None,
        )
        for o in outcomes
    ]


@router.get("/{account_id}/balance", response_model=BalanceResponse, responses=ERRORS)
async def get_balance(
    gateway: Gateway, tenant_id: TenantId, account_id: AccountId
) -> BalanceResponse:
    snapshot = await gateway.get_balance(tenant_id, account_id)
    return BalanceResponse.model_validate(snapshot)


# ============================================================================
# Statement
# ============================================================================


@router.get("/{account_id}/statement", response_model=StatementResponse, responses=ERRORS)
async def get_statement(
    gateway: Gateway,
    tenant_id: TenantId,
    account_id: AccountId,
    start: Annotated[date, Query()],
    end: Annotated[date, Query()],
) -> StatementResponse:
    """Statement for the inclusive range [start, end]."""
    statement = await gateway.get_statement(tenant_id, account_id, start, end)
    return StatementResponse(
        start=statement.date_range.start,
        end=statement.date_range.end,
        entries=[
            StatementEntryResponse(
                date=e.date,
                description=e.description,
                amount_minor_units=e.amount_minor_units,
                direction=e.direction.value,
                reference=e.reference,
            )
            for e in statement.entries
        ],
        summary=StatementSummaryResponse.model_validate(statement.summary),
    )


# ============================================================================
# Transfers
# ============================================================================


@router.post(
    "/{account_id}/transfers",
    response_model=TransferResultResponse,
    status_code=status.HTTP_200_OK,
    responses={**ERRORS, 409: {"model": ErrorResponse}},
)
async def submit_transfer(
    gateway: Gateway,
    tenant_id: TenantId,
    account_id: AccountId,
    payload: TransferCreate,
    idempotency_key: Annotated[str | None, Header()] = None,
) -> TransferResultResponse:
    """Submit an outbound transfer.

    The idempotency token comes from the body or the Idempotency-Key
    header; when both are present they must match.
    """
    token = payload.idempotency_token or idempotency_key
    if payload.idempotency_token and idempotency_key and payload.idempotency_token != idempotency_key:
        raise ValidationError(
            "Idempotency-Key header does not match idempotency_token",
            field="idempotency_token",
        )
    if not token:
        raise ValidationError("idempotency_token is required", field="idempotency_token")

    bank = payload.bank_account
    request = TransferRequest(
        method=TransferMethod(payload.method),
        amount_minor_units=payload.amount_minor_units,
        idempotency_token=token,
        destination=payload.destination,
        destination_key_type=payload.destination_key_type,
        bank_account=BankAccountDetails(**bank.model_dump()) if bank else None,
        description=payload.description,
    )
    result = await gateway.submit_transfer(tenant_id, account_id, request)
    return TransferResultResponse(
        status=result.status.value,
        external_id=result.external_id,
        amount_minor_units=result.amount_minor_units,
    )


@router.get(
    "/{account_id}/transfers/{idempotency_token}",
    response_model=TransferRecordResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_transfer(
    gateway: Gateway,
    tenant_id: TenantId,
    account_id: AccountId,
    idempotency_token: Annotated[str, Path(min_length=1, max_length=128)],
) -> TransferRecordResponse:
    """Recorded state of a transfer, by idempotency token."""
    record = await gateway.get_transfer(tenant_id, account_id, idempotency_token)
    return TransferRecordResponse(
        account_id=record.account_id,
        idempotency_token=record.idempotency_token,
        state=record.state.value,
        method=record.method.value,
        amount_minor_units=record.amount_minor_units,
        destination=record.destination,
        external_id=record.external_id,
        error_code=record.error_code,
        error_message=record.error_message,
        attempts=record.attempts,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )
