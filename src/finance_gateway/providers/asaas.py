"""Asaas adapter (v3 API).

PSP with the full capability set. Amounts travel as decimal reais.

Docs: https://docs.asaas.com
"""

from __future__ import annotations

from typing import Any

from finance_gateway.gateway.capabilities import Capabilities, Operation
from finance_gateway.gateway.normalization import (
    build_statement,
    direction_from_marker,
    make_entry,
    to_minor_units,
)
from finance_gateway.gateway.types import (
    Account,
    BalanceSnapshot,
    DateRange,
    Direction,
    Statement,
    StatementEntry,
    TransferMethod,
    TransferRequest,
    TransferResult,
    TransferStatus,
)
from finance_gateway.providers.base import (
    ProviderRejection,
    ProviderResponseError,
    require_capability,
    require_ordered,
)
from finance_gateway.providers.http import HttpProvider, ProviderRequestError, major_units

TRANSFER_STATUS_MAP: dict[str, TransferStatus] = {
    "DONE": TransferStatus.CONFIRMED,
    "PENDING": TransferStatus.PENDING,
    "BANK_PROCESSING": TransferStatus.PENDING,
    "FAILED": TransferStatus.REJECTED,
    "CANCELLED": TransferStatus.REJECTED,
}

PAGE_SIZE = 100
MAX_PAGES = 50


class AsaasProvider(HttpProvider):
    """Asaas banking adapter: balance, statement, PIX/TED transfers."""

    provider_name = "asaas"
    production_url = "https://api.asaas.com"
    sandbox_url = "https://sandbox.asaas.com/api"

    def capabilities(self) -> Capabilities:
        return Capabilities.all()

    async def auth_headers(self) -> dict[str, str]:
        return {"access_token": self.credential("api_key")}

    async def fetch_balance(self, account: Account) -> BalanceSnapshot:
        require_capability(self, Operation.BALANCE)
        body = await self.request("GET", "/v3/finance/balance")
        try:
            pending = (body.get("statistics") or {}).get("pending") or 0
            return BalanceSnapshot(
                available=to_minor_units(body["balance"]),
                pending=to_minor_units(pending),
                currency="BRL",
                fetched_at=self.now(),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise ProviderResponseError(self.provider_name, "unexpected balance payload", body) from exc

    async def fetch_statement(self, account: Account, date_range: DateRange) -> Statement:
        require_ordered(self.provider_name, date_range)
        require_capability(self, Operation.STATEMENT)

        entries: list[StatementEntry] = []
        offset = 0
        for _ in range(MAX_PAGES):
            body = await self.request(
                "GET",
                "/v3/financialTransactions",
                params={
                    "startDate": date_range.start.isoformat(),
                    "finishDate": date_range.end.isoformat(),
                    "offset": offset,
                    "limit": PAGE_SIZE,
                },
            )
            try:
                page = body.get("data") or []
                entries.extend(self._entry(item) for item in page)
                has_more = bool(body.get("hasMore"))
            except (KeyError, TypeError, ValueError, AttributeError) as exc:
                raise ProviderResponseError(
                    self.provider_name, "unexpected statement payload", body
                ) from exc
            if not has_more or not page:
                break
            offset += len(page)
        else:
            raise ProviderResponseError(
                self.provider_name,
                f"statement has more than {MAX_PAGES * PAGE_SIZE} entries; narrow the date range",
            )

        return build_statement(date_range, entries)

    def _entry(self, item: dict[str, Any]) -> StatementEntry:
        amount = to_minor_units(item["value"])
        marker = item.get("type")
        # Asaas signs values; the type field is only present on some entries
        direction = (
            direction_from_marker(marker)
            if marker in ("DEBIT", "CREDIT")
            else (Direction.DEBIT if amount < 0 else Direction.CREDIT)
        )
        return make_entry(
            date=item["date"],
            description=item.get("description"),
            amount_minor_units=amount,
            direction=direction,
            reference=item.get("id") or item.get("paymentId"),
        )

    async def execute_transfer(
        self, account: Account, request: TransferRequest
    ) -> TransferResult:
        require_capability(self, Operation.TRANSFER)
        body: dict[str, Any] = {
            "value": major_units(request.amount_minor_units),
            "description": request.description,
            "externalReference": request.idempotency_token,
        }
        if request.method == TransferMethod.INSTANT:
            body["operationType"] = "PIX"
            body["pixAddressKey"] = request.destination
            body["pixAddressKeyType"] = (request.destination_key_type or "EMAIL").upper()
        else:
            bank = request.bank_account
            if bank is None:
                raise ProviderRejection(self.provider_name, "bank account details required", "DESTINATION")
            body["operationType"] = "TED"
            body["bankAccount"] = {
                "bank": {"code": bank.bank_code},
                "accountName": bank.holder_name,
                "ownerName": bank.holder_name,
                "cpfCnpj": bank.holder_document,
                "agency": bank.branch,
                "account": bank.account_number,
                "accountDigit": bank.account_digit,
                "bankAccountType": (
                    "CONTA_CORRENTE" if bank.account_type == "checking" else "CONTA_POUPANCA"
                ),
            }

        try:
            result = await self.request(
                "POST", "/v3/transfers", json=body, idempotency_token=request.idempotency_token
            )
        except ProviderRequestError as exc:
            if exc.status_code == 409:
                raise await self.duplicate(request, self._find_transfer) from exc
            raise ProviderRejection(
                self.provider_name, _error_description(exc.payload), _error_code(exc.payload)
            ) from exc

        return self._result(result, request)

    async def _find_transfer(self, request: TransferRequest) -> TransferResult | None:
        body = await self.request(
            "GET", "/v3/transfers", params={"externalReference": request.idempotency_token}
        )
        matches = body.get("data") if isinstance(body, dict) else None
        if not isinstance(matches, list) or not matches:
            return None
        return self._result(matches[0], request)

    def _result(self, payload: Any, request: TransferRequest) -> TransferResult:
        try:
            return TransferResult(
                status=TRANSFER_STATUS_MAP[str(payload["status"]).upper()],
                external_id=str(payload["id"]),
                amount_minor_units=to_minor_units(
                    payload.get("value", major_units(request.amount_minor_units))
                ),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise ProviderResponseError(self.provider_name, "unexpected transfer payload", payload) from exc


def _error_description(payload: Any) -> str:
    errors = payload.get("errors") if isinstance(payload, dict) else None
    if errors and isinstance(errors, list) and isinstance(errors[0], dict):
        return str(errors[0].get("description") or "transfer refused")
    return "transfer refused"


def _error_code(payload: Any) -> str | None:
    errors = payload.get("errors") if isinstance(payload, dict) else None
    if errors and isinstance(errors, list) and isinstance(errors[0], dict):
        code = errors[0].get("code")
        return str(code) if code else None
    return None
