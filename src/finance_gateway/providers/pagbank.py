"""PagBank (PagSeguro) adapter.

Amounts are integer cents on the wire. No statement API.
"""

from __future__ import annotations

from typing import Any

from finance_gateway.gateway.capabilities import Capabilities, Operation
from finance_gateway.gateway.normalization import ensure_minor_units
from finance_gateway.gateway.types import (
    Account,
    BalanceSnapshot,
    DateRange,
    Statement,
    TransferMethod,
    TransferRequest,
    TransferResult,
    TransferStatus,
)
from finance_gateway.providers.base import (
    ProviderRejection,
    ProviderResponseError,
    UnsupportedByProvider,
    require_capability,
    require_ordered,
)
from finance_gateway.providers.http import HttpProvider, ProviderRequestError

PAYOUT_STATUS_MAP: dict[str, TransferStatus] = {
    "COMPLETED": TransferStatus.CONFIRMED,
    "PAID": TransferStatus.CONFIRMED,
    "WAITING": TransferStatus.PENDING,
    "IN_ANALYSIS": TransferStatus.PENDING,
    "PROCESSING": TransferStatus.PENDING,
    "DECLINED": TransferStatus.REJECTED,
    "CANCELED": TransferStatus.REJECTED,
}


class PagBankProvider(HttpProvider):
    provider_name = "pagbank"
    production_url = "https://api.pagseguro.com"
    sandbox_url = "https://sandbox.api.pagseguro.com"

    def capabilities(self) -> Capabilities:
        return Capabilities(
            instant_transfer_in=True,
            voucher_billing=True,
            credit_card=True,
            debit_card=True,
            recurring_billing=True,
            payment_split=False,
            outbound_transfer=True,
            balance_inquiry=True,
            statement_retrieval=False,
        )

    async def auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.credential('token')}"}

    async def fetch_balance(self, account: Account) -> BalanceSnapshot:
        require_capability(self, Operation.BALANCE)
        body = await self.request("GET", "/wallet/balance")
        try:
            balances = body.get("balances") or []
            available = ensure_minor_units(balances[0]["amount"]["value"]) if balances else 0
            currency = (balances[0]["amount"].get("currency") if balances else None) or "BRL"
        except (KeyError, IndexError, TypeError, ValueError, AttributeError) as exc:
            raise ProviderResponseError(self.provider_name, "unexpected balance payload", body) from exc
        return BalanceSnapshot(
            available=available,
            pending=0,
            currency=currency,
            fetched_at=self.now(),
        )

    async def fetch_statement(self, account: Account, date_range: DateRange) -> Statement:
        require_ordered(self.provider_name, date_range)
        raise UnsupportedByProvider(
            self.provider_name,
            "statement_retrieval",
            "PagBank does not expose a statement API",
        )

    async def execute_transfer(
        self, account: Account, request: TransferRequest
    ) -> TransferResult:
        require_capability(self, Operation.TRANSFER)
        body: dict[str, Any] = {
            "reference_id": request.idempotency_token,
            "amount": {"value": request.amount_minor_units, "currency": "BRL"},
            "description": request.description,
        }
        if request.method == TransferMethod.INSTANT:
            body["destination"] = {"type": "PIX", "key": request.destination}
        elif request.bank_account is not None:
            bank = request.bank_account
            body["destination"] = {
                "type": "BANK_ACCOUNT",
                "bank_account": {
                    "bank": bank.bank_code,
                    "agency": bank.branch,
                    "account": bank.account_number,
                    "account_digit": bank.account_digit,
                    "type": "CACC" if bank.account_type == "checking" else "SVGS",
                    "holder": {"name": bank.holder_name, "tax_id": bank.holder_document},
                },
            }
        # No destination: PagBank pays out to the account's registered bank account

        try:
            result = await self.request(
                "POST", "/payouts", json=body, idempotency_token=request.idempotency_token
            )
        except ProviderRequestError as exc:
            if exc.status_code == 409:
                raise await self.duplicate(request, self._find_transfer) from exc
            raise ProviderRejection(
                self.provider_name, _describe(exc.payload), _code(exc.payload)
            ) from exc

        return self._result(result, request)

    async def _find_transfer(self, request: TransferRequest) -> TransferResult | None:
        body = await self.request(
            "GET", "/payouts", params={"reference_id": request.idempotency_token}
        )
        payouts = body.get("payouts") if isinstance(body, dict) else None
        if not isinstance(payouts, list) or not payouts:
            return None
        return self._result(payouts[0], request)

    def _result(self, payload: Any, request: TransferRequest) -> TransferResult:
        try:
            return TransferResult(
                status=PAYOUT_STATUS_MAP.get(str(payload["status"]).upper(), TransferStatus.PENDING),
                external_id=str(payload["id"]),
                amount_minor_units=request.amount_minor_units,
            )
        except (KeyError, TypeError) as exc:
            raise ProviderResponseError(self.provider_name, "unexpected payout payload", payload) from exc


def _first_error(payload: Any) -> dict[str, Any]:
    if isinstance(payload, dict):
        messages = payload.get("error_messages")
        if isinstance(messages, list) and messages and isinstance(messages[0], dict):
            return messages[0]
    return {}


def _describe(payload: Any) -> str:
    return str(_first_error(payload).get("description") or "payout refused")


def _code(payload: Any) -> str | None:
    code = _first_error(payload).get("code")
    return str(code) if code else None
