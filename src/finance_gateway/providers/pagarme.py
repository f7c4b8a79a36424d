"""Pagar.me adapter (core v5).

Balances and transfers are per recipient. The recipient id comes from
the account's ``external_ref``, falling back to the provider option
``recipient_id``. Transfers always settle into the recipient's
registered bank account, so only wire transfers without explicit bank
details are accepted.
"""

from __future__ import annotations

import base64
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

TRANSFER_STATUS_MAP: dict[str, TransferStatus] = {
    "transferred": TransferStatus.CONFIRMED,
    "pending_transfer": TransferStatus.PENDING,
    "processing": TransferStatus.PENDING,
    "failed": TransferStatus.REJECTED,
    "canceled": TransferStatus.REJECTED,
}

LOOKUP_PAGE_SIZE = 100


class PagarMeProvider(HttpProvider):
    provider_name = "pagarme"
    production_url = "https://api.pagar.me/core/v5"
    sandbox_url = "https://api.pagar.me/core/v5"  # test keys select the sandbox

    def capabilities(self) -> Capabilities:
        return Capabilities(
            instant_transfer_in=True,
            voucher_billing=True,
            credit_card=True,
            debit_card=True,
            recurring_billing=True,
            payment_split=True,
            outbound_transfer=True,
            balance_inquiry=True,
            statement_retrieval=False,
        )

    async def auth_headers(self) -> dict[str, str]:
        encoded = base64.b64encode(f"{self.credential('api_key')}:".encode()).decode()
        return {"Authorization": f"Basic {encoded}"}

    def recipient_id(self, account: Account) -> str:
        recipient = account.external_ref or self.config.options.get("recipient_id")
        if not recipient:
            raise ProviderResponseError(
                self.provider_name,
                f"no recipient configured for account {account.account_id}",
            )
        return str(recipient)

    async def fetch_balance(self, account: Account) -> BalanceSnapshot:
        require_capability(self, Operation.BALANCE)
        body = await self.request("GET", f"/recipients/{self.recipient_id(account)}/balance")
        try:
            available = ensure_minor_units((body.get("available") or {}).get("amount", 0))
            pending = ensure_minor_units((body.get("waiting_funds") or {}).get("amount", 0))
        except (TypeError, ValueError, AttributeError) as exc:
            raise ProviderResponseError(self.provider_name, "unexpected balance payload", body) from exc
        return BalanceSnapshot(
            available=available,
            pending=pending,
            currency=str(body.get("currency") or "BRL"),
            fetched_at=self.now(),
        )

    async def fetch_statement(self, account: Account, date_range: DateRange) -> Statement:
        require_ordered(self.provider_name, date_range)
        raise UnsupportedByProvider(
            self.provider_name,
            "statement_retrieval",
            "Pagar.me exposes balance operations, not a statement",
        )

    async def execute_transfer(
        self, account: Account, request: TransferRequest
    ) -> TransferResult:
        require_capability(self, Operation.TRANSFER)
        if request.method == TransferMethod.INSTANT or request.bank_account is not None:
            raise UnsupportedByProvider(
                self.provider_name,
                "outbound_transfer",
                "transfers only settle into the recipient's registered bank account",
            )

        body: dict[str, Any] = {
            "amount": request.amount_minor_units,
            "source_id": self.recipient_id(account),
            "metadata": {"idempotency_token": request.idempotency_token},
        }
        try:
            result = await self.request(
                "POST", "/transfers", json=body, idempotency_token=request.idempotency_token
            )
        except ProviderRequestError as exc:
            if exc.status_code == 409:
                raise await self.duplicate(
                    request, lambda req: self._find_transfer(account, req)
                ) from exc
            message = exc.payload.get("message") if isinstance(exc.payload, dict) else None
            raise ProviderRejection(
                self.provider_name, str(message or "transfer refused"), str(exc.status_code)
            ) from exc

        return self._result(result, request)

    async def _find_transfer(
        self, account: Account, request: TransferRequest
    ) -> TransferResult | None:
        """Search the recipient's recent transfers for the token in metadata."""
        body = await self.request(
            "GET",
            f"/recipients/{self.recipient_id(account)}/transfers",
            params={"size": LOOKUP_PAGE_SIZE},
        )
        transfers = body.get("data") if isinstance(body, dict) else None
        for item in transfers if isinstance(transfers, list) else []:
            metadata = item.get("metadata") if isinstance(item, dict) else None
            if isinstance(metadata, dict) and metadata.get("idempotency_token") == request.idempotency_token:
                return self._result(item, request)
        return None

    def _result(self, payload: Any, request: TransferRequest) -> TransferResult:
        try:
            return TransferResult(
                status=TRANSFER_STATUS_MAP.get(str(payload["status"]).lower(), TransferStatus.PENDING),
                external_id=str(payload["id"]),
                amount_minor_units=ensure_minor_units(payload.get("amount", request.amount_minor_units)),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ProviderResponseError(self.provider_name, "unexpected transfer payload", payload) from exc
