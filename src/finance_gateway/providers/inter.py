"""Banco Inter adapter (banking v2).

OAuth2 client credentials plus mTLS. Set the ``certificate`` and
``certificate_key`` options to the PEM paths issued by Inter; without
them the client connects without a client certificate, which only the
UAT environment accepts.
"""

from __future__ import annotations

import logging
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
from finance_gateway.providers.http import (
    HttpProvider,
    OAuthClientCredentials,
    ProviderRequestError,
    major_units,
)

logger = logging.getLogger(__name__)

SCOPES = ["extrato.read", "pagamento-pix.write", "pagamento-pix.read", "pagamento-ted.write"]

STATUS_MAP: dict[str, TransferStatus] = {
    "REALIZADO": TransferStatus.CONFIRMED,
    "APROVADO": TransferStatus.PENDING,
    "AGENDADO": TransferStatus.PENDING,
    "PROCESSANDO": TransferStatus.PENDING,
    "EM_PROCESSAMENTO": TransferStatus.PENDING,
    "NEGADO": TransferStatus.REJECTED,
    "CANCELADO": TransferStatus.REJECTED,
}


class InterProvider(HttpProvider):
    """Banco Inter PJ adapter."""

    provider_name = "inter"
    production_url = "https://cdpj.partners.bancointer.com.br"
    sandbox_url = "https://cdpj.partners.uatbi.com.br"
    idempotency_header = "x-id-idempotente"

    def __init__(self, config, **kwargs):
        super().__init__(config, **kwargs)
        self.oauth = OAuthClientCredentials(
            token_url=f"{self.base_url}/oauth/v2/token",
            client_id=config.credentials.get("client_id", ""),
            client_secret=config.credentials.get("client_secret", ""),
            scopes=SCOPES,
            refresh_margin_seconds=60.0,
            credentials_in_body=True,
        )

    def capabilities(self) -> Capabilities:
        return Capabilities(
            instant_transfer_in=True,
            voucher_billing=True,
            outbound_transfer=True,
            balance_inquiry=True,
            statement_retrieval=True,
        )

    async def auth_headers(self) -> dict[str, str]:
        self.credential("client_id")
        self.credential("client_secret")
        token = await self.oauth.token(self.provider_name, self.client)
        headers = {"Authorization": f"Bearer {token}"}
        account_number = self.config.options.get("account_number")
        if account_number:
            headers["x-conta-corrente"] = str(account_number)
        return headers

    def on_auth_rejected(self) -> None:
        self.oauth.invalidate()

    async def fetch_balance(self, account: Account) -> BalanceSnapshot:
        require_capability(self, Operation.BALANCE)
        body = await self.request("GET", "/banking/v2/saldo")
        try:
            blocked = to_minor_units(body.get("bloqueadoCheque") or 0) + to_minor_units(
                body.get("bloqueadoJudicialmente") or 0
            )
            return BalanceSnapshot(
                available=to_minor_units(body["disponivel"]),
                pending=0,
                blocked=blocked,
                currency="BRL",
                fetched_at=self.now(),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise ProviderResponseError(self.provider_name, "unexpected balance payload", body) from exc

    async def fetch_statement(self, account: Account, date_range: DateRange) -> Statement:
        require_ordered(self.provider_name, date_range)
        require_capability(self, Operation.STATEMENT)
        body = await self.request(
            "GET",
            "/banking/v2/extrato",
            params={
                "dataInicio": date_range.start.isoformat(),
                "dataFim": date_range.end.isoformat(),
            },
        )
        try:
            entries = [self._entry(t) for t in body.get("transacoes") or []]
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise ProviderResponseError(self.provider_name, "unexpected statement payload", body) from exc
        return build_statement(date_range, entries)

    def _entry(self, item: dict[str, Any]) -> StatementEntry:
        return make_entry(
            date=item["dataEntrada"],
            description=item.get("titulo") or item.get("descricao"),
            amount_minor_units=to_minor_units(item["valor"]),
            direction=direction_from_marker(item["tipoOperacao"]),
            reference=item.get("tipoTransacao"),
        )

    async def execute_transfer(
        self, account: Account, request: TransferRequest
    ) -> TransferResult:
        require_capability(self, Operation.TRANSFER)
        if request.method == TransferMethod.INSTANT:
            path = "/banking/v2/pix"
            body: dict[str, Any] = {
                "valor": major_units(request.amount_minor_units),
                "descricao": request.description,
                "destinatario": {"tipo": "CHAVE", "chave": request.destination},
            }
            id_field = "endToEndId"
        else:
            bank = request.bank_account
            if bank is None:
                raise ProviderRejection(self.provider_name, "bank account details required", "DESTINATION")
            path = "/banking/v2/ted"
            body = {
                "valor": major_units(request.amount_minor_units),
                "descricao": request.description,
                "contaCorrente": {
                    "banco": bank.bank_code,
                    "agencia": bank.branch,
                    "conta": bank.account_number,
                    "digitoConta": bank.account_digit,
                    "tipoConta": (
                        "CONTA_CORRENTE" if bank.account_type == "checking" else "CONTA_POUPANCA"
                    ),
                    "cpfCnpj": bank.holder_document,
                    "nome": bank.holder_name,
                },
            }
            id_field = "codigoTransacao"

        try:
            result = await self.request(
                "POST", path, json=body, idempotency_token=request.idempotency_token
            )
        except ProviderRequestError as exc:
            if exc.status_code == 409:
                raise await self.duplicate(
                    request, lambda req: self._find_transfer(path, id_field, req)
                ) from exc
            raise ProviderRejection(
                self.provider_name, _detail(exc.payload), str(exc.status_code)
            ) from exc

        return self._result(result, id_field, request)

    async def _find_transfer(
        self, path: str, id_field: str, request: TransferRequest
    ) -> TransferResult | None:
        """Ask Inter for the payment it recorded under the idempotency header."""
        try:
            body = await self.request("GET", path, idempotency_token=request.idempotency_token)
        except ProviderRequestError as exc:
            if exc.status_code == 404:
                return None
            raise
        return self._result(body, id_field, request)

    def _result(self, payload: Any, id_field: str, request: TransferRequest) -> TransferResult:
        try:
            raw_status = str(payload.get("status") or payload.get("tipoRetorno") or "").upper()
            external_id = payload.get(id_field) or payload.get("codigoSolicitacao")
            if not external_id:
                raise KeyError(id_field)
            return TransferResult(
                status=STATUS_MAP.get(raw_status, TransferStatus.PENDING),
                external_id=str(external_id),
                amount_minor_units=request.amount_minor_units,
            )
        except (KeyError, TypeError, AttributeError) as exc:
            raise ProviderResponseError(self.provider_name, "unexpected transfer payload", payload) from exc


def _detail(payload: Any) -> str:
    if isinstance(payload, dict):
        return str(payload.get("detail") or payload.get("title") or "transfer refused")
    return "transfer refused"
