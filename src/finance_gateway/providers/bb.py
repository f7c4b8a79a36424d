"""Banco do Brasil adapter.

Statement and batch payments. BB has no production balance API yet, so
``balance_inquiry`` is off and fetch_balance always refuses.
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
    Statement,
    TransferMethod,
    TransferRequest,
    TransferResult,
    TransferStatus,
)
from finance_gateway.providers.base import (
    DuplicateSubmission,
    ProviderRejection,
    ProviderResponseError,
    UnsupportedByProvider,
    require_capability,
    require_ordered,
)
from finance_gateway.providers.http import (
    HttpProvider,
    OAuthClientCredentials,
    ProviderRequestError,
    major_units,
)

PAYMENT_TYPE_PIX = 128
PAYMENT_TYPE_TED = 18

SCOPES = ["extratos.lancamentos-read", "pagamentos-lote.lotes-requisicao"]

# estadoRequisicao values of a payment batch
REQUEST_STATE_MAP: dict[int, TransferStatus] = {
    1: TransferStatus.CONFIRMED,
    2: TransferStatus.PENDING,
    3: TransferStatus.PENDING,
    4: TransferStatus.PENDING,
    5: TransferStatus.PENDING,
    6: TransferStatus.PENDING,
    7: TransferStatus.REJECTED,
    8: TransferStatus.PENDING,
    9: TransferStatus.PENDING,
    10: TransferStatus.PENDING,
}


class BancoDoBrasilProvider(HttpProvider):
    provider_name = "bb"
    production_url = "https://api.bb.com.br"
    sandbox_url = "https://api.hm.bb.com.br"

    def __init__(self, config, **kwargs):
        super().__init__(config, **kwargs)
        token_url = config.options.get("token_url") or (
            "https://oauth.hm.bb.com.br/oauth/token"
            if config.sandbox
            else "https://oauth.bb.com.br/oauth/token"
        )
        self.oauth = OAuthClientCredentials(
            token_url=token_url,
            client_id=config.credentials.get("client_id", ""),
            client_secret=config.credentials.get("client_secret", ""),
            scopes=SCOPES,
            refresh_margin_seconds=60.0,
        )

    def capabilities(self) -> Capabilities:
        return Capabilities(
            instant_transfer_in=True,
            voucher_billing=True,
            outbound_transfer=True,
            balance_inquiry=False,
            statement_retrieval=True,
        )

    async def auth_headers(self) -> dict[str, str]:
        self.credential("client_id")
        self.credential("client_secret")
        token = await self.oauth.token(self.provider_name, self.client)
        return {"Authorization": f"Bearer {token}"}

    def on_auth_rejected(self) -> None:
        self.oauth.invalidate()

    def _params(self, **params: Any) -> dict[str, Any]:
        app_key = self.config.credentials.get("developer_key")
        if app_key:
            params["gw-dev-app-key"] = app_key
        return params

    async def fetch_balance(self, account: Account) -> BalanceSnapshot:
        raise UnsupportedByProvider(
            self.provider_name,
            "balance_inquiry",
            "Banco do Brasil has no balance API",
        )

    async def fetch_statement(self, account: Account, date_range: DateRange) -> Statement:
        require_ordered(self.provider_name, date_range)
        require_capability(self, Operation.STATEMENT)
        body = await self.request(
            "GET",
            "/extratos/v1/lancamentos",
            params=self._params(
                dataInicio=date_range.start.isoformat(),
                dataFim=date_range.end.isoformat(),
            ),
        )
        try:
            entries = [
                make_entry(
                    date=item["dataLancamento"],
                    description=item.get("descricaoLancamento"),
                    amount_minor_units=to_minor_units(item["valorLancamento"]),
                    direction=direction_from_marker(item["indicadorTipoLancamento"]),
                    reference=item.get("numeroDocumento"),
                )
                for item in body.get("lancamentos") or []
            ]
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise ProviderResponseError(self.provider_name, "unexpected statement payload", body) from exc
        return build_statement(date_range, entries)

    async def execute_transfer(
        self, account: Account, request: TransferRequest
    ) -> TransferResult:
        require_capability(self, Operation.TRANSFER)
        payment: dict[str, Any] = {
            "valorPagamento": major_units(request.amount_minor_units),
            "descricaoPagamento": request.description,
        }
        if request.method == TransferMethod.INSTANT:
            payment["tipoPagamento"] = PAYMENT_TYPE_PIX
            payment["campoLivre"] = request.destination
        else:
            bank = request.bank_account
            if bank is None:
                raise ProviderRejection(self.provider_name, "bank account details required", "DESTINATION")
            payment.update(
                tipoPagamento=PAYMENT_TYPE_TED,
                codigoBancoFavorecido=bank.bank_code,
                agenciaFavorecido=bank.branch,
                contaPagamentoFavorecido=bank.account_number,
                digitoVerificadorContaPagamento=bank.account_digit,
                cpfCnpjFavorecido=bank.holder_document,
                nomeFavorecido=bank.holder_name,
            )

        try:
            result = await self.request(
                "POST",
                "/pagamentos/v1/lote-pagamentos",
                params=self._params(),
                json={"pagamentos": [payment]},
                idempotency_token=request.idempotency_token,
            )
        except ProviderRequestError as exc:
            if exc.status_code == 409:
                raise DuplicateSubmission(self.provider_name, request.idempotency_token) from exc
            raise ProviderRejection(
                self.provider_name, _message(exc.payload), str(exc.status_code)
            ) from exc

        try:
            state = int(result["estadoRequisicao"])
            return TransferResult(
                status=REQUEST_STATE_MAP.get(state, TransferStatus.PENDING),
                external_id=str(result["codigoSolicitacao"]),
                amount_minor_units=request.amount_minor_units,
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ProviderResponseError(self.provider_name, "unexpected payment payload", result) from exc


def _message(payload: Any) -> str:
    if isinstance(payload, dict):
        errors = payload.get("erros") or payload.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            return str(errors[0].get("mensagem") or errors[0].get("message") or "payment refused")
    return "payment refused"
