"""Adapter for the incumbent banks' open APIs.

Itaú, Bradesco, Caixa, Santander, Sicoob and Safra expose the same
banking surface with different paths and field names: OAuth2 client
credentials, a ``saldo`` balance, ``lancamentos`` statements and PIX
payments. One adapter class serves all of them, driven by a BankProfile.
Wire transfers are not available through these APIs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from finance_gateway.gateway.capabilities import Capabilities, Operation
from finance_gateway.gateway.config import ProviderConfig
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

# BACEN PIX vocabulary shared by every bank
REJECTED_STATUSES = {"NAO_REALIZADO", "CANCELADO"}


@dataclass(frozen=True)
class BankProfile:
    """Endpoints and field names of one bank's API."""

    name: str
    production_url: str
    sandbox_url: str
    production_token_url: str
    sandbox_token_url: str
    balance_path: str
    statement_path: str
    pix_path: str
    done_status: str
    available_field: str = "saldoDisponivel"
    entry_date_field: str = "data"
    entry_type_field: str = "tipo"
    entry_reference_field: str = "documento"

    def transfer_status(self, raw: str) -> TransferStatus:
        status = raw.strip().upper()
        if status == self.done_status:
            return TransferStatus.CONFIRMED
        if status in REJECTED_STATUSES:
            return TransferStatus.REJECTED
        return TransferStatus.PENDING


BANK_PROFILES: dict[str, BankProfile] = {
    "itau": BankProfile(
        name="itau",
        production_url="https://secure.api.itau",
        sandbox_url="https://devportal.itau.com.br/sandboxapi",
        production_token_url="https://sts.itau.com.br/api/oauth/token",
        sandbox_token_url="https://devportal.itau.com.br/api/jwt",
        balance_path="/saldo/v1/saldo",
        statement_path="/extrato/v1/extrato",
        pix_path="/pix/v2/pix",
        done_status="REALIZADO",
        available_field="saldo_disponivel",
        entry_date_field="data_lancamento",
        entry_type_field="tipo_lancamento",
        entry_reference_field="numero_documento",
    ),
    "bradesco": BankProfile(
        name="bradesco",
        production_url="https://openapi.bradesco.com.br",
        sandbox_url="https://proxy.api.prebanco.com.br",
        production_token_url="https://openapi.bradesco.com.br/auth/server/v1.1/token",
        sandbox_token_url="https://proxy.api.prebanco.com.br/auth/server/v1.1/token",
        balance_path="/v1/contas/saldo",
        statement_path="/v1/contas/extrato",
        pix_path="/v1/spi/pix/pagamento",
        done_status="CONCLUIDO",
        entry_date_field="dataLancamento",
        entry_type_field="tipoLancamento",
    ),
    "caixa": BankProfile(
        name="caixa",
        production_url="https://api.caixa.gov.br",
        sandbox_url="https://testeopn.caixa.gov.br",
        production_token_url="https://api.caixa.gov.br/oauth/v2/token",
        sandbox_token_url="https://testeopn.caixa.gov.br/oauth/v2/token",
        balance_path="/contas/v1/saldo",
        statement_path="/contas/v1/extrato",
        pix_path="/pix/v2/pix",
        done_status="CONCLUIDA",
    ),
    "santander": BankProfile(
        name="santander",
        production_url="https://trust-open.api.santander.com.br",
        sandbox_url="https://trust-sandbox.api.santander.com.br",
        production_token_url="https://trust-open.api.santander.com.br/auth/oauth/v2/token",
        sandbox_token_url="https://trust-sandbox.api.santander.com.br/auth/oauth/v2/token",
        balance_path="/api/v1/contas/saldo",
        statement_path="/api/v1/contas/extrato",
        pix_path="/api/v1/pix/pagamento",
        done_status="CONCLUIDA",
    ),
    "sicoob": BankProfile(
        name="sicoob",
        production_url="https://api.sicoob.com.br",
        sandbox_url="https://sandbox.sicoob.com.br",
        production_token_url=(
            "https://auth.sicoob.com.br/auth/realms/cooperado/protocol/openid-connect/token"
        ),
        sandbox_token_url=(
            "https://sandbox.sicoob.com.br/auth/realms/cooperado/protocol/openid-connect/token"
        ),
        balance_path="/conta-corrente/v1/saldo",
        statement_path="/conta-corrente/v1/extrato",
        pix_path="/pix/api/v2/pix",
        done_status="REALIZADO",
        entry_date_field="dataLancamento",
        entry_type_field="tipoLancamento",
        entry_reference_field="numerodocumento",
    ),
    "safra": BankProfile(
        name="safra",
        production_url="https://api.safra.com.br",
        sandbox_url="https://api-sandbox.safra.com.br",
        production_token_url="https://api.safra.com.br/oauth/token",
        sandbox_token_url="https://api-sandbox.safra.com.br/oauth/token",
        balance_path="/conta/v1/saldo",
        statement_path="/conta/v1/extrato",
        pix_path="/pix/v2/pix",
        done_status="REALIZADO",
    ),
}


class OpenBankingProvider(HttpProvider):
    """Balance, statement and PIX payments for a bank in BANK_PROFILES."""

    def __init__(self, config: ProviderConfig, **kwargs):
        try:
            self.profile = BANK_PROFILES[config.provider_type]
        except KeyError:
            raise ValueError(f"No bank profile for {config.provider_type!r}") from None
        self.provider_name = self.profile.name
        self.production_url = self.profile.production_url
        self.sandbox_url = self.profile.sandbox_url
        super().__init__(config, **kwargs)
        if config.options.get("token_url"):
            token_url = config.options["token_url"]
        elif config.base_url:
            token_url = config.base_url + _path_of(self.profile.production_token_url)
        else:
            token_url = (
                self.profile.sandbox_token_url if config.sandbox else self.profile.production_token_url
            )
        self.oauth = OAuthClientCredentials(
            token_url=token_url,
            client_id=config.credentials.get("client_id", ""),
            client_secret=config.credentials.get("client_secret", ""),
            scopes=list(config.options.get("scopes") or []),
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
        return {"Authorization": f"Bearer {token}"}

    def on_auth_rejected(self) -> None:
        self.oauth.invalidate()

    async def fetch_balance(self, account: Account) -> BalanceSnapshot:
        require_capability(self, Operation.BALANCE)
        body = await self.request("GET", self.profile.balance_path)
        try:
            saldo = body["saldo"]
            if isinstance(saldo, dict):
                # {"saldo": {"disponivel": ..., "bloqueado": ...}}
                available = to_minor_units(saldo.get("disponivel") or 0)
                blocked = to_minor_units(saldo["bloqueado"]) if saldo.get("bloqueado") else None
            else:
                available = to_minor_units(body.get(self.profile.available_field) or saldo)
                blocked = None
            return BalanceSnapshot(
                available=available,
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
            self.profile.statement_path,
            params={
                "dataInicio": date_range.start.isoformat(),
                "dataFim": date_range.end.isoformat(),
            },
        )
        try:
            entries = [self._entry(item) for item in body.get("lancamentos") or []]
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise ProviderResponseError(self.provider_name, "unexpected statement payload", body) from exc
        return build_statement(date_range, entries)

    def _entry(self, item: dict[str, Any]) -> StatementEntry:
        profile = self.profile
        return make_entry(
            date=item[profile.entry_date_field],
            description=item.get("descricao"),
            amount_minor_units=to_minor_units(item["valor"]),
            direction=direction_from_marker(item[profile.entry_type_field]),
            reference=item.get(profile.entry_reference_field),
        )

    async def execute_transfer(
        self, account: Account, request: TransferRequest
    ) -> TransferResult:
        require_capability(self, Operation.TRANSFER)
        if request.method != TransferMethod.INSTANT:
            raise UnsupportedByProvider(
                self.provider_name,
                "outbound_transfer",
                "only PIX payments are available through the bank API",
            )
        body = {
            "valor": major_units(request.amount_minor_units),
            "descricao": request.description,
            "chave": request.destination,
        }
        try:
            result = await self.request(
                "POST",
                self.profile.pix_path,
                json=body,
                idempotency_token=request.idempotency_token,
            )
        except ProviderRequestError as exc:
            if exc.status_code == 409:
                raise await self.duplicate(request, self._find_transfer) from exc
            raise ProviderRejection(
                self.provider_name, _detail(exc.payload), str(exc.status_code)
            ) from exc

        return self._result(result, request)

    async def _find_transfer(self, request: TransferRequest) -> TransferResult | None:
        """Read back the payment the bank recorded under the idempotency header."""
        try:
            body = await self.request(
                "GET", self.profile.pix_path, idempotency_token=request.idempotency_token
            )
        except ProviderRequestError as exc:
            if exc.status_code == 404:
                return None
            raise
        return self._result(body, request)

    def _result(self, payload: Any, request: TransferRequest) -> TransferResult:
        try:
            external_id = payload["endToEndId"]
            if not external_id:
                raise KeyError("endToEndId")
            return TransferResult(
                status=self.profile.transfer_status(str(payload.get("status") or "")),
                external_id=str(external_id),
                amount_minor_units=request.amount_minor_units,
            )
        except (KeyError, TypeError, AttributeError) as exc:
            raise ProviderResponseError(self.provider_name, "unexpected payment payload", payload) from exc


def _path_of(url: str) -> str:
    return "/" + url.split("://", 1)[-1].split("/", 1)[-1]


def _detail(payload: Any) -> str:
    if isinstance(payload, dict):
        return str(
            payload.get("detail")
            or payload.get("mensagem")
            or payload.get("message")
            or "payment refused"
        )
    return "payment refused"
