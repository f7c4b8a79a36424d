"""Shared HTTP plumbing for remote provider adapters.

Wraps ``httpx.AsyncClient`` and converts transport and status failures
into ProviderError subclasses. Response bodies are decoded with
``Decimal`` floats so money never passes through binary floating point.
"""

from __future__ import annotations

import asyncio
import datetime
import json as jsonlib
import logging
import ssl
import time
from decimal import Decimal
from typing import Any, Awaitable, Callable

import httpx

from finance_gateway.gateway.config import ProviderConfig
from finance_gateway.gateway.types import TransferRequest, TransferResult
from finance_gateway.providers.base import (
    DuplicateSubmission,
    ProviderAuthError,
    ProviderError,
    ProviderResponseError,
    ProviderUnavailableError,
)

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = {408, 425, 429}


class ProviderRequestError(ProviderError):
    """Non-retryable 4xx other than an auth failure.

    Adapters decide what it means: a rejection for transfers, an
    unexpected response for reads.
    """

    def __init__(self, provider: str, status_code: int, payload: Any = None):
        self.status_code = status_code
        self.payload = payload
        super().__init__(provider, f"HTTP {status_code}")


def decode_json(provider: str, response: httpx.Response) -> Any:
    """Decode a JSON body, keeping decimals exact."""
    if not response.content:
        return {}
    try:
        return jsonlib.loads(response.content, parse_float=Decimal)
    except ValueError as exc:
        raise ProviderResponseError(
            provider, "response body is not valid JSON", payload=response.text[:500]
        ) from exc


class OAuthClientCredentials:
    """OAuth2 client-credentials token cache.

    One token is shared by all requests of an adapter and refreshed
    shortly before it expires.
    """

    def __init__(
        self,
        token_url: str,
        client_id: str,
        client_secret: str,
        scopes: list[str] | None = None,
        refresh_margin_seconds: float = 30.0,
        credentials_in_body: bool = False,
    ):
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.scopes = scopes or []
        self.refresh_margin_seconds = refresh_margin_seconds
        self.credentials_in_body = credentials_in_body
        self._token: str | None = None
        self._expires_at = 0.0
        self._lock = asyncio.Lock()

    async def token(self, provider: str, client: httpx.AsyncClient) -> str:
        async with self._lock:
            if self._token and time.monotonic() < self._expires_at:
                return self._token

            data = {"grant_type": "client_credentials"}
            if self.scopes:
                data["scope"] = " ".join(self.scopes)
            auth = None
            if self.credentials_in_body:
                data["client_id"] = self.client_id
                data["client_secret"] = self.client_secret
            else:
                auth = (self.client_id, self.client_secret)
            try:
                response = await client.post(self.token_url, data=data, auth=auth)
            except httpx.TimeoutException as exc:
                raise ProviderUnavailableError(provider, "token request timed out") from exc
            except httpx.TransportError as exc:
                raise ProviderUnavailableError(provider, "token request failed") from exc

            if response.status_code in (400, 401, 403):
                raise ProviderAuthError(provider, "client credentials rejected")
            if response.status_code >= 500 or response.status_code in RETRYABLE_STATUSES:
                raise ProviderUnavailableError(
                    provider, f"token endpoint returned HTTP {response.status_code}"
                )

            body = decode_json(provider, response)
            token = body.get("access_token") if isinstance(body, dict) else None
            if not token:
                raise ProviderResponseError(provider, "token response without access_token")

            expires_in = float(body.get("expires_in", 300))
            self._token = str(token)
            self._expires_at = time.monotonic() + max(
                expires_in - self.refresh_margin_seconds, 0.0
            )
            return self._token

    def invalidate(self) -> None:
        self._token = None
        self._expires_at = 0.0


class HttpProvider:
    """Base class for adapters that talk to a provider over HTTPS.

    Subclasses set ``provider_name``, ``production_url`` and
    ``sandbox_url`` and override ``auth_headers``.
    """

    provider_name: str = "http"
    production_url: str = ""
    sandbox_url: str = ""
    idempotency_header: str = "Idempotency-Key"

    def __init__(
        self,
        config: ProviderConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], datetime.datetime] | None = None,
    ):
        self.config = config
        self.base_url = config.base_url or (
            self.sandbox_url if config.sandbox else self.production_url
        )
        self._transport = transport
        self._clock = clock or (lambda: datetime.datetime.now(datetime.timezone.utc))
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.config.timeout_seconds,
                transport=self._transport,
                headers={"Accept": "application/json"},
                **self.client_options(),
            )
        return self._client

    def client_options(self) -> dict[str, Any]:
        """Extra keyword arguments for the underlying AsyncClient.

        Banks that require mTLS take PEM paths in the ``certificate`` and
        ``certificate_key`` options.
        """
        cert = self.config.options.get("certificate")
        if not cert:
            return {}
        context = ssl.create_default_context()
        context.load_cert_chain(cert, self.config.options.get("certificate_key"))
        return {"verify": context}

    def now(self) -> datetime.datetime:
        return self._clock()

    def credential(self, key: str) -> str:
        """Fetch a required credential or fail as an auth problem."""
        value = self.config.credentials.get(key)
        if not value:
            raise ProviderAuthError(self.provider_name, f"missing credential '{key}'")
        return value

    async def auth_headers(self) -> dict[str, str]:
        return {}

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        idempotency_token: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Raises:
            ProviderUnavailableError: timeout, connection error, 5xx, 429.
            ProviderAuthError: 401/403.
            ProviderRequestError: any other 4xx.
            ProviderResponseError: undecodable body.
        """
        merged = {**(await self.auth_headers()), **(headers or {})}
        if idempotency_token:
            merged[self.idempotency_header] = idempotency_token
        if json is not None:
            json = _jsonable(json)

        try:
            response = await self.client.request(
                method, path, params=params, json=json, headers=merged
            )
        except httpx.TimeoutException as exc:
            raise ProviderUnavailableError(
                self.provider_name, f"{method} {path} timed out"
            ) from exc
        except httpx.TransportError as exc:
            raise ProviderUnavailableError(
                self.provider_name, f"{method} {path} failed: {type(exc).__name__}"
            ) from exc

        status = response.status_code
        if status in (401, 403):
            self.on_auth_rejected()
            raise ProviderAuthError(self.provider_name, f"{method} {path} returned HTTP {status}")
        if status >= 500 or status in RETRYABLE_STATUSES:
            logger.warning(
                "provider_http_retryable_status",
                extra={"provider": self.provider_name, "path": path, "status": status},
            )
            raise ProviderUnavailableError(
                self.provider_name, f"{method} {path} returned HTTP {status}"
            )
        if status >= 400:
            payload = _safe_payload(response)
            raise ProviderRequestError(self.provider_name, status, payload)

        return decode_json(self.provider_name, response)

    def on_auth_rejected(self) -> None:
        """Hook for adapters that cache tokens."""

    async def duplicate(
        self,
        request: TransferRequest,
        lookup: Callable[[TransferRequest], Awaitable[TransferResult | None]],
    ) -> DuplicateSubmission:
        """Error for a token the provider has already processed.

        ``lookup`` searches the provider for the transfer recorded under
        the token and the result rides on the error as the original. When
        the lookup fails the original stays unknown.
        """
        try:
            original = await lookup(request)
        except ProviderError as exc:
            logger.warning(
                "duplicate_lookup_failed",
                extra={
                    "provider": self.provider_name,
                    "idempotency_token": request.idempotency_token,
                    "error": exc.message,
                },
            )
            original = None
        return DuplicateSubmission(
            self.provider_name, request.idempotency_token, original=original
        )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def _jsonable(value: Any) -> Any:
    """Make Decimal payload values JSON-serializable as numbers."""
    if isinstance(value, Decimal):
        return float(value) if value != value.to_integral_value() else int(value)
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def _safe_payload(response: httpx.Response) -> Any:
    try:
        return jsonlib.loads(response.content, parse_float=Decimal) if response.content else None
    except ValueError:
        return response.text[:500]


def major_units(amount_minor_units: int) -> Decimal:
    """Cents to a two-place Decimal in major units for providers that want reais."""
    return (Decimal(amount_minor_units) / 100).quantize(Decimal("0.01"))
