"""Stable error taxonomy surfaced by the gateway facade.

Callers only ever see these errors. Provider-specific failures are
raised by adapters as ``finance_gateway.providers.base.ProviderError``
subclasses and mapped here by the facade.
"""

from __future__ import annotations

from typing import Any


class GatewayError(Exception):
    """Base class for every error the facade surfaces."""

    code: str = "gateway_error"
    http_status: int = 500
    retryable: bool = False

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = context
        super().__init__(message)

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class AccountNotFound(GatewayError):
    """Account id does not resolve for the caller's tenant."""

    code = "account_not_found"
    http_status = 404

    def __init__(self, account_id: str, tenant_id: str | None = None):
        self.account_id = account_id
        self.tenant_id = tenant_id
        super().__init__(f"Account '{account_id}' not found")


class CapabilityUnsupported(GatewayError):
    """Operation not supported by the account's provider."""

    code = "capability_unsupported"
    http_status = 422

    def __init__(self, account_id: str, capability: str, reason: str | None = None):
        self.account_id = account_id
        self.capability = capability
        msg = f"Account '{account_id}' does not support '{capability}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class ValidationError(GatewayError):
    """Malformed caller input."""

    code = "validation_error"
    http_status = 400

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class AuthFailure(GatewayError):
    """Provider rejected the configured credentials. Not user-fixable."""

    code = "auth_failure"
    http_status = 502


class ProviderUnavailable(GatewayError):
    """Transient transport failure, including timeouts."""

    code = "provider_unavailable"
    http_status = 503
    retryable = True


class TransferRejected(GatewayError):
    """Provider-side business-rule denial. Terminal."""

    code = "transfer_rejected"
    http_status = 422


class DuplicateRequest(GatewayError):
    """Provider reported a repeated idempotency token with no recoverable original."""

    code = "duplicate_request"
    http_status = 409


class TransferNotFound(GatewayError):
    """No transfer recorded under the given token for the account."""

    code = "transfer_not_found"
    http_status = 404

    def __init__(self, account_id: str, idempotency_token: str):
        self.account_id = account_id
        self.idempotency_token = idempotency_token
        super().__init__(
            f"No transfer with token '{idempotency_token}' for account '{account_id}'"
        )


class UnknownProviderResponse(GatewayError):
    """Provider response could not be mapped into the common model."""

    code = "unknown_provider_response"
    http_status = 502

    def __init__(self, provider: str, operation: str):
        self.provider = provider
        self.operation = operation
        super().__init__(
            f"Provider '{provider}' returned an unexpected response for {operation}"
        )


class ProviderNotRegistered(GatewayError):
    """Account references a provider with no registered adapter."""

    code = "provider_not_registered"
    http_status = 500

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"No adapter registered for provider '{provider}'")


ERROR_TYPES: tuple[type[GatewayError], ...] = (
    AccountNotFound,
    CapabilityUnsupported,
    ValidationError,
    AuthFailure,
    ProviderUnavailable,
    TransferRejected,
    DuplicateRequest,
    TransferNotFound,
    UnknownProviderResponse,
    ProviderNotRegistered,
)
