"""Base protocol and errors for financial provider adapters.

All provider adapters must implement the FinancialProvider protocol.
Adapters raise ProviderError subclasses; the gateway facade maps them
into the stable error taxonomy so callers never see provider shapes.
"""

from __future__ import annotations

from typing import Any, Protocol

from finance_gateway.gateway.capabilities import Capabilities, Operation, flag_for
from finance_gateway.gateway.types import (
    Account,
    BalanceSnapshot,
    DateRange,
    Statement,
    TransferRequest,
    TransferResult,
)


class ProviderError(Exception):
    """Base class for adapter-level failures."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        self.message = message
        super().__init__(f"[{provider}] {message}")


class ProviderUnavailableError(ProviderError):
    """Network failure, timeout, 5xx or throttling."""


class ProviderAuthError(ProviderError):
    """Provider rejected our credentials."""


class ProviderRejection(ProviderError):
    """Business-rule denial (insufficient funds, invalid destination, hold)."""

    def __init__(self, provider: str, message: str, reason_code: str | None = None):
        self.reason_code = reason_code
        super().__init__(provider, message)


class DuplicateSubmission(ProviderError):
    """Provider recognized an idempotency token it has already processed."""

    def __init__(
        self,
        provider: str,
        idempotency_token: str,
        original: TransferResult | None = None,
    ):
        self.idempotency_token = idempotency_token
        self.original = original
        super().__init__(provider, f"Duplicate submission for token {idempotency_token}")


class UnsupportedByProvider(ProviderError):
    """Operation or variant the provider cannot perform."""

    def __init__(self, provider: str, capability: str, message: str | None = None):
        self.capability = capability
        super().__init__(provider, message or f"'{capability}' not supported")


class InvalidRange(ProviderError):
    """Statement range with start after end."""


class ProviderResponseError(ProviderError):
    """Response could not be mapped into the common model."""

    def __init__(self, provider: str, message: str, payload: Any = None):
        self.payload = payload
        super().__init__(provider, message)


class FinancialProvider(Protocol):
    """Protocol for financial provider adapters.

    Each bank/PSP has its own adapter implementing this protocol. The
    gateway uses these adapters without knowing provider-specific
    details. Inputs arrive pre-validated; adapters still re-check their
    own capabilities and anything that depends on live provider state.
    """

    provider_name: str

    def capabilities(self) -> Capabilities:
        """Return everything the provider can do."""
        ...

    async def fetch_balance(self, account: Account) -> BalanceSnapshot:
        """Fetch the current balance of ``account``.

        Raises:
            ProviderUnavailableError: network failure or timeout.
            ProviderAuthError: credentials rejected.
            UnsupportedByProvider: provider has no balance API.
        """
        ...

    async def fetch_statement(self, account: Account, date_range: DateRange) -> Statement:
        """Fetch movements within the inclusive ``date_range``.

        The returned summary must be computed from the returned entries.

        Raises:
            InvalidRange: start after end.
            ProviderUnavailableError, ProviderAuthError, UnsupportedByProvider.
        """
        ...

    async def execute_transfer(
        self, account: Account, request: TransferRequest
    ) -> TransferResult:
        """Submit an outbound transfer.

        Must be idempotent per (account, request.idempotency_token): a
        repeat returns the original result or raises DuplicateSubmission.

        Raises:
            ProviderRejection: business-rule denial.
            ProviderUnavailableError, ProviderAuthError, UnsupportedByProvider.
        """
        ...


def require_capability(
    provider: FinancialProvider, operation: Operation
) -> None:
    """Raise UnsupportedByProvider unless the provider supports ``operation``."""
    if not provider.capabilities().supports(operation):
        raise UnsupportedByProvider(provider.provider_name, flag_for(operation))


def require_ordered(provider_name: str, date_range: DateRange) -> None:
    if not date_range.is_ordered():
        raise InvalidRange(
            provider_name,
            f"start {date_range.start.isoformat()} is after end {date_range.end.isoformat()}",
        )
