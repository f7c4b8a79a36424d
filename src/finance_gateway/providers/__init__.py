"""Financial provider adapters."""

from finance_gateway.providers.asaas import AsaasProvider
from finance_gateway.providers.base import (
    DuplicateSubmission,
    FinancialProvider,
    InvalidRange,
    ProviderAuthError,
    ProviderError,
    ProviderRejection,
    ProviderResponseError,
    ProviderUnavailableError,
    UnsupportedByProvider,
)
from finance_gateway.providers.banks import OpenBankingProvider
from finance_gateway.providers.bb import BancoDoBrasilProvider
from finance_gateway.providers.inter import InterProvider
from finance_gateway.providers.pagarme import PagarMeProvider
from finance_gateway.providers.pagbank import PagBankProvider
from finance_gateway.providers.registry import ProviderRegistry, build_provider
from finance_gateway.providers.sandbox import SandboxProvider

__all__ = [
    "FinancialProvider",
    "ProviderError",
    "ProviderUnavailableError",
    "ProviderAuthError",
    "ProviderRejection",
    "DuplicateSubmission",
    "UnsupportedByProvider",
    "InvalidRange",
    "ProviderResponseError",
    "ProviderRegistry",
    "build_provider",
    "SandboxProvider",
    "AsaasProvider",
    "PagBankProvider",
    "PagarMeProvider",
    "InterProvider",
    "BancoDoBrasilProvider",
    "OpenBankingProvider",
]
