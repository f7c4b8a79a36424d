"""Provider registry.

Maps the provider name stored on an account to the adapter instance that
serves it. Adapters are built once at startup from ProviderConfig entries.
"""

from __future__ import annotations

import logging
from typing import Callable

import httpx

from finance_gateway.gateway.config import ProviderConfig
from finance_gateway.providers.asaas import AsaasProvider
from finance_gateway.providers.banks import BANK_PROFILES, OpenBankingProvider
from finance_gateway.providers.base import FinancialProvider
from finance_gateway.providers.bb import BancoDoBrasilProvider
from finance_gateway.providers.inter import InterProvider
from finance_gateway.providers.pagarme import PagarMeProvider
from finance_gateway.providers.pagbank import PagBankProvider
from finance_gateway.providers.sandbox import SandboxProvider

logger = logging.getLogger(__name__)

HTTP_ADAPTERS: dict[str, type] = {
    "asaas": AsaasProvider,
    "pagbank": PagBankProvider,
    "pagarme": PagarMeProvider,
    "inter": InterProvider,
    "bb": BancoDoBrasilProvider,
    **{name: OpenBankingProvider for name in BANK_PROFILES},
}


def build_provider(
    config: ProviderConfig,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FinancialProvider:
    """Instantiate the adapter for ``config.provider_type``."""
    if config.provider_type == "sandbox":
        return SandboxProvider(
            auto_settle=bool(config.options.get("auto_settle", True)),
        )
    adapter_cls = HTTP_ADAPTERS.get(config.provider_type)
    if adapter_cls is None:
        raise ValueError(f"Unknown provider type: {config.provider_type}")
    return adapter_cls(config, transport=transport)


class ProviderRegistry:
    """Name -> adapter lookup used by the gateway facade."""

    def __init__(self, providers: dict[str, FinancialProvider] | None = None):
        self._providers: dict[str, FinancialProvider] = dict(providers or {})

    @classmethod
    def from_configs(
        cls,
        configs: list[ProviderConfig],
        factory: Callable[[ProviderConfig], FinancialProvider] = build_provider,
    ) -> ProviderRegistry:
        registry = cls()
        for config in configs:
            registry.register(config.name, factory(config))
        return registry

    def register(self, name: str, provider: FinancialProvider) -> None:
        """Register an adapter under ``name``, replacing any previous one."""
        if name in self._providers:
            logger.warning("Replacing provider adapter %s", name)
        self._providers[name] = provider

    def get(self, name: str) -> FinancialProvider | None:
        return self._providers.get(name)

    def names(self) -> list[str]:
        return sorted(self._providers)

    def __contains__(self, name: object) -> bool:
        return name in self._providers

    async def aclose(self) -> None:
        """Close HTTP clients held by remote adapters."""
        for provider in self._providers.values():
            close = getattr(provider, "aclose", None)
            if close is not None:
                await close()
