"""Gateway configuration objects.

Explicit configuration for the gateway. No defaults that move money.

Pattern:
    gateway = FinancialGateway(
        directory=directory,
        registry=ProviderRegistry.from_configs(config.providers),
        transfers=transfer_store,
        config=config,
    )

Rules:
    1. Immutable after creation (frozen dataclasses).
    2. Validated in ``__post_init__``.
    3. Transfers are never retried automatically; only reads have a
       retry policy.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

BANK_TYPES = {"itau", "bradesco", "caixa", "santander", "sicoob", "safra"}
PROVIDER_TYPES = {"sandbox", "asaas", "pagbank", "pagarme", "inter", "bb"} | BANK_TYPES


@dataclass(frozen=True)
class TimeoutConfig:
    """
    Per-operation timeouts in seconds.

    Attributes:
        balance_seconds: Budget for a balance fetch. Default 10.
        statement_seconds: Budget for a statement fetch. Default 20.
        transfer_seconds: Budget for a transfer submission. Longer because
            settlement paths vary. Default 60.
    """

    balance_seconds: float = 10.0
    statement_seconds: float = 20.0
    transfer_seconds: float = 60.0

    def __post_init__(self) -> None:
        """Validate configuration."""
        for name in ("balance_seconds", "statement_seconds", "transfer_seconds"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")


@dataclass(frozen=True)
class RetryConfig:
    """
    Retry policy for read operations (balance, statement).

    Attributes:
        read_attempts: Total attempts for a read, including the first.
            Default 1 (no retry).
        backoff_base_seconds: First backoff delay. Doubles per attempt.
        backoff_max_seconds: Upper bound on a single backoff delay.
    """

    read_attempts: int = 1
    backoff_base_seconds: float = 0.5
    backoff_max_seconds: float = 8.0

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.read_attempts < 1:
            raise ValueError("read_attempts must be at least 1")
        if self.read_attempts > 10:
            raise ValueError("read_attempts cannot exceed 10")
        if self.backoff_base_seconds < 0 or self.backoff_max_seconds < 0:
            raise ValueError("backoff delays cannot be negative")


@dataclass(frozen=True)
class StatementConfig:
    """
    Statement query limits.

    Attributes:
        max_span_days: Largest inclusive range accepted. Default 366.
    """

    max_span_days: int = 366

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.max_span_days < 1:
            raise ValueError("max_span_days must be at least 1")


@dataclass(frozen=True)
class ProviderConfig:
    """
    Provider adapter configuration.

    Attributes:
        name: Provider identifier accounts refer to (e.g. "asaas").
        provider_type: Adapter implementation to use.
        sandbox: If True, use the provider's sandbox environment.
        credentials: Provider-specific credentials. Structure varies.
        base_url: Override the adapter's default endpoint.
        timeout_seconds: HTTP client timeout. Default 30.
        options: Adapter-specific extra settings.
    """

    name: str
    provider_type: str
    sandbox: bool = True
    credentials: dict[str, str] = field(default_factory=dict)
    base_url: str | None = None
    timeout_seconds: float = 30.0
    options: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not self.name:
            raise ValueError("name is required")
        if self.provider_type not in PROVIDER_TYPES:
            raise ValueError(f"provider_type must be one of {sorted(PROVIDER_TYPES)}")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProviderConfig:
        return cls(
            name=data["name"],
            provider_type=data.get("provider_type", data["name"]),
            sandbox=bool(data.get("sandbox", True)),
            credentials=dict(data.get("credentials", {})),
            base_url=data.get("base_url"),
            timeout_seconds=float(data.get("timeout_seconds", 30.0)),
            options=dict(data.get("options", {})),
        )


@dataclass(frozen=True)
class GatewayConfig:
    """
    Complete gateway configuration.

    Example:
        config = GatewayConfig(
            providers=[
                ProviderConfig(
                    name="asaas",
                    provider_type="asaas",
                    sandbox=False,
                    credentials={"api_key": "..."},
                ),
            ],
            timeouts=TimeoutConfig(balance_seconds=5),
        )

    Attributes:
        providers: Provider adapter configurations.
        timeouts: Per-operation timeouts.
        retries: Read retry policy.
        statement: Statement query limits.
        emit_events: If True, publish transfer lifecycle events.
    """

    providers: list[ProviderConfig]
    timeouts: TimeoutConfig = field(default_factory=TimeoutConfig)
    retries: RetryConfig = field(default_factory=RetryConfig)
    statement: StatementConfig = field(default_factory=StatementConfig)
    emit_events: bool = True

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not self.providers:
            raise ValueError("At least one provider is required")

        names = [p.name for p in self.providers]
        if len(names) != len(set(names)):
            raise ValueError("Provider names must be unique")

    def get_provider(self, name: str) -> ProviderConfig | None:
        """Get provider config by name."""
        for provider in self.providers:
            if provider.name == name:
                return provider
        return None


# =============================================================================
# Configuration Builders (Optional Convenience)
# =============================================================================


def load_provider_configs(path: str | Path) -> list[ProviderConfig]:
    """
    Load provider configurations from a JSON file.

    The file holds either a list of provider objects or
    ``{"providers": [...]}``.
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("providers", [])
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a list of provider configurations")
    return [ProviderConfig.from_dict(item) for item in data]


def create_sandbox_config() -> GatewayConfig:
    """
    Create a sandbox configuration for development and testing.

    Registers only the in-memory sandbox provider.
    """
    return GatewayConfig(
        providers=[
            ProviderConfig(name="sandbox", provider_type="sandbox", sandbox=True),
        ],
    )


def validate_production_config(config: GatewayConfig) -> list[str]:
    """
    Validate that a configuration is safe for production.

    Returns a list of warnings/errors. Empty list = safe.
    """
    issues: list[str] = []

    sandbox_providers = [p.name for p in config.providers if p.sandbox]
    if sandbox_providers:
        issues.append(f"WARNING: Sandbox providers enabled: {sandbox_providers}")

    for provider in config.providers:
        if provider.provider_type == "sandbox":
            issues.append(f"CRITICAL: Provider '{provider.name}' is the in-memory sandbox")
        elif not provider.sandbox and not provider.credentials:
            issues.append(f"WARNING: Provider '{provider.name}' has no credentials")

    if config.timeouts.transfer_seconds < config.timeouts.balance_seconds:
        issues.append("WARNING: transfer timeout is shorter than balance timeout")

    return issues
