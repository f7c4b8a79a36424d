"""Common data model, capabilities, errors and configuration.

The facade lives in ``finance_gateway.gateway.facade`` and is not
re-exported here.
"""

from finance_gateway.gateway.capabilities import Capabilities, Operation, flag_for
from finance_gateway.gateway.config import (
    GatewayConfig,
    ProviderConfig,
    RetryConfig,
    StatementConfig,
    TimeoutConfig,
    create_sandbox_config,
    load_provider_configs,
    validate_production_config,
)
from finance_gateway.gateway.errors import (
    ERROR_TYPES,
    AccountNotFound,
    AuthFailure,
    CapabilityUnsupported,
    DuplicateRequest,
    GatewayError,
    ProviderNotRegistered,
    ProviderUnavailable,
    TransferNotFound,
    TransferRejected,
    UnknownProviderResponse,
    ValidationError,
)
from finance_gateway.gateway.types import (
    Account,
    AccountCategory,
    BalanceSnapshot,
    BankAccountDetails,
    DateRange,
    Direction,
    Environment,
    Statement,
    StatementEntry,
    StatementSummary,
    TransferMethod,
    TransferRequest,
    TransferResult,
    TransferStatus,
)

__all__ = [
    "Capabilities",
    "Operation",
    "flag_for",
    "GatewayConfig",
    "ProviderConfig",
    "RetryConfig",
    "StatementConfig",
    "TimeoutConfig",
    "create_sandbox_config",
    "load_provider_configs",
    "validate_production_config",
    "ERROR_TYPES",
    "GatewayError",
    "AccountNotFound",
    "CapabilityUnsupported",
    "ValidationError",
    "AuthFailure",
    "ProviderUnavailable",
    "TransferRejected",
    "DuplicateRequest",
    "TransferNotFound",
    "UnknownProviderResponse",
    "ProviderNotRegistered",
    "Account",
    "AccountCategory",
    "BalanceSnapshot",
    "BankAccountDetails",
    "DateRange",
    "Direction",
    "Environment",
    "Statement",
    "StatementEntry",
    "StatementSummary",
    "TransferMethod",
    "TransferRequest",
    "TransferResult",
    "TransferStatus",
]
