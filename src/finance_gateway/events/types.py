"""Domain events for gateway operations.

Events are immutable records of what the gateway did with a provider.
They feed audit trails and notifications; nothing in the gateway reads
them back.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class EventCategory(str, Enum):
    """Event categories for routing and filtering."""

    TRANSFER = "transfer"
    PROVIDER = "provider"


@dataclass(frozen=True)
class EventMetadata:
    """Metadata attached to every domain event."""

    event_id: str
    timestamp: datetime
    tenant_id: str
    account_id: str
    provider: str
    version: int = 1

    @classmethod
    def create(cls, tenant_id: str, account_id: str, provider: str) -> EventMetadata:
        """Create metadata with auto-generated fields."""
        return cls(
            event_id=str(uuid.uuid4()),
            timestamp=datetime.now(timezone.utc),
            tenant_id=tenant_id,
            account_id=account_id,
            provider=provider,
        )


@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    metadata: EventMetadata

    @property
    def event_type(self) -> str:
        """Event type name for routing."""
        return self.__class__.__name__

    @property
    def category(self) -> EventCategory:
        raise NotImplementedError("Subclasses must define category")

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["event_type"] = self.event_type
        data["category"] = self.category.value
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


# =============================================================================
# Transfer Events
# =============================================================================


@dataclass(frozen=True)
class TransferEvent(DomainEvent):
    idempotency_token: str
    amount_minor_units: int
    method: str

    @property
    def category(self) -> EventCategory:
        return EventCategory.TRANSFER


@dataclass(frozen=True)
class TransferSubmitted(TransferEvent):
    """Transfer handed to the provider."""

    attempt: int = 1


@dataclass(frozen=True)
class TransferConfirmed(TransferEvent):
    external_id: str = ""


@dataclass(frozen=True)
class TransferPending(TransferEvent):
    """Provider accepted the transfer but has not settled it."""

    external_id: str = ""


@dataclass(frozen=True)
class TransferRejected(TransferEvent):
    reason: str = ""
    reason_code: str | None = None


@dataclass(frozen=True)
class TransferFailed(TransferEvent):
    """Submission failed without a provider outcome; resubmittable."""

    error_code: str = ""
    message: str = ""


@dataclass(frozen=True)
class TransferReplayed(TransferEvent):
    """A repeated token was answered with the recorded result."""

    external_id: str = ""
    status: str = ""


# =============================================================================
# Provider Events
# =============================================================================


@dataclass(frozen=True)
class ProviderCallFailed(DomainEvent):
    """An adapter call ended in an error."""

    operation: str
    error_code: str
    retryable: bool

    @property
    def category(self) -> EventCategory:
        return EventCategory.PROVIDER
