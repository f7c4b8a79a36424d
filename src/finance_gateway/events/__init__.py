"""Domain events emitted by the gateway."""

from finance_gateway.events.emitter import EventEmitter, EventHandler
from finance_gateway.events.types import (
    DomainEvent,
    EventCategory,
    EventMetadata,
    ProviderCallFailed,
    TransferConfirmed,
    TransferEvent,
    TransferFailed,
    TransferPending,
    TransferRejected,
    TransferReplayed,
    TransferSubmitted,
)

__all__ = [
    "EventEmitter",
    "EventHandler",
    "DomainEvent",
    "EventCategory",
    "EventMetadata",
    "TransferEvent",
    "TransferSubmitted",
    "TransferConfirmed",
    "TransferPending",
    "TransferRejected",
    "TransferFailed",
    "TransferReplayed",
    "ProviderCallFailed",
]
