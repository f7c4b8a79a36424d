"""SQLAlchemy ORM models for finance gateway."""

from finance_gateway.models.base import Base, TimestampMixin
from finance_gateway.models.gateway import GatewayAccount, GatewayTransfer

__all__ = [
    "Base",
    "TimestampMixin",
    "GatewayAccount",
    "GatewayTransfer",
]
