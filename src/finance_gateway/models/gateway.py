"""Financial account and transfer models."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from finance_gateway.models.base import Base, TimestampMixin


class GatewayAccount(Base, TimestampMixin):
    """Configured financial account of a tenant.

    One boolean column per capability flag; capability changes happen
    only through reconfiguration.
    """

    __tablename__ = "gateway_account"

    account_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    provider: Mapped[str] = mapped_column(String(32), nullable=False)
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    environment: Mapped[str] = mapped_column(String(16), nullable=False, default="sandbox")
    category: Mapped[str] = mapped_column(String(16), nullable=False, default="psp")
    external_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    instant_transfer_in: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    voucher_billing: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    credit_card: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    debit_card: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    recurring_billing: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    payment_split: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    outbound_transfer: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    balance_inquiry: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    statement_retrieval: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint(
            "environment IN ('production', 'sandbox')",
            name="gateway_account_environment_check",
        ),
        CheckConstraint(
            "category IN ('bank', 'psp')",
            name="gateway_account_category_check",
        ),
        Index("ix_gateway_account_tenant", "tenant_id", "active"),
    )


class GatewayTransfer(Base, TimestampMixin):
    """Idempotency record of an outbound transfer.

    Written in ``draft`` before the provider is contacted.
    """

    __tablename__ = "gateway_transfer"

    gateway_transfer_id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    account_id: Mapped[str] = mapped_column(String(64), nullable=False)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    idempotency_token: Mapped[str] = mapped_column(String(128), nullable=False)
    fingerprint: Mapped[str] = mapped_column(String(64), nullable=False)
    method: Mapped[str] = mapped_column(String(16), nullable=False)
    amount_minor_units: Mapped[int] = mapped_column(BigInteger, nullable=False)
    destination: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    state: Mapped[str] = mapped_column(String(16), nullable=False, default="draft")
    external_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    result_amount_minor_units: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    error_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    error_message: Mapped[str | None] = mapped_column(String(500), nullable=True)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "account_id", "idempotency_token", name="gateway_transfer_idempotency_key"
        ),
        CheckConstraint(
            "state IN ('draft', 'submitted', 'confirmed', 'pending', 'rejected', 'failed')",
            name="gateway_transfer_state_check",
        ),
        CheckConstraint("amount_minor_units > 0", name="gateway_transfer_amount_check"),
        CheckConstraint("method IN ('instant', 'wire')", name="gateway_transfer_method_check"),
    )
