"""Capability flags for financial accounts.

Every operation the gateway dispatches is gated by exactly one flag.
Capabilities are fixed when an account is configured and never mutated
by a balance, statement or transfer call.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from enum import Enum
from typing import Any


class Operation(str, Enum):
    """Operations the gateway can dispatch to a provider."""

    BALANCE = "balance"
    STATEMENT = "statement"
    TRANSFER = "transfer"


@dataclass(frozen=True)
class Capabilities:
    """Capabilities supported by an account's provider."""

    instant_transfer_in: bool = False  # pix-equivalent collection
    voucher_billing: bool = False  # boleto-equivalent
    credit_card: bool = False
    debit_card: bool = False
    recurring_billing: bool = False
    payment_split: bool = False
    outbound_transfer: bool = False
    balance_inquiry: bool = False
    statement_retrieval: bool = False

    @classmethod
    def none(cls) -> Capabilities:
        """No capability at all."""
        return cls()

    @classmethod
    def all(cls) -> Capabilities:
        """Every capability enabled."""
        return cls(**{f.name: True for f in fields(cls)})

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Capabilities:
        """Build from a mapping, rejecting unknown flag names."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown capability flags: {sorted(unknown)}")
        return cls(**{name: bool(value) for name, value in data.items()})

    def to_dict(self) -> dict[str, bool]:
        return asdict(self)

    def supports(self, operation: Operation) -> bool:
        """Check whether the flag gating ``operation`` is set."""
        return bool(getattr(self, flag_for(operation)))

    def enabled(self) -> list[str]:
        """Names of enabled flags, in declaration order."""
        return [f.name for f in fields(self) if getattr(self, f.name)]

    def is_subset_of(self, other: Capabilities) -> bool:
        """True if every flag enabled here is also enabled in ``other``."""
        return all(getattr(other, name) for name in self.enabled())


# Operation -> gating flag
OPERATION_FLAGS: dict[Operation, str] = {
    Operation.BALANCE: "balance_inquiry",
    Operation.STATEMENT: "statement_retrieval",
    Operation.TRANSFER: "outbound_transfer",
}


def flag_for(operation: Operation) -> str:
    """Return the capability flag name that gates ``operation``."""
    return OPERATION_FLAGS[Operation(operation)]
