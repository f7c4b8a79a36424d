"""Sandbox provider for local development and testing.

Keeps balances, statements and transfers in memory. Replace with a real
adapter (asaas, inter, ...) for production.
"""

from __future__ import annotations

import asyncio
import datetime
from dataclasses import dataclass, field
from typing import Callable

from finance_gateway.gateway.capabilities import Capabilities, Operation
from finance_gateway.gateway.normalization import build_statement
from finance_gateway.gateway.types import (
    Account,
    BalanceSnapshot,
    DateRange,
    Statement,
    StatementEntry,
    TransferMethod,
    TransferRequest,
    TransferResult,
    TransferStatus,
)
from finance_gateway.providers.base import (
    DuplicateSubmission,
    ProviderAuthError,
    ProviderRejection,
    ProviderResponseError,
    ProviderUnavailableError,
    require_capability,
    require_ordered,
)


@dataclass
class SandboxLedger:
    """In-memory state of one sandbox account."""

    available: int = 0
    pending: int = 0
    blocked: int | None = None
    currency: str = "BRL"
    entries: list[StatementEntry] = field(default_factory=list)


class SandboxProvider:
    """In-memory provider.

    Transfers are keyed by (account, idempotency token): resubmitting a
    token returns the original result and never creates a second
    movement. External ids are sequential (``E1``, ``E2``, ...).
    """

    provider_name = "sandbox"

    def __init__(
        self,
        *,
        capabilities: Capabilities | None = None,
        auto_settle: bool = True,
        raise_on_duplicate: bool = False,
        clock: Callable[[], datetime.datetime] | None = None,
        today: Callable[[], datetime.date] | None = None,
    ):
        """Initialize sandbox provider.

        Args:
            capabilities: Override the provider capability set.
            auto_settle: If True, transfers confirm immediately.
                        If False, they stay pending.
            raise_on_duplicate: If True, a repeated token raises
                        DuplicateSubmission instead of returning the
                        original result.
        """
        self._capabilities = capabilities or Capabilities.all()
        self.auto_settle = auto_settle
        self.raise_on_duplicate = raise_on_duplicate
        self._clock = clock or (lambda: datetime.datetime.now(datetime.timezone.utc))
        self._today = today or datetime.date.today
        self._ledgers: dict[str, SandboxLedger] = {}
        self._transfers: dict[tuple[str, str], TransferResult] = {}
        self._sequence = 0
        # Failure injection
        self._delay: dict[Operation, float] = {}
        self._outage: set[Operation] = set()
        self._auth_rejected = False
        self._garbled: set[Operation] = set()
        self._reject_reason: str | None = None
        self.calls: list[tuple[str, str]] = []

    def capabilities(self) -> Capabilities:
        return self._capabilities

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------

    def ledger(self, account_id: str) -> SandboxLedger:
        return self._ledgers.setdefault(account_id, SandboxLedger())

    def seed_balance(
        self,
        account_id: str,
        available: int,
        pending: int = 0,
        blocked: int | None = None,
        currency: str = "BRL",
    ) -> None:
        ledger = self.ledger(account_id)
        ledger.available = available
        ledger.pending = pending
        ledger.blocked = blocked
        ledger.currency = currency

    def seed_entries(self, account_id: str, entries: list[StatementEntry]) -> None:
        self.ledger(account_id).entries.extend(entries)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def fetch_balance(self, account: Account) -> BalanceSnapshot:
        await self._enter(Operation.BALANCE, account)
        ledger = self.ledger(account.account_id)
        return BalanceSnapshot(
            available=ledger.available,
            pending=ledger.pending,
            blocked=ledger.blocked,
            currency=ledger.currency,
            fetched_at=self._clock(),
        )

    async def fetch_statement(self, account: Account, date_range: DateRange) -> Statement:
        require_ordered(self.provider_name, date_range)
        await self._enter(Operation.STATEMENT, account)
        return build_statement(date_range, self.ledger(account.account_id).entries)

    async def execute_transfer(
        self, account: Account, request: TransferRequest
    ) -> TransferResult:
        key = (account.account_id, request.idempotency_token)
        original = self._transfers.get(key)
        if original is not None:
            if self.raise_on_duplicate:
                raise DuplicateSubmission(
                    self.provider_name, request.idempotency_token, original=original
                )
            return original

        await self._enter(Operation.TRANSFER, account)

        if self._reject_reason:
            raise ProviderRejection(self.provider_name, self._reject_reason, "SIMULATED")
        if request.method == TransferMethod.INSTANT and not (request.destination or "").strip():
            raise ProviderRejection(self.provider_name, "invalid destination key", "AC01")

        ledger = self.ledger(account.account_id)
        if request.amount_minor_units > ledger.available:
            raise ProviderRejection(self.provider_name, "insufficient funds", "AM04")

        self._sequence += 1
        external_id = f"E{self._sequence}"
        status = TransferStatus.CONFIRMED if self.auto_settle else TransferStatus.PENDING

        ledger.available -= request.amount_minor_units
        ledger.entries.append(
            StatementEntry.debit(
                self._today(),
                request.description or f"Transfer to {request.destination or 'bank account'}",
                request.amount_minor_units,
                reference=external_id,
            )
        )

        result = TransferResult(
            status=status,
            external_id=external_id,
            amount_minor_units=request.amount_minor_units,
        )
        self._transfers[key] = result
        return result

    async def _enter(self, operation: Operation, account: Account) -> None:
        self.calls.append((operation.value, account.account_id))
        require_capability(self, operation)
        delay = self._delay.get(operation)
        if delay:
            await asyncio.sleep(delay)
        if self._auth_rejected:
            raise ProviderAuthError(self.provider_name, "sandbox credentials rejected")
        if operation in self._outage:
            raise ProviderUnavailableError(self.provider_name, "sandbox outage")
        if operation in self._garbled:
            raise ProviderResponseError(
                self.provider_name, "garbled payload", payload={"unexpected": True}
            )

    # ------------------------------------------------------------------
    # Simulation hooks (for testing)
    # ------------------------------------------------------------------

    def simulate_latency(self, operation: Operation, seconds: float) -> None:
        """Delay every call of ``operation`` by ``seconds``."""
        self._delay[operation] = seconds

    def simulate_outage(self, operation: Operation) -> None:
        self._outage.add(operation)

    def simulate_auth_rejection(self, rejected: bool = True) -> None:
        self._auth_rejected = rejected

    def simulate_garbled_response(self, operation: Operation) -> None:
        self._garbled.add(operation)

    def simulate_rejection(self, reason: str = "compliance hold") -> None:
        self._reject_reason = reason

    def recover(self) -> None:
        """Clear every injected failure."""
        self._delay.clear()
        self._outage.clear()
        self._garbled.clear()
        self._auth_rejected = False
        self._reject_reason = None

    def simulate_settlement(self, account_id: str, external_id: str) -> None:
        """Settle a pending transfer (for testing)."""
        for key, result in self._transfers.items():
            if key[0] == account_id and result.external_id == external_id:
                if result.status == TransferStatus.PENDING:
                    self._transfers[key] = TransferResult(
                        status=TransferStatus.CONFIRMED,
                        external_id=external_id,
                        amount_minor_units=result.amount_minor_units,
                    )
                return
