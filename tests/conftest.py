"""Shared fixtures: in-memory directory, sandbox provider and gateway."""

from __future__ import annotations

import datetime
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from finance_gateway.database import create_tables, make_session_factory
from finance_gateway.directory import InMemoryAccountDirectory
from finance_gateway.events import EventEmitter
from finance_gateway.gateway.capabilities import Capabilities
from finance_gateway.gateway.config import (
    GatewayConfig,
    ProviderConfig,
    TimeoutConfig,
)
from finance_gateway.gateway.facade import FinancialGateway
from finance_gateway.gateway.types import Account, AccountCategory, Environment
from finance_gateway.providers import ProviderRegistry, SandboxProvider
from finance_gateway.transfers import InMemoryTransferStore

TENANT = "tenant-a"
OTHER_TENANT = "tenant-b"

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def make_account(
    account_id: str = "acc-full",
    *,
    tenant_id: str = TENANT,
    provider: str = "sandbox",
    label: str | None = None,
    capabilities: Capabilities | None = None,
    category: AccountCategory = AccountCategory.PSP,
    external_ref: str | None = None,
    active: bool = True,
) -> Account:
    return Account(
        account_id=account_id,
        tenant_id=tenant_id,
        provider=provider,
        label=label or account_id,
        environment=Environment.SANDBOX,
        category=category,
        capabilities=capabilities if capabilities is not None else Capabilities.all(),
        external_ref=external_ref,
        active=active,
    )


class TickingClock:
    """Clock that advances one second per reading."""

    def __init__(self, start: datetime.datetime | None = None):
        self.now = start or datetime.datetime(2025, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)

    def __call__(self) -> datetime.datetime:
        self.now += datetime.timedelta(seconds=1)
        return self.now


def gateway_config(**timeouts: float) -> GatewayConfig:
    return GatewayConfig(
        providers=[ProviderConfig(name="sandbox", provider_type="sandbox")],
        timeouts=TimeoutConfig(
            balance_seconds=timeouts.get("balance_seconds", 0.5),
            statement_seconds=timeouts.get("statement_seconds", 0.5),
            transfer_seconds=timeouts.get("transfer_seconds", 0.5),
        ),
    )


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def sandbox(clock: TickingClock) -> SandboxProvider:
    """Sandbox provider with fixed clock and statement date."""
    return SandboxProvider(clock=clock, today=lambda: datetime.date(2025, 1, 15))


@pytest.fixture
def accounts() -> list[Account]:
    return [
        make_account("acc-full", label="Main PSP"),
        make_account(
            "acc-balance-only",
            label="Balance Only",
            capabilities=Capabilities(balance_inquiry=True),
            category=AccountCategory.BANK,
        ),
        make_account("acc-other", tenant_id=OTHER_TENANT, label="Other tenant"),
    ]


@pytest.fixture
def directory(accounts: list[Account]) -> InMemoryAccountDirectory:
    return InMemoryAccountDirectory(accounts)


@pytest.fixture
def registry(sandbox: SandboxProvider) -> ProviderRegistry:
    return ProviderRegistry({"sandbox": sandbox})


@pytest.fixture
def transfer_store() -> InMemoryTransferStore:
    return InMemoryTransferStore()


@pytest.fixture
def emitter() -> EventEmitter:
    return EventEmitter()


@pytest.fixture
def gateway(
    directory: InMemoryAccountDirectory,
    registry: ProviderRegistry,
    transfer_store: InMemoryTransferStore,
    emitter: EventEmitter,
) -> FinancialGateway:
    """Gateway over the sandbox with short timeouts."""
    return FinancialGateway(
        directory,
        registry,
        transfers=transfer_store,
        config=gateway_config(),
        emitter=emitter,
    )


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine with the gateway tables."""
    engine = create_async_engine(TEST_DATABASE_URL, poolclass=StaticPool)
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(engine)
