"""SQL-backed account directory (table ``gateway_account``)."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from finance_gateway.directory.base import sort_accounts
from finance_gateway.gateway.capabilities import Capabilities
from finance_gateway.gateway.errors import AccountNotFound
from finance_gateway.gateway.types import Account, AccountCategory, Environment
from finance_gateway.models import GatewayAccount

logger = logging.getLogger(__name__)

CAPABILITY_COLUMNS = tuple(Capabilities.none().to_dict())


def to_account(row: GatewayAccount) -> Account:
    return Account(
        account_id=row.account_id,
        tenant_id=row.tenant_id,
        provider=row.provider,
        label=row.label,
        environment=Environment(row.environment),
        category=AccountCategory(row.category),
        capabilities=Capabilities(**{name: bool(getattr(row, name)) for name in CAPABILITY_COLUMNS}),
        external_ref=row.external_ref,
        active=row.active,
    )


def to_row(account: Account) -> GatewayAccount:
    return GatewayAccount(
        account_id=account.account_id,
        tenant_id=account.tenant_id,
        provider=account.provider,
        label=account.label,
        environment=Environment(account.environment).value,
        category=AccountCategory(account.category).value,
        external_ref=account.external_ref,
        active=account.active,
        **account.capabilities.to_dict(),
    )


class SqlAccountDirectory:
    """Account directory backed by SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def list_accounts(self, tenant_id: str) -> list[Account]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(GatewayAccount).where(
                    GatewayAccount.tenant_id == tenant_id,
                    GatewayAccount.active.is_(True),
                )
            )
            return sort_accounts([to_account(row) for row in result.scalars()])

    async def get_account(self, tenant_id: str, account_id: str) -> Account:
        async with self._session_factory() as session:
            row = await session.get(GatewayAccount, account_id)
            if row is None or row.tenant_id != tenant_id or not row.active:
                raise AccountNotFound(account_id, tenant_id)
            return to_account(row)

    # Onboarding

    async def register_account(self, account: Account) -> Account:
        """Insert or replace an account's configuration.

        Raises AccountNotFound when the id already belongs to another tenant.
        """
        async with self._session_factory() as session:
            existing = await session.get(GatewayAccount, account.account_id)
            if existing is not None and existing.tenant_id != account.tenant_id:
                logger.warning(
                    "account_tenant_conflict",
                    extra={"account_id": account.account_id, "tenant_id": account.tenant_id},
                )
                raise AccountNotFound(account.account_id, account.tenant_id)
            await session.merge(to_row(account))
            await session.commit()
        logger.info(
            "account_registered",
            extra={"account_id": account.account_id, "provider": account.provider},
        )
        return account

    async def deactivate_account(self, tenant_id: str, account_id: str) -> Account:
        async with self._session_factory() as session:
            row = await session.get(GatewayAccount, account_id)
            if row is None or row.tenant_id != tenant_id:
                raise AccountNotFound(account_id, tenant_id)
            row.active = False
            await session.commit()
            return to_account(row)
