"""In-memory account directory for tests and the sandbox."""

from __future__ import annotations

from dataclasses import replace

from finance_gateway.directory.base import sort_accounts
from finance_gateway.gateway.errors import AccountNotFound
from finance_gateway.gateway.types import Account


class InMemoryAccountDirectory:
    def __init__(self, accounts: list[Account] | None = None):
        self._accounts: dict[str, Account] = {
            account.account_id: account for account in accounts or []
        }

    async def list_accounts(self, tenant_id: str) -> list[Account]:
        return sort_accounts(
            [a for a in self._accounts.values() if a.tenant_id == tenant_id and a.active]
        )

    async def get_account(self, tenant_id: str, account_id: str) -> Account:
        account = self._accounts.get(account_id)
        if account is None or account.tenant_id != tenant_id or not account.active:
            raise AccountNotFound(account_id, tenant_id)
        return account

    # Onboarding

    async def register_account(self, account: Account) -> Account:
        existing = self._accounts.get(account.account_id)
        if existing is not None and existing.tenant_id != account.tenant_id:
            raise AccountNotFound(account.account_id, account.tenant_id)
        self._accounts[account.account_id] = account
        return account

    async def deactivate_account(self, tenant_id: str, account_id: str) -> Account:
        account = self._accounts.get(account_id)
        if account is None or account.tenant_id != tenant_id:
            raise AccountNotFound(account_id, tenant_id)
        updated = replace(account, active=False)
        self._accounts[account_id] = updated
        return updated
