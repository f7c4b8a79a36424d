"""Read-through cache in front of an account directory.

Account configuration changes only on reconfiguration, so entries live
until ``invalidate`` is called. Balances and statements are never
cached anywhere.
"""

from __future__ import annotations

from finance_gateway.directory.base import AccountDirectory
from finance_gateway.gateway.types import Account


class CachedAccountDirectory:
    def __init__(self, inner: AccountDirectory):
        self._inner = inner
        self._lists: dict[str, list[Account]] = {}
        self._accounts: dict[tuple[str, str], Account] = {}

    async def list_accounts(self, tenant_id: str) -> list[Account]:
        cached = self._lists.get(tenant_id)
        if cached is None:
            cached = await self._inner.list_accounts(tenant_id)
            self._lists[tenant_id] = cached
        return list(cached)

    async def get_account(self, tenant_id: str, account_id: str) -> Account:
        key = (tenant_id, account_id)
        cached = self._accounts.get(key)
        if cached is None:
            # AccountNotFound is not cached
            cached = await self._inner.get_account(tenant_id, account_id)
            self._accounts[key] = cached
        return cached

    def invalidate(self, tenant_id: str, account_id: str | None = None) -> None:
        """Drop cached entries for a tenant, or for one of its accounts."""
        self._lists.pop(tenant_id, None)
        if account_id is not None:
            self._accounts.pop((tenant_id, account_id), None)
            return
        for key in [k for k in self._accounts if k[0] == tenant_id]:
            del self._accounts[key]

    # Onboarding passes through and invalidates

    async def register_account(self, account: Account) -> Account:
        result = await self._inner.register_account(account)
        self.invalidate(account.tenant_id, account.account_id)
        return result

    async def deactivate_account(self, tenant_id: str, account_id: str) -> Account:
        result = await self._inner.deactivate_account(tenant_id, account_id)
        self.invalidate(tenant_id, account_id)
        return result
