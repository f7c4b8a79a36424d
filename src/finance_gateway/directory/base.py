"""Account directory protocol."""

from __future__ import annotations

from typing import Protocol

from finance_gateway.gateway.types import Account


class AccountDirectory(Protocol):
    """Per-tenant lookup of configured financial accounts.

    ``get_account`` raises AccountNotFound for unknown ids, inactive
    accounts and accounts of another tenant alike.
    """

    async def list_accounts(self, tenant_id: str) -> list[Account]:
        """Active accounts of ``tenant_id``, ordered by label."""
        ...

    async def get_account(self, tenant_id: str, account_id: str) -> Account:
        ...

    async def register_account(self, account: Account) -> Account:
        """Add or replace an account. An id owned by another tenant is refused."""
        ...

    async def deactivate_account(self, tenant_id: str, account_id: str) -> Account:
        ...


def sort_accounts(accounts: list[Account]) -> list[Account]:
    return sorted(accounts, key=lambda a: (a.label.casefold(), a.account_id))
