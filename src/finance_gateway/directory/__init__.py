"""Account directory implementations."""

from finance_gateway.directory.base import AccountDirectory
from finance_gateway.directory.cache import CachedAccountDirectory
from finance_gateway.directory.memory import InMemoryAccountDirectory
from finance_gateway.directory.sql import SqlAccountDirectory

__all__ = [
    "AccountDirectory",
    "InMemoryAccountDirectory",
    "SqlAccountDirectory",
    "CachedAccountDirectory",
]
