"""Per-account submission locks.

Transfers against one account are serialized so two near-simultaneous
submissions cannot both pass a provider-side balance check. Reads never
take these locks.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncIterator


class AccountLocks:
    """One asyncio.Lock per account id, created on first use."""

    def __init__(self) -> None:
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @asynccontextmanager
    async def hold(self, account_id: str) -> AsyncIterator[None]:
        """Hold the submission lock for ``account_id``."""
        lock = self._locks[account_id]
        async with lock:
            yield
