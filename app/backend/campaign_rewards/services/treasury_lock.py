"""
Treasury-keyed mutual exclusion for payout batches.

Only one disbursement per treasury account may select and settle submissions
at a time. Within a process an ``asyncio.Lock`` per account serializes
batches; on PostgreSQL a session-level advisory lock extends this across
processes for the whole batch.
"""

import asyncio
import hashlib
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

logger = structlog.get_logger(__name__)

_locks: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, Dict[str, asyncio.Lock]]" = (
    weakref.WeakKeyDictionary()
)


def advisory_key(account: str) -> int:
    """Stable signed 64-bit key for ``pg_advisory_lock``."""
    digest = hashlib.sha256(f"treasury:{account}".encode()).digest()
    return int.from_bytes(digest[:8], "big", signed=True)


def _local_lock(account: str) -> asyncio.Lock:
    loop = asyncio.get_running_loop()
    per_loop = _locks.setdefault(loop, {})
    return per_loop.setdefault(account, asyncio.Lock())


@asynccontextmanager
async def treasury_lock(account: str, engine: Optional[AsyncEngine] = None) -> AsyncIterator[None]:
    """Hold the disbursement critical section for ``account``."""
    lock = _local_lock(account)
    if lock.locked():
        logger.info("Waiting for running payout batch", treasury=account)

    async with lock:
        if engine is None or engine.dialect.name != "postgresql":
            yield
            return

        key = advisory_key(account)
        async with engine.connect() as conn:
            await conn.execute(text("SELECT pg_advisory_lock(:key)"), {"key": key})
            logger.debug("Advisory lock acquired", treasury=account, key=key)
            try:
                yield
            finally:
                await conn.execute(text("SELECT pg_advisory_unlock(:key)"), {"key": key})
                await conn.commit()
