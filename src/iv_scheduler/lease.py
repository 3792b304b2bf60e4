"""Cross-process lease for the maturity sweep.

Several API workers may each run a MaturityScheduler; the lease keeps only
one of them sweeping at a time. It is an optimisation, not a correctness
guard: if Redis is unreachable the sweep proceeds and the contract CAS
still prevents double payouts.
"""

import logging
from collections.abc import Awaitable, Callable

import redis.asyncio as aioredis
from redis.asyncio.lock import Lock
from redis.exceptions import LockError, RedisError

from src.iv_common.redis_client import get_redis

logger = logging.getLogger(__name__)

_LEASE_KEY = "iv:maturity-sweep:lease"


class RedisCycleLease:
    def __init__(
        self,
        ttl_seconds: float,
        redis_factory: Callable[[], Awaitable[aioredis.Redis]] = get_redis,
        key: str = _LEASE_KEY,
    ) -> None:
        self._ttl = ttl_seconds
        self._redis_factory = redis_factory
        self._key = key
        self._lock: Lock | None = None

    async def acquire(self) -> bool:
        """Try once, without blocking. True means this process may sweep."""
        try:
            client = await self._redis_factory()
            lock = client.lock(self._key, timeout=self._ttl, blocking=False)
            acquired = bool(await lock.acquire())
        except RedisError as exc:
            logger.warning("Sweep lease unavailable (%s); sweeping without it", exc)
            self._lock = None
            return True
        self._lock = lock if acquired else None
        return acquired

    async def release(self) -> None:
        lock, self._lock = self._lock, None
        if lock is None:
            return
        try:
            await lock.release()
        except LockError:
            # TTL elapsed mid-sweep; another worker may already hold it
            logger.warning("Sweep lease expired before release")
        except RedisError as exc:
            logger.warning("Sweep lease release failed: %s", exc)
