"""Distributed lock backends.

A lock backend is anything that offers an atomic "set if absent with a TTL",
a read and a delete. Two backends are provided:

- ``RedisLocker``: ``SET key value NX PX ttl`` on a shared Redis
- ``MemoryLocker``: an in-process store with the same semantics, used for
  single-instance deployments and for simulating a fleet in tests

Every locker stores its instance ID as the lock value, and ``release`` only
deletes a key the caller still owns. A winner whose TTL ran out therefore
never removes the lock of the instance that took over.

Example:
    locker = RedisLocker(instance_id="worker-1")

    if await locker.try_acquire("billing.schedules.invoice.locker", ttl=10):
        try:
            await send_invoices()
        finally:
            await locker.release("billing.schedules.invoice.locker")
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Protocol, TypeVar, cast, runtime_checkable

from redis.exceptions import RedisError

from cronlock.config import settings
from cronlock.distributed.redis import get_redis
from cronlock.errors import LockError
from cronlock.observability.metrics import record_lock_operation

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Only delete the key if the caller owns it
RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


def _await_redis(result: Awaitable[T] | T) -> Awaitable[T]:
    """Cast redis-py async results to an awaitable for mypy."""
    return cast(Awaitable[T], result)


def _ttl_millis(ttl: float) -> int:
    if ttl <= 0:
        raise ValueError(f"Lock TTL must be positive, got {ttl}")
    return max(1, int(ttl * 1000))


@runtime_checkable
class Locker(Protocol):
    """Lock capability consumed by leader election.

    ``try_acquire`` is the only atomic operation. ``is_held`` is a plain
    read and reports a missing key as ``False``. ``release`` is idempotent.
    All three raise ``LockError`` when the backend itself fails.
    """

    async def try_acquire(self, key: str, ttl: float) -> bool: ...

    async def is_held(self, key: str) -> bool: ...

    async def release(self, key: str) -> None: ...


class RedisLocker:
    """Redis-backed lock.

    Args:
        client: Redis client (defaults to the shared pooled client)
        instance_id: Value stored in the lock key (defaults to settings.instance_id)
    """

    def __init__(self, client: Redis | None = None, instance_id: str | None = None):
        self._redis = client
        self.instance_id = instance_id or settings.instance_id

    async def _get_redis(self) -> Redis:
        """Get Redis client."""
        if self._redis is None:
            self._redis = await get_redis()
        return self._redis

    async def try_acquire(self, key: str, ttl: float) -> bool:
        """Atomically take the lock for ``ttl`` seconds if nobody holds it."""
        px = _ttl_millis(ttl)
        redis = await self._get_redis()
        logger.debug(f"redis lock acquire key: {key} ttl: {ttl}s")

        try:
            acquired = await redis.set(key, self.instance_id, nx=True, px=px)
        except RedisError as e:
            record_lock_operation("try_acquire", "error")
            raise LockError("acquire", key, e) from e

        record_lock_operation("try_acquire", "acquired" if acquired else "rejected")
        return bool(acquired)

    async def is_held(self, key: str) -> bool:
        """Check whether any instance currently holds the lock."""
        redis = await self._get_redis()

        try:
            value = await redis.get(key)
        except RedisError as e:
            record_lock_operation("is_held", "error")
            raise LockError("query", key, e) from e

        # GET answers None for an absent key; that is "free", not a failure
        held = bool(value)
        record_lock_operation("is_held", "held" if held else "free")
        return held

    async def release(self, key: str) -> None:
        """Release the lock if this instance owns it."""
        redis = await self._get_redis()

        try:
            deleted = await _await_redis(redis.eval(RELEASE_SCRIPT, 1, key, self.instance_id))
        except RedisError as e:
            record_lock_operation("release", "error")
            raise LockError("release", key, e) from e

        logger.debug(f"redis lock release key: {key} deleted: {bool(deleted)}")
        record_lock_operation("release", "released" if deleted else "not_owner")

    async def get_owner(self, key: str) -> str | None:
        """Get the instance ID that currently holds the lock."""
        redis = await self._get_redis()
        try:
            value = await redis.get(key)
        except RedisError as e:
            raise LockError("query", key, e) from e
        if value is None:
            return None
        return value.decode() if isinstance(value, bytes) else str(value)


class MemoryLockStore:
    """In-process key store with TTL expiry.

    Shared by several ``MemoryLocker`` instances to stand in for a shared
    Redis. ``clock`` returns monotonic seconds and can be replaced in tests.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[str, float]] = {}

    def _live(self, key: str) -> tuple[str, float] | None:
        entry = self._entries.get(key)
        if entry is not None and entry[1] <= self._clock():
            del self._entries[key]
            return None
        return entry

    def set_if_absent(self, key: str, owner: str, ttl: float) -> bool:
        if self._live(key) is not None:
            return False
        self._entries[key] = (owner, self._clock() + ttl)
        return True

    def get(self, key: str) -> str | None:
        entry = self._live(key)
        return entry[0] if entry else None

    def delete_if_owner(self, key: str, owner: str) -> bool:
        entry = self._live(key)
        if entry is None or entry[0] != owner:
            return False
        del self._entries[key]
        return True

    def keys(self) -> list[str]:
        return [key for key in list(self._entries) if self._live(key) is not None]


class MemoryLocker:
    """Lock backed by a ``MemoryLockStore``.

    Args:
        store: Shared store (a private one is created if omitted)
        instance_id: Value stored in the lock key (defaults to settings.instance_id)
    """

    def __init__(self, store: MemoryLockStore | None = None, instance_id: str | None = None):
        self.store = store or MemoryLockStore()
        self.instance_id = instance_id or settings.instance_id

    async def try_acquire(self, key: str, ttl: float) -> bool:
        _ttl_millis(ttl)
        acquired = self.store.set_if_absent(key, self.instance_id, ttl)
        logger.debug(f"memory lock acquire key: {key} ttl: {ttl}s acquired: {acquired}")
        record_lock_operation("try_acquire", "acquired" if acquired else "rejected")
        return acquired

    async def is_held(self, key: str) -> bool:
        held = self.store.get(key) is not None
        record_lock_operation("is_held", "held" if held else "free")
        return held

    async def release(self, key: str) -> None:
        deleted = self.store.delete_if_owner(key, self.instance_id)
        logger.debug(f"memory lock release key: {key} deleted: {deleted}")
        record_lock_operation("release", "released" if deleted else "not_owner")

    async def get_owner(self, key: str) -> str | None:
        return self.store.get(key)
