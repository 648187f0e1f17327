"""Distributed coordination primitives for cronlock.

Provides the pieces a fleet of identical instances needs to share tasks:
- Lock backends (Redis and in-memory)
- Per-occurrence leader election on top of a lock backend

Example:
    from cronlock.distributed import LeaderElection, RedisLocker, leader_only

    locker = RedisLocker()

    @leader_only(locker, "reports.daily")
    async def daily_report():
        ...
"""

from cronlock.distributed.leader import (
    DEFAULT_LEASE_TTL,
    LeaderElection,
    leader_only,
)
from cronlock.distributed.lock import (
    Locker,
    MemoryLocker,
    MemoryLockStore,
    RedisLocker,
)

__all__ = [
    "DEFAULT_LEASE_TTL",
    "LeaderElection",
    "leader_only",
    "Locker",
    "MemoryLocker",
    "MemoryLockStore",
    "RedisLocker",
]
