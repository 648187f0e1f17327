"""Leader election for competing schedule runs.

Every trigger occurrence holds its own election. The winner is the instance
whose atomic acquisition of the task's lock key succeeds:

1. Advisory check: if the key is already held, another instance is running
   (or has just run) the task and this instance backs off without issuing
   the atomic call. This check is a plain read. Between it and step 2 the
   key can change hands, so it never decides leadership on its own.
2. Atomic acquire: ``SET NX`` with the lease TTL. Only this step provides
   mutual exclusion.
3. Resign: the winner may delete the key once its work is done; otherwise
   the key expires after the TTL.

Any backend error during the election counts as a loss (fail closed).

Example:
    election = LeaderElection(locker, "billing.schedules.invoice.locker", lease_ttl=10)
    if await election.campaign():
        try:
            await send_invoices()
        finally:
            await election.resign()

    # Or as a context manager
    async with LeaderElection(locker, "billing.schedules.invoice.locker") as election:
        if election.is_leader:
            await send_invoices()
"""

from __future__ import annotations

import functools
import logging
from types import TracebackType
from typing import Awaitable, Callable, ParamSpec, TypeVar

from cronlock.distributed.lock import Locker

logger = logging.getLogger(__name__)

DEFAULT_LEASE_TTL = 10.0  # Seconds


class LeaderElection:
    """Single-occurrence leader election over a ``Locker``.

    Args:
        locker: Lock backend shared by all competing instances
        lock_key: Key identifying the coordination slot
        lease_ttl: Lock TTL in seconds
        advisory_check: Query ``is_held`` before the atomic acquire
        name: Name used in log lines (defaults to the lock key)
    """

    def __init__(
        self,
        locker: Locker,
        lock_key: str,
        lease_ttl: float = DEFAULT_LEASE_TTL,
        advisory_check: bool = True,
        name: str | None = None,
    ):
        self.locker = locker
        self.lock_key = lock_key
        self.lease_ttl = lease_ttl
        self.advisory_check = advisory_check
        self.name = name or lock_key
        self._is_leader = False

    @property
    def is_leader(self) -> bool:
        """Check if this instance won the election."""
        return self._is_leader

    async def campaign(self) -> bool:
        """Try to win leadership for this occurrence.

        Returns:
            True if the lock was acquired. Never raises for backend errors.
        """
        self._is_leader = False

        if self.advisory_check:
            try:
                held = await self.locker.is_held(self.lock_key)
            except Exception as e:
                logger.error(f"Schedule [{self.name}] compete is_held error: {e!r}")
                return False

            if held:
                logger.info(f"Schedule [{self.name}] compete fail")
                return False

            logger.info(f"Schedule [{self.name}] compete success")

        try:
            acquired = await self.locker.try_acquire(self.lock_key, self.lease_ttl)
        except Exception as e:
            logger.error(f"Schedule [{self.name}] lock error: [{e}]")
            return False

        if not acquired:
            logger.info(f"Schedule [{self.name}] lock fail")
            return False

        self._is_leader = True
        return True

    async def resign(self) -> bool:
        """Release the lock if this election was won.

        Returns:
            True if a release was issued without a backend error.
        """
        if not self._is_leader:
            return False

        self._is_leader = False
        try:
            await self.locker.release(self.lock_key)
        except Exception as e:
            logger.error(f"Schedule [{self.name}] unlock error: [{e}]")
            return False

        logger.debug(f"Schedule [{self.name}] unlocked")
        return True

    async def __aenter__(self) -> "LeaderElection":
        """Context manager entry - campaign once."""
        await self.campaign()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Context manager exit - release leadership if held."""
        await self.resign()


P = ParamSpec("P")
R = TypeVar("R")


def leader_only(
    locker: Locker,
    lock_key: str,
    lease_ttl: float = DEFAULT_LEASE_TTL,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R | None]]]:
    """Decorator that makes a coroutine only run on the election winner.

    Args:
        locker: Lock backend shared by all competing instances
        lock_key: Key identifying the coordination slot
        lease_ttl: Lock TTL in seconds

    Example:
        @leader_only(locker, "reports.daily")
        async def generate_daily_report():
            # Only runs on the winning instance
            ...
    """

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R | None]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R | None:
            async with LeaderElection(locker, lock_key, lease_ttl=lease_ttl) as election:
                if election.is_leader:
                    return await func(*args, **kwargs)
                logger.debug(f"Skipping {func.__name__} - not leader for '{lock_key}'")
                return None

        return wrapper

    return decorator
