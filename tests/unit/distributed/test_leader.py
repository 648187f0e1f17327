"""Tests for leader election."""

from unittest.mock import AsyncMock

import pytest

from cronlock.distributed.leader import LeaderElection, leader_only
from cronlock.distributed.lock import MemoryLocker
from cronlock.errors import LockError


@pytest.fixture
def mock_locker() -> AsyncMock:
    """Create mock locker that grants every request."""
    locker = AsyncMock()
    locker.is_held = AsyncMock(return_value=False)
    locker.try_acquire = AsyncMock(return_value=True)
    locker.release = AsyncMock(return_value=None)
    return locker


class TestLeaderElection:
    """Tests for LeaderElection.campaign and resign."""

    @pytest.mark.asyncio
    async def test_campaign_wins_free_key(self, mock_locker: AsyncMock) -> None:
        """Free key is acquired with the lease TTL."""
        election = LeaderElection(mock_locker, "app.schedules.job.locker", lease_ttl=30)

        assert await election.campaign() is True
        assert election.is_leader is True
        mock_locker.is_held.assert_awaited_once_with("app.schedules.job.locker")
        mock_locker.try_acquire.assert_awaited_once_with("app.schedules.job.locker", 30)

    @pytest.mark.asyncio
    async def test_campaign_backs_off_when_held(self, mock_locker: AsyncMock) -> None:
        """Held key loses without an acquire attempt."""
        mock_locker.is_held.return_value = True
        election = LeaderElection(mock_locker, "job")

        assert await election.campaign() is False
        assert election.is_leader is False
        mock_locker.try_acquire.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_campaign_lost_race(self, mock_locker: AsyncMock) -> None:
        """Key taken between the check and the acquire loses."""
        mock_locker.try_acquire.return_value = False
        election = LeaderElection(mock_locker, "job")

        assert await election.campaign() is False
        assert election.is_leader is False

    @pytest.mark.asyncio
    async def test_query_error_fails_closed(self, mock_locker: AsyncMock) -> None:
        """Backend error on the advisory check loses."""
        mock_locker.is_held.side_effect = LockError("query", "job")
        election = LeaderElection(mock_locker, "job")

        assert await election.campaign() is False
        mock_locker.try_acquire.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_acquire_error_fails_closed(self, mock_locker: AsyncMock) -> None:
        """Backend error on the acquire loses."""
        mock_locker.try_acquire.side_effect = LockError("acquire", "job")
        election = LeaderElection(mock_locker, "job")

        assert await election.campaign() is False
        assert election.is_leader is False

    @pytest.mark.asyncio
    async def test_advisory_check_disabled(self, mock_locker: AsyncMock) -> None:
        """Without the advisory check only the atomic acquire is issued."""
        election = LeaderElection(mock_locker, "job", advisory_check=False)

        assert await election.campaign() is True
        mock_locker.is_held.assert_not_awaited()
        mock_locker.try_acquire.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_resign_releases_when_leader(self, mock_locker: AsyncMock) -> None:
        """Winner releases its key."""
        election = LeaderElection(mock_locker, "job")
        await election.campaign()

        assert await election.resign() is True
        assert election.is_leader is False
        mock_locker.release.assert_awaited_once_with("job")

    @pytest.mark.asyncio
    async def test_resign_without_leadership(self, mock_locker: AsyncMock) -> None:
        """Loser never issues a release."""
        mock_locker.is_held.return_value = True
        election = LeaderElection(mock_locker, "job")
        await election.campaign()

        assert await election.resign() is False
        mock_locker.release.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_resign_error_is_swallowed(self, mock_locker: AsyncMock) -> None:
        """Release failure is logged, not raised."""
        mock_locker.release.side_effect = LockError("release", "job")
        election = LeaderElection(mock_locker, "job")
        await election.campaign()

        assert await election.resign() is False

    @pytest.mark.asyncio
    async def test_context_manager(self, mock_locker: AsyncMock) -> None:
        """Context manager campaigns on entry and resigns on exit."""
        async with LeaderElection(mock_locker, "job") as election:
            assert election.is_leader is True

        mock_locker.release.assert_awaited_once_with("job")

    @pytest.mark.asyncio
    async def test_two_instances_one_winner(
        self, locker: MemoryLocker, other_locker: MemoryLocker
    ) -> None:
        """Instances sharing a store elect exactly one leader."""
        first = LeaderElection(locker, "job")
        second = LeaderElection(other_locker, "job")

        assert await first.campaign() is True
        assert await second.campaign() is False

        await first.resign()
        assert await second.campaign() is True


class TestLeaderOnly:
    """Tests for the leader_only decorator."""

    @pytest.mark.asyncio
    async def test_runs_on_leader(self, mock_locker: AsyncMock) -> None:
        """Winner runs the coroutine and gets its result."""

        @leader_only(mock_locker, "reports.daily")
        async def report(value: int) -> int:
            return value * 2

        assert await report(21) == 42
        mock_locker.release.assert_awaited_once_with("reports.daily")

    @pytest.mark.asyncio
    async def test_skips_on_follower(self, mock_locker: AsyncMock) -> None:
        """Loser skips the coroutine."""
        mock_locker.is_held.return_value = True
        calls: list[int] = []

        @leader_only(mock_locker, "reports.daily")
        async def report() -> None:
            calls.append(1)

        assert await report() is None
        assert calls == []

    def test_preserves_metadata(self, mock_locker: AsyncMock) -> None:
        """Wrapped coroutine keeps its name."""

        @leader_only(mock_locker, "reports.daily")
        async def generate_daily_report() -> None:
            pass

        assert generate_daily_report.__name__ == "generate_daily_report"
