"""Tests for the infraction ledger: recording, decay, history and stats."""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
import pytest_asyncio

from heimdall.configuration.guild_settings import ModerationConfigManager
from heimdall.database.db_connection import ConnectionManager
from heimdall.datatypes.discord_datatypes import GuildID, UserID
from heimdall.datatypes.infraction_datatypes import (
    InfractionPersistenceError,
    InfractionSource,
    InfractionType,
    RecordInfractionData,
)
from heimdall.repositories.infraction_repo import InfractionRepo
from heimdall.services.infraction_ledger import InfractionLedger

GUILD = GuildID(1000)
USER = UserID(2000)
OTHER_USER = UserID(3000)


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest_asyncio.fixture
async def db(tmp_path):
    manager = ConnectionManager()
    await manager.open(tmp_path / "test.db")
    yield manager
    await manager.close()


@pytest.fixture
def config_manager(db):
    return ModerationConfigManager(db)


@pytest.fixture
def ledger(db, config_manager, clock):
    return InfractionLedger(db, config_manager, clock=clock)


def warn(points, user=USER, infraction_type=InfractionType.WARN, source=InfractionSource.MANUAL):
    return RecordInfractionData(
        guild_id=GUILD,
        user_id=user,
        source=source,
        type=infraction_type,
        reason="test",
        points_assigned=points,
    )


async def enable_decay(config_manager, days=7):
    await config_manager.update_config(GUILD, point_decay_enabled=True, point_decay_days=days)


class TestRecordInfraction:
    @pytest.mark.asyncio
    async def test_running_total(self, ledger):
        results = [await ledger.record_infraction(warn(points)) for points in (3, 2, 0)]

        assert [r.active_points for r in results] == [3, 5, 5]
        assert [r.infraction.total_points_after for r in results] == [3, 5, 5]
        assert results[1].previous_points == 3
        assert await ledger.get_active_points(GUILD, USER) == 5

    @pytest.mark.asyncio
    async def test_members_are_independent(self, ledger):
        await ledger.record_infraction(warn(4))
        result = await ledger.record_infraction(warn(1, user=OTHER_USER))

        assert result.active_points == 1

    @pytest.mark.asyncio
    async def test_no_expiry_without_decay(self, ledger):
        result = await ledger.record_infraction(warn(3))
        assert result.infraction.expires_at is None

    @pytest.mark.asyncio
    async def test_expiry_with_decay(self, ledger, config_manager, clock):
        await enable_decay(config_manager, days=7)

        pointed = await ledger.record_infraction(warn(3))
        pointless = await ledger.record_infraction(warn(0))
        escalation = await ledger.record_infraction(warn(0, infraction_type=InfractionType.ESCALATION))

        assert pointed.infraction.expires_at == clock() + timedelta(days=7)
        assert pointless.infraction.expires_at is None
        assert escalation.infraction.expires_at == clock() + timedelta(days=7)

    @pytest.mark.asyncio
    async def test_zero_day_window_disables_decay(self, ledger, config_manager):
        await enable_decay(config_manager, days=0)
        result = await ledger.record_infraction(warn(3))
        assert result.infraction.expires_at is None

    @pytest.mark.asyncio
    async def test_expired_points_stop_counting(self, ledger, config_manager, clock):
        await enable_decay(config_manager, days=7)
        await ledger.record_infraction(warn(3))

        clock.advance(days=8)
        result = await ledger.record_infraction(warn(2))

        assert result.active_points == 2
        assert result.previous_points == 0
        assert await ledger.get_active_points(GUILD, USER) == 2

    @pytest.mark.asyncio
    async def test_write_failure_raises(self, ledger):
        with patch.object(InfractionRepo, "insert", side_effect=RuntimeError("disk full")):
            with pytest.raises(InfractionPersistenceError):
                await ledger.record_infraction(warn(1))

        assert await ledger.get_active_points(GUILD, USER) == 0


class TestClear:
    @pytest.mark.asyncio
    async def test_clear_deactivates_rows_but_keeps_history(self, ledger):
        await ledger.record_infraction(warn(3))
        await ledger.record_infraction(warn(2))
        await ledger.record_infraction(warn(1, user=OTHER_USER))

        cleared = await ledger.clear_user_infractions(GUILD, USER)

        assert cleared == 2
        assert await ledger.get_active_points(GUILD, USER) == 0
        assert await ledger.get_active_points(GUILD, OTHER_USER) == 1
        page = await ledger.get_user_infractions(GUILD, USER)
        assert page.total == 2
        assert not any(i.active for i in page.infractions)

    @pytest.mark.asyncio
    async def test_clear_twice_clears_nothing(self, ledger):
        await ledger.record_infraction(warn(3))
        await ledger.clear_user_infractions(GUILD, USER)
        assert await ledger.clear_user_infractions(GUILD, USER) == 0

    @pytest.mark.asyncio
    async def test_clear_failure_raises(self, ledger):
        with patch.object(InfractionRepo, "deactivate_member", side_effect=RuntimeError("locked")):
            with pytest.raises(InfractionPersistenceError):
                await ledger.clear_user_infractions(GUILD, USER)


class TestHistory:
    @pytest.mark.asyncio
    async def test_pagination_newest_first(self, ledger, clock):
        for points in range(1, 6):
            await ledger.record_infraction(warn(points))
            clock.advance(minutes=1)

        first = await ledger.get_user_infractions(GUILD, USER, page=1, limit=2)
        last = await ledger.get_user_infractions(GUILD, USER, page=3, limit=2)

        assert first.total == 5
        assert first.pages == 3
        assert [i.points_assigned for i in first.infractions] == [5, 4]
        assert [i.points_assigned for i in last.infractions] == [1]

    @pytest.mark.asyncio
    async def test_filters(self, ledger):
        await ledger.record_infraction(warn(1))
        await ledger.record_infraction(
            warn(2, source=InfractionSource.AUTOMOD, infraction_type=InfractionType.AUTOMOD_DELETE)
        )

        automod = await ledger.get_user_infractions(GUILD, USER, source=InfractionSource.AUTOMOD)
        warns = await ledger.get_user_infractions(GUILD, USER, infraction_type=InfractionType.WARN)

        assert [i.type for i in automod.infractions] == [InfractionType.AUTOMOD_DELETE]
        assert [i.source for i in warns.infractions] == [InfractionSource.MANUAL]

    @pytest.mark.asyncio
    async def test_read_failure_degrades(self, ledger):
        with patch.object(InfractionRepo, "count", side_effect=RuntimeError("boom")):
            page = await ledger.get_user_infractions(GUILD, USER)
        assert page.infractions == []
        assert page.total == 0

    @pytest.mark.asyncio
    async def test_guild_stats(self, ledger):
        await ledger.record_infraction(warn(1))
        await ledger.record_infraction(
            warn(2, user=OTHER_USER, source=InfractionSource.AUTOMOD, infraction_type=InfractionType.AUTOMOD_DELETE)
        )
        await ledger.clear_user_infractions(GUILD, USER)

        stats = await ledger.get_guild_stats(GUILD)

        assert stats.total_infractions == 2
        assert stats.active_infractions == 1
        assert stats.by_source == {"manual": 1, "automod": 1}
        assert stats.by_type == {"warn": 1, "automod_delete": 1}
        assert len(stats.recent_infractions) == 2


class TestTriggeredTiers:
    @pytest.mark.asyncio
    async def test_expired_escalations_are_optional(self, ledger, config_manager, clock):
        await enable_decay(config_manager, days=1)
        data = warn(0, infraction_type=InfractionType.ESCALATION)
        data.escalation_triggered = "Mute"
        await ledger.record_infraction(data)

        assert await ledger.triggered_tiers(GUILD, USER) == {"Mute"}
        clock.advance(days=2)
        assert await ledger.triggered_tiers(GUILD, USER) == set()
        assert await ledger.triggered_tiers(GUILD, USER, include_expired=True) == {"Mute"}

        await ledger.clear_user_infractions(GUILD, USER)
        assert await ledger.triggered_tiers(GUILD, USER, include_expired=True) == set()
