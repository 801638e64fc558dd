"""Tests for guild_settings module."""

import pytest
import pytest_asyncio

from heimdall.configuration.guild_settings import ModerationConfig, ModerationConfigManager
from heimdall.database.db_connection import ConnectionManager
from heimdall.datatypes.automod_datatypes import AutomodAction
from heimdall.datatypes.discord_datatypes import ChannelID, GuildID, RoleID
from heimdall.datatypes.escalation_datatypes import EscalationTier, RearmPolicy


@pytest_asyncio.fixture
async def db(tmp_path):
    """Create a temporary database for testing."""
    manager = ConnectionManager()
    await manager.open(tmp_path / "guild_settings.db")
    yield manager
    await manager.close()


class TestModerationConfig:
    """Tests for ModerationConfig dataclass."""

    def test_defaults(self):
        config = ModerationConfig(guild_id=GuildID(1))

        assert config.automod_enabled is True
        assert config.point_decay_enabled is False
        assert config.point_decay_days == 30
        assert config.immune_role_ids == []
        assert config.escalation_tiers == []
        assert config.escalation_rearm is RearmPolicy.DECAY
        assert config.log_channel_id is None
        assert config.decay_active is False

    def test_decay_active_needs_positive_window(self):
        assert ModerationConfig(guild_id=GuildID(1), point_decay_enabled=True).decay_active
        assert not ModerationConfig(guild_id=GuildID(1), point_decay_enabled=True, point_decay_days=0).decay_active

    def test_sorted_tiers_highest_first(self):
        config = ModerationConfig(
            guild_id=GuildID(1),
            escalation_tiers=[EscalationTier("a", 3), EscalationTier("c", 10), EscalationTier("b", 6)],
        )
        assert [t.name for t in config.sorted_tiers()] == ["c", "b", "a"]


class TestEscalationTier:
    def test_round_trip(self):
        tier = EscalationTier(name="Mute", threshold=3, actions=[AutomodAction.TIMEOUT], duration=600)
        assert EscalationTier.from_dict(tier.to_dict()) == tier

    def test_legacy_single_action_keys(self):
        tier = EscalationTier.from_dict({"name": "Kick", "pointsThreshold": 6, "action": "kick"})

        assert tier.threshold == 6
        assert tier.actions == [AutomodAction.KICK]
        assert tier.duration is None


class TestModerationConfigManager:
    """Tests for ModerationConfigManager class."""

    def test_get_config_creates_default(self):
        manager = ModerationConfigManager(ConnectionManager())

        config = manager.get_config(GuildID(42))

        assert config.guild_id == GuildID(42)
        assert manager.list_guild_ids() == [GuildID(42)]

    @pytest.mark.asyncio
    async def test_update_config_persists_and_reloads(self, db):
        manager = ModerationConfigManager(db)
        tiers = [EscalationTier(name="Mute", threshold=3, actions=[AutomodAction.TIMEOUT], duration=600)]

        assert await manager.update_config(
            GuildID(42),
            automod_enabled=False,
            point_decay_enabled=True,
            point_decay_days=14,
            immune_role_ids=[RoleID(7)],
            escalation_rearm=RearmPolicy.NEVER,
            log_channel_id=ChannelID(99),
        )
        assert await manager.set_escalation_tiers(GuildID(42), tiers)

        fresh = ModerationConfigManager(db)
        assert await fresh.load_from_disk() is True

        config = fresh.get_config(GuildID(42))
        assert config.automod_enabled is False
        assert config.point_decay_enabled is True
        assert config.point_decay_days == 14
        assert config.immune_role_ids == [RoleID(7)]
        assert config.escalation_tiers == tiers
        assert config.escalation_rearm is RearmPolicy.NEVER
        assert config.log_channel_id == ChannelID(99)

    @pytest.mark.asyncio
    async def test_update_config_rejects_unknown_fields(self, db):
        manager = ModerationConfigManager(db)

        assert await manager.update_config(GuildID(42), ai_enabled=True) is False
        assert manager.get_config(GuildID(42)).automod_enabled is True

    @pytest.mark.asyncio
    async def test_persist_unknown_guild(self, db):
        manager = ModerationConfigManager(db)
        assert await manager.persist_guild(GuildID(1)) is False

    @pytest.mark.asyncio
    async def test_load_from_empty_database(self, db):
        manager = ModerationConfigManager(db)
        assert await manager.load_from_disk() is False
        assert manager.configs == {}

    @pytest.mark.asyncio
    async def test_persist_failure_reports_false(self):
        manager = ModerationConfigManager(ConnectionManager())  # never opened
        manager.get_config(GuildID(1))

        assert await manager.persist_guild(GuildID(1)) is False
