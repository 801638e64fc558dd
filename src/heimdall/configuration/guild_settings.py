"""
Persistent per-guild moderation configuration.

Responsibilities:
- Hold each guild's automod switch, point decay window, immune roles and
  escalation tiers in an in-memory cache
- Persist changes to the ``moderation_config`` table and load them at startup

The automod core only ever reads these values; edits come from staff-facing
commands.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional

from heimdall.database.db_connection import ConnectionManager
from heimdall.datatypes.discord_datatypes import ChannelID, GuildID, RoleID
from heimdall.datatypes.escalation_datatypes import EscalationTier, RearmPolicy
from heimdall.util.logger import get_logger

logger = get_logger("guild_settings_manager")


@dataclass(slots=True)
class ModerationConfig:
    """Moderation settings for one guild."""

    guild_id: GuildID
    automod_enabled: bool = True
    point_decay_enabled: bool = False
    point_decay_days: int = 30
    immune_role_ids: List[RoleID] = field(default_factory=list)
    escalation_tiers: List[EscalationTier] = field(default_factory=list)
    escalation_rearm: RearmPolicy = RearmPolicy.DECAY
    log_channel_id: Optional[ChannelID] = None

    @property
    def decay_active(self) -> bool:
        return self.point_decay_enabled and self.point_decay_days > 0

    def sorted_tiers(self) -> List[EscalationTier]:
        """Tiers ordered by threshold, highest first."""
        return sorted(self.escalation_tiers, key=lambda tier: tier.threshold, reverse=True)


class ModerationConfigManager:
    """
    Cache and persistence for :class:`ModerationConfig`.

    Reads never fail: a guild with no stored row, or a failed load, yields the
    default config. Writes are awaited and report success as a bool, the way
    the settings commands expect.
    """

    def __init__(self, db: ConnectionManager) -> None:
        self._db = db
        self.configs: Dict[GuildID, ModerationConfig] = {}
        self._persist_lock = asyncio.Lock()
        logger.info("[GUILD SETTINGS MANAGER] Moderation config manager initialized")

    def get_config(self, guild_id: GuildID) -> ModerationConfig:
        """Return the cached config for the guild, creating defaults if missing."""
        config = self.configs.get(guild_id)
        if config is None:
            config = ModerationConfig(guild_id=guild_id)
            self.configs[guild_id] = config
        return config

    def list_guild_ids(self) -> List[GuildID]:
        return list(self.configs.keys())

    async def update_config(self, guild_id: GuildID, **changes) -> bool:
        """Apply field changes to the guild's config and persist them."""
        current = self.get_config(guild_id)
        try:
            updated = replace(current, **changes)
        except TypeError:
            logger.warning("[GUILD SETTINGS MANAGER] Rejected unknown config fields %s for guild %s", sorted(changes), guild_id)
            return False

        self.configs[guild_id] = updated
        return await self.persist_guild(guild_id)

    async def set_escalation_tiers(self, guild_id: GuildID, tiers: List[EscalationTier]) -> bool:
        return await self.update_config(guild_id, escalation_tiers=list(tiers))

    # -------- Persistence helpers --------
    async def persist_guild(self, guild_id: GuildID) -> bool:
        """
        Write a single guild's config to the database.

        Returns:
            bool: True if successful, False otherwise
        """
        config = self.configs.get(guild_id)
        if config is None:
            logger.warning("[GUILD SETTINGS MANAGER] Cannot persist guild %s: not in cache", guild_id)
            return False

        async with self._persist_lock:
            try:
                async with self._db.transaction() as conn:
                    await conn.execute("""
                        INSERT INTO moderation_config (
                            guild_id, automod_enabled, point_decay_enabled, point_decay_days,
                            immune_role_ids, escalation_tiers, escalation_rearm, log_channel_id
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                        ON CONFLICT(guild_id) DO UPDATE SET
                            automod_enabled = excluded.automod_enabled,
                            point_decay_enabled = excluded.point_decay_enabled,
                            point_decay_days = excluded.point_decay_days,
                            immune_role_ids = excluded.immune_role_ids,
                            escalation_tiers = excluded.escalation_tiers,
                            escalation_rearm = excluded.escalation_rearm,
                            log_channel_id = excluded.log_channel_id
                    """, (
                        guild_id.to_int(),
                        1 if config.automod_enabled else 0,
                        1 if config.point_decay_enabled else 0,
                        config.point_decay_days,
                        json.dumps([str(role_id) for role_id in config.immune_role_ids]),
                        json.dumps([tier.to_dict() for tier in config.escalation_tiers]),
                        config.escalation_rearm.value,
                        config.log_channel_id.to_int() if config.log_channel_id else None,
                    ))
                logger.debug("[GUILD SETTINGS MANAGER] Persisted guild %s to database", guild_id)
                return True
            except Exception:
                logger.exception("[GUILD SETTINGS MANAGER] Failed to persist guild %s to database", guild_id)
                return False

    async def load_from_disk(self) -> bool:
        """Load every stored guild config into memory."""
        try:
            async with self._db.read() as conn:
                async with conn.execute("""
                    SELECT guild_id, automod_enabled, point_decay_enabled, point_decay_days,
                           immune_role_ids, escalation_tiers, escalation_rearm, log_channel_id
                    FROM moderation_config
                """) as cursor:
                    rows = await cursor.fetchall()
        except Exception:
            logger.exception("[GUILD SETTINGS MANAGER] Failed to load moderation config from database")
            return False

        self.configs.clear()
        for row in rows:
            guild_id = GuildID.from_int(row[0])
            try:
                self.configs[guild_id] = ModerationConfig(
                    guild_id=guild_id,
                    automod_enabled=bool(row[1]),
                    point_decay_enabled=bool(row[2]),
                    point_decay_days=int(row[3]),
                    immune_role_ids=[RoleID(r) for r in json.loads(row[4] or "[]")],
                    escalation_tiers=[EscalationTier.from_dict(t) for t in json.loads(row[5] or "[]")],
                    escalation_rearm=RearmPolicy(row[6] or RearmPolicy.DECAY.value),
                    log_channel_id=ChannelID.from_int(row[7]) if row[7] else None,
                )
            except (ValueError, TypeError, KeyError):
                logger.exception("[GUILD SETTINGS MANAGER] Skipping malformed config row for guild %s", guild_id)

        if rows:
            logger.info("[GUILD SETTINGS MANAGER] Loaded %d guild configs from database", len(self.configs))
        return bool(rows)
