"""
RuleStore: the guild rule set as the enforcer and staff commands see it.

Wraps :class:`AutomodRuleRepo` with transactions and the configured limits.
Writes propagate their errors; :meth:`list_enabled_rules` sits on the hot
path and degrades to an empty list.
"""

from __future__ import annotations

from typing import List, Optional

from heimdall.configuration.automod_settings import AutomodSettings
from heimdall.database.db_connection import ConnectionManager
from heimdall.datatypes.automod_datatypes import AutomodRule
from heimdall.datatypes.discord_datatypes import GuildID
from heimdall.repositories.automod_rule_repo import AutomodRuleRepo
from heimdall.util.logger import get_logger

logger = get_logger("rule_store")


class RuleStore:
    """Transactional access to a guild's automod rules."""

    def __init__(self, db: ConnectionManager, settings: Optional[AutomodSettings] = None) -> None:
        self._db = db
        self._settings = settings or AutomodSettings()

    async def create_rule(self, rule: AutomodRule) -> AutomodRule:
        """
        Store a new rule.

        Raises:
            DuplicateRuleError: A rule with the same name exists in the guild.
            RuleLimitError: The guild is at its rule limit.
        """
        async with self._db.transaction() as conn:
            created = await AutomodRuleRepo.create(conn, rule, max_rules=self._settings.max_rules)
        logger.info("[RULE STORE] Created rule %r (id=%s) in guild %s", created.name, created.rule_id, created.guild_id)
        return created

    async def update_rule(self, rule: AutomodRule) -> bool:
        async with self._db.transaction() as conn:
            updated = await AutomodRuleRepo.update(conn, rule)
        if updated:
            logger.info("[RULE STORE] Updated rule %r (id=%s) in guild %s", rule.name, rule.rule_id, rule.guild_id)
        return updated

    async def delete_rule(self, guild_id: GuildID, rule_id: int) -> bool:
        async with self._db.transaction() as conn:
            deleted = await AutomodRuleRepo.delete(conn, guild_id, rule_id)
        if deleted:
            logger.info("[RULE STORE] Deleted rule %s in guild %s", rule_id, guild_id)
        return deleted

    async def set_enabled(self, guild_id: GuildID, rule_id: int, enabled: bool) -> bool:
        rule = await self.get_rule(guild_id, rule_id)
        if rule is None:
            return False
        rule.enabled = enabled
        return await self.update_rule(rule)

    async def get_rule(self, guild_id: GuildID, rule_id: int) -> Optional[AutomodRule]:
        async with self._db.read() as conn:
            return await AutomodRuleRepo.get(conn, guild_id, rule_id)

    async def list_rules(self, guild_id: GuildID) -> List[AutomodRule]:
        async with self._db.read() as conn:
            return await AutomodRuleRepo.list_rules(conn, guild_id)

    async def list_enabled_rules(self, guild_id: GuildID) -> List[AutomodRule]:
        """Enabled rules for the guild; empty on any storage error."""
        try:
            async with self._db.read() as conn:
                return await AutomodRuleRepo.list_enabled_rules(conn, guild_id)
        except Exception:
            logger.exception("[RULE STORE] Failed to load enabled rules for guild %s", guild_id)
            return []
