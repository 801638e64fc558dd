"""
Persistent storage for automod rules (the rule store).

List-valued rule fields are stored as JSON text. Rule names are unique per
guild; inserting a duplicate raises :class:`DuplicateRuleError`.
"""

from __future__ import annotations

import json
import sqlite3
from typing import Any, List, Optional

import aiosqlite

from heimdall.datatypes.automod_datatypes import (
    AutomodAction,
    AutomodPattern,
    AutomodRule,
    AutomodTarget,
    MatchMode,
)
from heimdall.datatypes.discord_datatypes import ChannelID, GuildID, RoleID
from heimdall.util.logger import get_logger

logger = get_logger("automod_rule_repo")

_COLUMNS = (
    "id, guild_id, name, enabled, priority, target, match_mode, patterns, actions, warn_points, "
    "timeout_duration, channel_include, channel_exclude, role_include, role_exclude, wildcard_input, dm_template"
)


class DuplicateRuleError(ValueError):
    """A rule with the same name already exists in the guild."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f'A rule named "{name}" already exists')


class RuleLimitError(ValueError):
    """The guild already holds the maximum number of rules."""


def _ids_to_json(ids: List[Any]) -> str:
    return json.dumps([str(i) for i in ids])


def _row_to_rule(row: Any) -> AutomodRule:
    return AutomodRule(
        rule_id=row[0],
        guild_id=GuildID(row[1]),
        name=row[2],
        enabled=bool(row[3]),
        priority=row[4],
        target=AutomodTarget(row[5]),
        match_mode=MatchMode(row[6]),
        patterns=[AutomodPattern.from_dict(p) for p in json.loads(row[7])],
        actions=[AutomodAction(a) for a in json.loads(row[8])],
        warn_points=row[9],
        timeout_duration=row[10],
        channel_include=[ChannelID(c) for c in json.loads(row[11])],
        channel_exclude=[ChannelID(c) for c in json.loads(row[12])],
        role_include=[RoleID(r) for r in json.loads(row[13])],
        role_exclude=[RoleID(r) for r in json.loads(row[14])],
        wildcard_input=row[15] or "",
        dm_template=row[16],
    )


def _rule_params(rule: AutomodRule) -> tuple:
    return (
        rule.name,
        1 if rule.enabled else 0,
        rule.priority,
        rule.target.value,
        rule.match_mode.value,
        json.dumps([p.to_dict() for p in rule.patterns]),
        json.dumps([a.value for a in rule.actions]),
        rule.warn_points,
        rule.timeout_duration,
        _ids_to_json(rule.channel_include),
        _ids_to_json(rule.channel_exclude),
        _ids_to_json(rule.role_include),
        _ids_to_json(rule.role_exclude),
        rule.wildcard_input,
        rule.dm_template,
    )


class AutomodRuleRepo:
    """Low-level CRUD for the ``automod_rules`` table."""

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    async def create(conn: aiosqlite.Connection, rule: AutomodRule, max_rules: Optional[int] = None) -> AutomodRule:
        """Insert ``rule`` and return it with ``rule_id`` populated."""
        if max_rules is not None:
            existing = await AutomodRuleRepo.count(conn, rule.guild_id)
            if existing >= max_rules:
                raise RuleLimitError(f"Cannot create more than {max_rules} automod rules per guild")

        try:
            cursor = await conn.execute(
                """
                INSERT INTO automod_rules (
                    guild_id, name, enabled, priority, target, match_mode, patterns, actions, warn_points,
                    timeout_duration, channel_include, channel_exclude, role_include, role_exclude,
                    wildcard_input, dm_template
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (rule.guild_id.to_int(), *_rule_params(rule)),
            )
        except sqlite3.IntegrityError as exc:
            raise DuplicateRuleError(rule.name) from exc

        rule.rule_id = cursor.lastrowid
        logger.debug("[RULE STORE] Created rule %r (id=%s) in guild %s", rule.name, rule.rule_id, rule.guild_id)
        return rule

    @staticmethod
    async def update(conn: aiosqlite.Connection, rule: AutomodRule) -> bool:
        """Overwrite every field of an existing rule. Returns False if it does not exist."""
        if rule.rule_id is None:
            raise ValueError("Cannot update a rule that has not been stored")
        try:
            cursor = await conn.execute(
                """
                UPDATE automod_rules SET
                    name = ?, enabled = ?, priority = ?, target = ?, match_mode = ?, patterns = ?,
                    actions = ?, warn_points = ?, timeout_duration = ?, channel_include = ?,
                    channel_exclude = ?, role_include = ?, role_exclude = ?, wildcard_input = ?, dm_template = ?
                WHERE id = ? AND guild_id = ?
                """,
                (*_rule_params(rule), rule.rule_id, rule.guild_id.to_int()),
            )
        except sqlite3.IntegrityError as exc:
            raise DuplicateRuleError(rule.name) from exc
        return cursor.rowcount > 0

    @staticmethod
    async def delete(conn: aiosqlite.Connection, guild_id: GuildID, rule_id: int) -> bool:
        cursor = await conn.execute(
            "DELETE FROM automod_rules WHERE id = ? AND guild_id = ?",
            (rule_id, guild_id.to_int()),
        )
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    async def get(conn: aiosqlite.Connection, guild_id: GuildID, rule_id: int) -> Optional[AutomodRule]:
        cursor = await conn.execute(
            f"SELECT {_COLUMNS} FROM automod_rules WHERE id = ? AND guild_id = ?",
            (rule_id, guild_id.to_int()),
        )
        row = await cursor.fetchone()
        return _row_to_rule(row) if row else None

    @staticmethod
    async def count(conn: aiosqlite.Connection, guild_id: GuildID) -> int:
        cursor = await conn.execute("SELECT COUNT(*) FROM automod_rules WHERE guild_id = ?", (guild_id.to_int(),))
        row = await cursor.fetchone()
        return int(row[0]) if row else 0

    @staticmethod
    async def list_rules(conn: aiosqlite.Connection, guild_id: GuildID) -> List[AutomodRule]:
        """All rules in insertion order."""
        cursor = await conn.execute(
            f"SELECT {_COLUMNS} FROM automod_rules WHERE guild_id = ? ORDER BY id",
            (guild_id.to_int(),),
        )
        return [_row_to_rule(row) for row in await cursor.fetchall()]

    @staticmethod
    async def list_enabled_rules(conn: aiosqlite.Connection, guild_id: GuildID) -> List[AutomodRule]:
        """Enabled rules in insertion order; the engine applies priority ordering."""
        cursor = await conn.execute(
            f"SELECT {_COLUMNS} FROM automod_rules WHERE guild_id = ? AND enabled = 1 ORDER BY id",
            (guild_id.to_int(),),
        )
        return [_row_to_rule(row) for row in await cursor.fetchall()]
