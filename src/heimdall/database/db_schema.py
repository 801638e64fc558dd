"""
Database schema initialization.

Creates the moderation config, automod rule and infraction tables plus
their indexes, and records the schema version.
"""

import aiosqlite
from heimdall.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 1


class SchemaManager:
    """Creates and versions the database schema."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        """
        Create all tables and indexes if they do not exist yet.

        Args:
            db: Open database connection
        """
        await SchemaManager._create_tables(db)
        await SchemaManager._create_indexes(db)
        await SchemaManager._create_triggers(db)
        await db.execute("INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
        await db.commit()
        logger.info("[SCHEMA] Database schema initialized")

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        # Per-guild moderation settings; list-valued fields are JSON text.
        await db.execute("""
            CREATE TABLE IF NOT EXISTS moderation_config (
                guild_id INTEGER PRIMARY KEY,
                automod_enabled INTEGER NOT NULL DEFAULT 1,
                point_decay_enabled INTEGER NOT NULL DEFAULT 0,
                point_decay_days INTEGER NOT NULL DEFAULT 30,
                immune_role_ids TEXT NOT NULL DEFAULT '[]',
                escalation_tiers TEXT NOT NULL DEFAULT '[]',
                escalation_rearm TEXT NOT NULL DEFAULT 'decay',
                log_channel_id INTEGER,
                created_at INTEGER NOT NULL DEFAULT (strftime('%s','now')),
                updated_at INTEGER NOT NULL DEFAULT (strftime('%s','now'))
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS automod_rules (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                guild_id INTEGER NOT NULL,
                name TEXT NOT NULL,
                enabled INTEGER NOT NULL DEFAULT 1,
                priority INTEGER NOT NULL DEFAULT 0,
                target TEXT NOT NULL,
                match_mode TEXT NOT NULL DEFAULT 'any',
                patterns TEXT NOT NULL,
                actions TEXT NOT NULL,
                warn_points INTEGER NOT NULL DEFAULT 0,
                timeout_duration INTEGER,
                channel_include TEXT NOT NULL DEFAULT '[]',
                channel_exclude TEXT NOT NULL DEFAULT '[]',
                role_include TEXT NOT NULL DEFAULT '[]',
                role_exclude TEXT NOT NULL DEFAULT '[]',
                wildcard_input TEXT NOT NULL DEFAULT '',
                dm_template TEXT,
                created_at INTEGER NOT NULL DEFAULT (strftime('%s','now')),
                updated_at INTEGER NOT NULL DEFAULT (strftime('%s','now')),
                UNIQUE (guild_id, name)
            )
        """)

        # Append-only; only `active` is ever updated.
        await db.execute("""
            CREATE TABLE IF NOT EXISTS infractions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                guild_id INTEGER NOT NULL,
                user_id TEXT NOT NULL,
                moderator_id TEXT,
                source TEXT NOT NULL,
                type TEXT NOT NULL,
                reason TEXT,
                rule_id INTEGER,
                rule_name TEXT,
                matched_content TEXT,
                matched_pattern TEXT,
                points_assigned INTEGER NOT NULL DEFAULT 0,
                total_points_after INTEGER NOT NULL DEFAULT 0,
                escalation_triggered TEXT,
                channel_id INTEGER,
                message_id INTEGER,
                duration INTEGER,
                expires_at INTEGER,
                active INTEGER NOT NULL DEFAULT 1,
                created_at INTEGER NOT NULL
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    @staticmethod
    async def _create_indexes(db: aiosqlite.Connection) -> None:
        await db.execute("CREATE INDEX IF NOT EXISTS idx_automod_rules_guild ON automod_rules(guild_id, enabled, priority DESC)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_infractions_member ON infractions(guild_id, user_id, active, expires_at)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_infractions_recent ON infractions(guild_id, created_at DESC)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_infractions_escalation ON infractions(guild_id, user_id, escalation_triggered)")

    @staticmethod
    async def _create_triggers(db: aiosqlite.Connection) -> None:
        await db.execute("""
            CREATE TRIGGER IF NOT EXISTS update_moderation_config_timestamp
            AFTER UPDATE ON moderation_config
            FOR EACH ROW
            BEGIN
                UPDATE moderation_config SET updated_at = strftime('%s','now')
                WHERE guild_id = NEW.guild_id;
            END
        """)

        await db.execute("""
            CREATE TRIGGER IF NOT EXISTS update_automod_rules_timestamp
            AFTER UPDATE ON automod_rules
            FOR EACH ROW
            BEGIN
                UPDATE automod_rules SET updated_at = strftime('%s','now')
                WHERE id = NEW.id;
            END
        """)
