"""
Configuration management for Heimdall.

- **app_configuration.py**: YAML application config (database path, regex
  budget, authoring limits). Falls back to defaults on missing or malformed files.
- **automod_settings.py**: Typed view over the automod and limits sections.
- **guild_settings.py**: Per-guild moderation config (automod switch, decay,
  immune roles, escalation tiers) cached in memory and persisted to SQLite.
"""
