"""
Plain data types shared across Heimdall.

- **discord_datatypes.py**: Snowflake ID wrappers (guild, user, channel, role, message).
- **automod_datatypes.py**: Rules, patterns, content events and match results.
- **action_datatypes.py**: The closed set of moderation action variants and the
  executor interface that applies them.
- **infraction_datatypes.py**: Ledger records, query pages and stats.
- **escalation_datatypes.py**: Escalation tiers and re-arm policies.
"""
