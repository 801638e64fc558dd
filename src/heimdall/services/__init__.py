"""
Services that sit between the Discord cogs and the storage layer.

- **rule_store.py**: Guild rule CRUD with limits.
- **infraction_ledger.py**: Infraction recording, active points and history.
- **escalation_resolver.py**: Tier selection for a points crossing.
- **automod_enforcer.py**: The event -> actions -> ledger -> escalation pipeline.
- **discord_action_executor.py**: Applies actions through py-cord.
"""
