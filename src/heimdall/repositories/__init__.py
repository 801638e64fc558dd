"""Raw SQL for the automod rule and infraction tables. Callers own the transaction."""
