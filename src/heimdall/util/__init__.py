"""
Utility helpers for Heimdall.

- **logger.py**: Centralised logging with coloured prompt_toolkit console output
  and a per-session log file. Silences chatty library loggers.

- **keyed_lock.py**: Per-key asyncio locks used to serialise point accounting
  for a single (guild, user) pair.

- **format_utils.py**: DM template rendering, duration and timestamp formatting.
"""
