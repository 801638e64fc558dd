"""
Heimdall - Discord automod and infraction points bot

Heimdall enforces staff-authored content rules, keeps a per-member points
ledger with time-based decay, and escalates repeat offenders through
configured tiers.

Core Components:

- **Pattern Compiler**: Turns simple ``*`` wildcard patterns into anchored,
  case-insensitive regular expressions with per-segment validation
- **Rule Engine**: Scopes, orders and evaluates rules against message text,
  emoji, links, stickers, reactions, usernames and nicknames under a
  per-match time budget
- **Infraction Ledger**: Append-only SQLite record of infractions with lazy
  decay and active-points computation
- **Escalation Resolver**: Maps a points threshold crossing to tier actions
  under a configurable re-arm policy

Usage:
    from heimdall.main import main
    main()
"""
