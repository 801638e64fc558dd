"""
Automod core: pure, synchronous matching.

- **wildcard.py**: Wildcard pattern compiler, labels and live preview.
- **regex_engine.py**: Bounded regex execution, raw regex validation and the
  emoji / URL / sticker content extractors.
- **rule_engine.py**: Rule scoping, priority ordering and evaluation.
- **rule_builder.py**: Validates staff input into an :class:`AutomodRule`.
- **presets.py**: Built-in rule templates.
"""
