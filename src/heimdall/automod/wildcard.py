"""
Wildcard pattern compiler.

Staff write simple patterns with ``*`` as the only wildcard; these are
compiled into case-insensitive regular expressions the rule engine runs.

- ``word``   matches the exact word (word boundary on both sides)
- ``*word``  matches anything ending with "word" (e.g. "sword")
- ``word*``  matches anything starting with "word" (e.g. "wording")
- ``*word*`` matches "word" anywhere (e.g. "swordfight")
- ``*w*rd``  an inner ``*`` matches any run of non-whitespace ("word", "weird")
- several patterns may be given at once, separated by commas: ``*m*m, d*d``
"""

from __future__ import annotations

from typing import List

import regex

from heimdall.automod import regex_engine
from heimdall.datatypes.automod_datatypes import AutomodPattern, WildcardParseResult
from heimdall.util.logger import get_logger

logger = get_logger("wildcard")

WILDCARD = "*"
ANY_RUN = r"\S*"
WILDCARD_FLAGS = "i"


def _left_anchor(first: str) -> str:
    # \b only behaves like a word edge next to a word character.
    return r"\b" if regex.match(r"\w", first) else r"(?<!\w)"


def _right_anchor(last: str) -> str:
    return r"\b" if regex.match(r"\w", last) else r"(?!\w)"


def core_literal(wildcard: str) -> str:
    """The pattern with leading and trailing wildcards removed."""
    return wildcard.strip().strip(WILDCARD)


def wildcard_to_regex(wildcard: str) -> str:
    """
    Convert one wildcard pattern to a regex string.

    Regex-special characters are escaped, inner ``*`` become ``\\S*``, and a
    word-boundary anchor is added on each side that does not carry a
    wildcard. Returns an empty string for blank input.
    """
    trimmed = wildcard.strip()
    if not trimmed:
        return ""

    starts_wild = trimmed.startswith(WILDCARD)
    ends_wild = trimmed.endswith(WILDCARD)
    core = core_literal(trimmed)

    body = ANY_RUN.join(regex.escape(piece) for piece in core.split(WILDCARD))

    prefix = ANY_RUN if starts_wild or not core else _left_anchor(core[0])
    suffix = ANY_RUN if ends_wild or not core else _right_anchor(core[-1])
    return f"{prefix}{body}{suffix}"


def describe_wildcard(wildcard: str) -> str:
    """Human-readable label for what a wildcard pattern matches."""
    trimmed = wildcard.strip()
    starts_wild = trimmed.startswith(WILDCARD)
    ends_wild = trimmed.endswith(WILDCARD)
    core = core_literal(trimmed)

    if starts_wild and ends_wild:
        return f'Contains "{core}"'
    if starts_wild:
        return f'Ends with "{core}"'
    if ends_wild:
        return f'Starts with "{core}"'
    return f'Exact word "{core}"'


def split_wildcards(text: str) -> List[str]:
    """Split comma-separated input, trimming segments and dropping empty ones."""
    return [segment.strip() for segment in text.split(",") if segment.strip()]


def parse_wildcard_patterns(text: str) -> WildcardParseResult:
    """
    Compile comma-separated wildcard input.

    Invalid segments are reported in ``errors`` without preventing their
    valid siblings from compiling.
    """
    segments = split_wildcards(text or "")
    if not segments:
        return WildcardParseResult(patterns=(), errors=("No patterns provided",))

    patterns: List[AutomodPattern] = []
    errors: List[str] = []

    for segment in segments:
        literal = segment.replace(WILDCARD, "")
        if not literal:
            errors.append(f'Pattern "{segment}" must contain at least one non-wildcard character')
            continue

        if len(literal) < 2 and WILDCARD not in segment:
            errors.append(f'Pattern "{segment}" is too short, use at least 2 characters')
            continue

        compiled = wildcard_to_regex(segment)
        validation = regex_engine.check_compiles(compiled, WILDCARD_FLAGS)
        if not validation.valid:
            errors.append(f'Pattern "{segment}" generated invalid regex: {validation.error}')
            continue

        patterns.append(
            AutomodPattern(
                regex=compiled,
                flags=WILDCARD_FLAGS,
                label=describe_wildcard(segment),
                wildcard=segment,
            )
        )

    if errors:
        logger.debug("[WILDCARD] %d of %d segments rejected: %s", len(errors), len(segments), errors)

    return WildcardParseResult(patterns=tuple(patterns), errors=tuple(errors))


def preview_wildcard(wildcard: str, text: str) -> bool:
    """Live-preview helper: does ``wildcard`` match ``text``? Never raises."""
    compiled = wildcard_to_regex(wildcard)
    if not compiled:
        return False
    return regex_engine.safe_regex_test(compiled, WILDCARD_FLAGS, text).matched
