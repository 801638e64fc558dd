"""
Bounded regex execution and content extractors.

All matching against member-supplied content goes through
:func:`safe_regex_test`: the input is truncated and each search runs with a
wall-clock budget, so one pathological staff pattern cannot stall the bot.
Compile failures and timeouts are reported as "no match".
"""

from __future__ import annotations

from functools import lru_cache
from typing import Iterable, List, Sequence

import regex

from heimdall.datatypes.automod_datatypes import (
    AutomodPattern,
    CustomEmoji,
    EmojiInfo,
    MatchMode,
    PatternTestResult,
    RegexMatch,
    RegexValidation,
)
from heimdall.util.logger import get_logger

logger = get_logger("regex_engine")

DEFAULT_MAX_INPUT_LENGTH = 10000
DEFAULT_TIMEOUT_SECONDS = 0.1
DEFAULT_MAX_REGEX_LENGTH = 500

ALLOWED_FLAGS = frozenset("gimsuy")
_FLAG_MAP = {
    "i": regex.IGNORECASE,
    "m": regex.MULTILINE,
    "s": regex.DOTALL,
}

CUSTOM_EMOJI_PATTERN = regex.compile(r"<(a?):(\w+):(\d+)>")
UNICODE_EMOJI_PATTERN = regex.compile(
    r"[\p{Extended_Pictographic}\p{Regional_Indicator}]"
    r"(?:[\u200d\ufe0f\p{Emoji_Modifier}]+[\p{Extended_Pictographic}\p{Regional_Indicator}]?)*"
)
URL_PATTERN = regex.compile(r"https?://[^\s<>]+", regex.IGNORECASE)


def translate_flags(flags: str) -> int:
    """Map JavaScript-style flag letters onto ``regex`` flags. Unknown letters are ignored."""
    value = regex.V0
    for letter in flags or "":
        value |= _FLAG_MAP.get(letter, 0)
    return value


@lru_cache(maxsize=1024)
def _compile(pattern: str, flag_bits: int) -> "regex.Pattern[str]":
    return regex.compile(pattern, flag_bits)


def check_compiles(pattern: str, flags: str = "i") -> RegexValidation:
    """Only check that ``pattern`` compiles under ``flags``."""
    try:
        _compile(pattern, translate_flags(flags))
    except regex.error as exc:
        return RegexValidation(valid=False, error=str(exc))
    return RegexValidation(valid=True)


def validate_regex(pattern: str, flags: str = "i", max_length: int = DEFAULT_MAX_REGEX_LENGTH) -> RegexValidation:
    """
    Validate a staff-authored raw regex pattern.

    Args:
        pattern: Regex source.
        flags: Flag letters; only ``g i m s u y`` are accepted.
        max_length: Longest pattern source accepted.

    Returns:
        RegexValidation: ``valid`` plus a human-readable ``error`` when invalid.
    """
    if not pattern:
        return RegexValidation(valid=False, error="Pattern cannot be empty")
    if len(pattern) > max_length:
        return RegexValidation(valid=False, error=f"Pattern exceeds maximum length of {max_length} characters")

    bad_flags = sorted(set(flags or "") - ALLOWED_FLAGS)
    if bad_flags:
        return RegexValidation(valid=False, error=f"Invalid regex flags: {''.join(bad_flags)}")

    result = check_compiles(pattern, flags)
    if not result.valid:
        return RegexValidation(valid=False, error=f"Invalid regex: {result.error}")
    return result


def safe_regex_test(
    pattern: str,
    flags: str,
    text: str,
    max_input_length: int = DEFAULT_MAX_INPUT_LENGTH,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
) -> RegexMatch:
    """
    Search ``text`` for ``pattern`` with a truncated input and a time budget.

    Never raises: compile errors and timeouts are logged and yield a non-match.
    """
    if not text:
        return RegexMatch(matched=False)

    subject = text[:max_input_length]
    try:
        compiled = _compile(pattern, translate_flags(flags))
    except regex.error as exc:
        logger.warning("[REGEX ENGINE] Skipping pattern that failed to compile %r: %s", pattern, exc)
        return RegexMatch(matched=False)

    try:
        found = compiled.search(subject, timeout=timeout_seconds)
    except TimeoutError:
        logger.warning(
            "[REGEX ENGINE] Pattern %r exceeded %.0fms on %d characters, treating as no match",
            pattern, timeout_seconds * 1000, len(subject),
        )
        return RegexMatch(matched=False)

    if found is None:
        return RegexMatch(matched=False)
    return RegexMatch(matched=True, match=found.group(0), index=found.start())


def match_patterns(
    patterns: Sequence[AutomodPattern],
    text: str,
    mode: MatchMode = MatchMode.ANY,
    max_input_length: int = DEFAULT_MAX_INPUT_LENGTH,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
) -> PatternTestResult:
    """
    Run a pattern set against ``text``.

    ANY returns on the first matching pattern. ALL stops at the first pattern
    that does not match; when every pattern matches, the first pattern's match
    is reported.
    """
    if not patterns or not text:
        return PatternTestResult(matched=False)

    if mode is MatchMode.ALL:
        first = None
        for pattern in patterns:
            result = safe_regex_test(pattern.regex, pattern.flags, text, max_input_length, timeout_seconds)
            if not result.matched:
                return PatternTestResult(matched=False)
            if first is None:
                first = PatternTestResult(matched=True, pattern=pattern, match=result.match, index=result.index)
        return first

    for pattern in patterns:
        result = safe_regex_test(pattern.regex, pattern.flags, text, max_input_length, timeout_seconds)
        if result.matched:
            return PatternTestResult(matched=True, pattern=pattern, match=result.match, index=result.index)
    return PatternTestResult(matched=False)


# ---------------------------------------------------------------------------
# Content extractors
# ---------------------------------------------------------------------------

def extract_emoji(text: str) -> EmojiInfo:
    """Split message text into unicode emoji runs and custom ``<:name:id>`` emoji."""
    if not text:
        return EmojiInfo()

    custom = tuple(
        CustomEmoji(name=m.group(2), id=m.group(3), animated=bool(m.group(1)), raw=m.group(0))
        for m in CUSTOM_EMOJI_PATTERN.finditer(text)
    )
    remainder = CUSTOM_EMOJI_PATTERN.sub(" ", text)
    unicode = tuple(m.group(0) for m in UNICODE_EMOJI_PATTERN.finditer(remainder))
    return EmojiInfo(unicode=unicode, custom=custom)


def emoji_content(info: EmojiInfo) -> str:
    """Evaluable text for emoji targets: unicode runs then ``name:id`` per custom emoji."""
    parts: List[str] = list(info.unicode)
    parts.extend(f"{emoji.name}:{emoji.id}" for emoji in info.custom)
    return " ".join(parts)


def extract_urls(text: str) -> List[str]:
    if not text:
        return []
    return URL_PATTERN.findall(text)


def extract_sticker_names(stickers: Iterable) -> List[str]:
    """Names of stickers, accepting plain strings or objects with a ``name``."""
    names: List[str] = []
    for sticker in stickers or ():
        name = sticker if isinstance(sticker, str) else getattr(sticker, "name", None)
        if name:
            names.append(str(name))
    return names
