"""Tests for bounded regex execution and the content extractors."""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import regex

from heimdall.automod import regex_engine
from heimdall.datatypes.automod_datatypes import AutomodPattern, MatchMode


class TestValidateRegex:
    def test_valid_pattern(self):
        result = regex_engine.validate_regex(r"\bfoo\b", "i")
        assert result.valid
        assert result.error is None

    def test_empty_pattern(self):
        assert regex_engine.validate_regex("").error == "Pattern cannot be empty"

    def test_too_long(self):
        result = regex_engine.validate_regex("a" * 501)
        assert result.error == "Pattern exceeds maximum length of 500 characters"

    def test_custom_max_length(self):
        assert not regex_engine.validate_regex("abcdef", max_length=5).valid

    def test_unknown_flags(self):
        result = regex_engine.validate_regex("foo", "ixz")
        assert result.error == "Invalid regex flags: xz"

    def test_uncompilable(self):
        result = regex_engine.validate_regex("(unclosed")
        assert not result.valid
        assert result.error.startswith("Invalid regex:")


class TestTranslateFlags:
    def test_known_letters(self):
        bits = regex_engine.translate_flags("ims")
        assert bits & regex.IGNORECASE
        assert bits & regex.MULTILINE
        assert bits & regex.DOTALL

    def test_global_and_sticky_letters_are_accepted_but_inert(self):
        assert regex_engine.translate_flags("gy") == regex_engine.translate_flags("")


class TestSafeRegexTest:
    def test_reports_match_and_index(self):
        result = regex_engine.safe_regex_test("bad", "i", "this is BAD")
        assert result.matched
        assert result.match == "BAD"
        assert result.index == 8

    def test_case_sensitive_without_i(self):
        assert not regex_engine.safe_regex_test("bad", "", "BAD").matched

    def test_empty_text(self):
        assert not regex_engine.safe_regex_test("x", "i", "").matched

    def test_input_is_truncated(self):
        text = "a" * 20 + "z"
        assert not regex_engine.safe_regex_test("z", "", text, max_input_length=10).matched
        assert regex_engine.safe_regex_test("z", "", text, max_input_length=21).matched

    def test_compile_error_is_no_match(self):
        assert not regex_engine.safe_regex_test("(", "", "(").matched

    def test_timeout_is_no_match(self):
        compiled = MagicMock()
        compiled.search.side_effect = TimeoutError("regex timed out")
        with patch.object(regex_engine, "_compile", return_value=compiled):
            result = regex_engine.safe_regex_test("(a+)+$", "", "aaaa!", timeout_seconds=0.001)

        assert not result.matched
        assert compiled.search.call_args.kwargs["timeout"] == 0.001


class TestTestPatterns:
    patterns = [
        AutomodPattern(regex="foo", flags="i", label="foo"),
        AutomodPattern(regex="bar", flags="i", label="bar"),
    ]

    def test_any_reports_first_matching_pattern(self):
        result = regex_engine.match_patterns(self.patterns, "only bar here", MatchMode.ANY)
        assert result.matched
        assert result.pattern.label == "bar"
        assert result.match == "bar"
        assert result.index == 5

    def test_all_requires_every_pattern(self):
        assert not regex_engine.match_patterns(self.patterns, "only bar here", MatchMode.ALL).matched

    def test_all_reports_first_pattern(self):
        result = regex_engine.match_patterns(self.patterns, "bar then foo", MatchMode.ALL)
        assert result.matched
        assert result.pattern.label == "foo"
        assert result.index == 9

    def test_no_patterns(self):
        assert not regex_engine.match_patterns([], "foo").matched


class TestExtractors:
    def test_extract_emoji(self):
        info = regex_engine.extract_emoji("hi 😀 <:pog:123> <a:dance:456>")

        assert info.unicode == ("😀",)
        assert [(e.name, e.id, e.animated) for e in info.custom] == [("pog", "123", False), ("dance", "456", True)]
        assert info.custom[0].raw == "<:pog:123>"

    def test_emoji_content(self):
        info = regex_engine.extract_emoji("<:pog:123> 🔥")
        assert regex_engine.emoji_content(info) == "🔥 pog:123"

    def test_extract_emoji_from_plain_text(self):
        info = regex_engine.extract_emoji("no emoji here")
        assert info.unicode == ()
        assert info.custom == ()

    def test_extract_urls(self):
        text = "see https://example.com/a?b=1 and <http://evil.test/x> or ftp://no"
        assert regex_engine.extract_urls(text) == ["https://example.com/a?b=1", "http://evil.test/x"]

    def test_extract_sticker_names(self):
        stickers = ["wave", SimpleNamespace(name="dance"), SimpleNamespace(name=None)]
        assert regex_engine.extract_sticker_names(stickers) == ["wave", "dance"]
