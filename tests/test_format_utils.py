from datetime import datetime, timedelta, timezone

import pytest

from heimdall.util.format_utils import (
    DEFAULT_DM_TEMPLATE,
    format_duration,
    humanize_timestamp,
    render_template,
    truncate,
)


def test_render_template_substitutes_known_variables():
    rendered = render_template("Hi {username}, you have {totalPoints} points", {"username": "bob", "totalPoints": 4})
    assert rendered == "Hi bob, you have 4 points"


def test_render_template_keeps_unknown_and_empty_placeholders():
    rendered = render_template("{rule} / {missing}", {"rule": None})
    assert rendered == "{rule} / {missing}"


def test_default_template_renders():
    rendered = render_template(DEFAULT_DM_TEMPLATE, {"server": "Guild", "reason": "spam", "points": 1, "totalPoints": 3})
    assert "**Guild**" in rendered
    assert "1 (total: 3)" in rendered


@pytest.mark.parametrize(
    "seconds, expected",
    [(45, "45s"), (330, "5m 30s"), (15000, "4h 10m"), (183600, "2d 3h"), (-4, "0s")],
)
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected


def test_humanize_timestamp_converts_to_utc():
    value = datetime(2024, 5, 1, 14, 30, 0, tzinfo=timezone(timedelta(hours=2)))
    assert humanize_timestamp(value) == "2024-05-01 12:30:00 UTC"


def test_humanize_timestamp_naive_is_utc():
    assert humanize_timestamp(datetime(2024, 5, 1, 8, 0, 0)) == "2024-05-01 08:00:00 UTC"


def test_truncate():
    assert truncate("short") == "short"
    assert truncate("x" * 20, limit=10) == "xxxxxxx..."
