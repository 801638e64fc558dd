import re
from datetime import datetime, timezone
from typing import Any, Mapping

from heimdall.util.logger import get_logger

logger = get_logger("format_utils")

DEFAULT_DM_TEMPLATE = (
    "You received an infraction in **{server}**.\n"
    "**Reason:** {reason}\n"
    "**Points:** {points} (total: {totalPoints})"
)

_TEMPLATE_VARIABLE = re.compile(r"\{(\w+)\}")


def render_template(template: str, variables: Mapping[str, Any]) -> str:
    """Substitute ``{name}`` placeholders. Unknown or empty variables are left as written.

    Args:
        template: Template text, e.g. ``"Hi {username}"``.
        variables: Values keyed by placeholder name.

    Returns:
        The rendered text.
    """
    def _replace(match: "re.Match[str]") -> str:
        value = variables.get(match.group(1))
        return match.group(0) if value is None else str(value)

    return _TEMPLATE_VARIABLE.sub(_replace, template)


def format_duration(seconds: int) -> str:
    """Compact human duration: ``2d 3h``, ``4h 10m``, ``5m 30s`` or ``45s``."""
    seconds = max(0, int(seconds))
    minutes, secs = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)
    days, hours = divmod(hours, 24)

    if days:
        return f"{days}d {hours}h"
    if hours:
        return f"{hours}h {minutes}m"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def humanize_timestamp(value: datetime) -> str:
    """Return a human-readable timestamp (YYYY-MM-DD HH:MM:SS) in UTC.

    Naive datetimes are assumed to already be UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%d %H:%M:%S UTC")


def truncate(text: str, limit: int = 1024) -> str:
    """Clip ``text`` to ``limit`` characters for embed fields."""
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."
