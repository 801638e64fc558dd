from typing import Any, Dict


class AutomodSettings:
    """Typed accessors over the ``automod`` and ``limits`` sections of app_config.yml.

    Every property falls back to the built-in default when the key is missing
    or the section is not a mapping, so callers never need to null-check.
    """

    def __init__(self, automod: Dict[str, Any] | None = None, limits: Dict[str, Any] | None = None) -> None:
        self.data: Dict[str, Any] = automod if isinstance(automod, dict) else {}
        self.limits: Dict[str, Any] = limits if isinstance(limits, dict) else {}

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def as_dict(self) -> Dict[str, Any]:
        return {**self.data, "limits": dict(self.limits)}

    # Matching
    @property
    def max_input_length(self) -> int:
        return int(self.data.get("max_input_length", 10000))

    @property
    def regex_timeout_ms(self) -> int:
        return int(self.data.get("regex_timeout_ms", 100))

    @property
    def regex_timeout_seconds(self) -> float:
        return self.regex_timeout_ms / 1000.0

    @property
    def max_regex_length(self) -> int:
        return int(self.data.get("max_regex_length", 500))

    @property
    def default_timeout_seconds(self) -> int:
        return int(self.data.get("default_timeout_seconds", 60))

    # Authoring limits
    @property
    def max_rules(self) -> int:
        return int(self.limits.get("max_rules", 50))

    @property
    def max_patterns(self) -> int:
        return int(self.limits.get("max_patterns", 50))

    @property
    def max_actions(self) -> int:
        return int(self.limits.get("max_actions", 10))

    @property
    def max_name_length(self) -> int:
        return int(self.limits.get("max_name_length", 100))

    @property
    def max_id_array_length(self) -> int:
        return int(self.limits.get("max_id_array_length", 50))
