from pathlib import Path

import pytest
import yaml

from heimdall.configuration.app_configuration import AppConfig, DEFAULT_DB_PATH
from heimdall.configuration.automod_settings import AutomodSettings


@pytest.fixture()
def config_path(tmp_path: Path) -> Path:
    return tmp_path / "app_config.yml"


def test_app_config_reload_parses_yaml(config_path: Path, tmp_path: Path) -> None:
    config_payload = {
        "database": {"path": str(tmp_path / "db" / "heimdall.db")},
        "automod": {"max_input_length": 2000, "regex_timeout_ms": 250},
        "limits": {"max_rules": 5},
    }
    config_path.write_text(yaml.safe_dump(config_payload), encoding="utf-8")

    config = AppConfig(config_path)

    assert config.get("limits") == {"max_rules": 5}
    assert config.database_path == (tmp_path / "db" / "heimdall.db").resolve()

    automod = config.automod
    assert automod.max_input_length == 2000
    assert automod.regex_timeout_seconds == pytest.approx(0.25)
    assert automod.max_rules == 5
    assert automod.max_patterns == 50


def test_app_config_missing_file_returns_defaults(tmp_path: Path) -> None:
    config = AppConfig(tmp_path / "does_not_exist.yml")

    assert config.data == {}
    assert config.database_path == DEFAULT_DB_PATH.resolve()
    assert config.automod.max_input_length == 10000


def test_app_config_non_mapping_is_ignored(config_path: Path) -> None:
    config_path.write_text("- just\n- a list\n", encoding="utf-8")

    assert AppConfig(config_path).data == {}


def test_app_config_reload_picks_up_changes(config_path: Path) -> None:
    config_path.write_text("automod:\n  max_regex_length: 100\n", encoding="utf-8")
    config = AppConfig(config_path)
    assert config.automod.max_regex_length == 100

    config_path.write_text("automod:\n  max_regex_length: 200\n", encoding="utf-8")
    config.reload()

    assert config.automod.max_regex_length == 200


def test_automod_settings_defaults_and_bad_sections() -> None:
    settings = AutomodSettings(["not", "a", "dict"], None)  # type: ignore[arg-type]

    assert settings.data == {}
    assert settings.regex_timeout_ms == 100
    assert settings.max_regex_length == 500
    assert settings.default_timeout_seconds == 60
    assert settings.max_actions == 10
    assert settings.max_name_length == 100
    assert settings.max_id_array_length == 50
    assert settings.as_dict() == {"limits": {}}


def test_shipped_config_file_parses() -> None:
    shipped = Path(__file__).parent.parent / "config" / "app_config.yml"

    config = AppConfig(shipped)

    assert config.automod.max_input_length == 10000
    assert config.automod.max_rules == 50
