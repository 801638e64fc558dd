from __future__ import annotations
from pathlib import Path
import fcntl
from typing import Any, Dict
import yaml

from heimdall.configuration.automod_settings import AutomodSettings
from heimdall.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path("./config/app_config.yml").resolve()
DEFAULT_DB_PATH = Path("./data/heimdall.db")


class AppConfig:
    """File-lock based accessor around the YAML application configuration.

    The class caches the contents of ``./config/app_config.yml``, exposes
    dictionary-like access helpers, and resolves automod knobs through
    :class:`AutomodSettings`. A shared fcntl lock is held while reading so a
    concurrent writer never hands us a half-written file.
    """

    def __init__(self, config_path: Path) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    # --------------------------
    # Private helpers
    # --------------------------
    def load_from_disk(self) -> Dict[str, Any]:
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                try:
                    data = yaml.safe_load(f)
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except FileNotFoundError:
            logger.error("[APP CONFIGURATION] Config file %s not found.", self.config_path)
            return {}
        except Exception as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
            return {}

        if not isinstance(data, dict):
            if data is not None:
                logger.error("[APP CONFIGURATION] Config %s is not a mapping; ignoring it.", self.config_path)
            return {}
        return data

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Reload configuration from disk and return the loaded mapping.

        Returns the raw mapping that was loaded (an empty dict on error).
        """
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        """The cached configuration mapping. Callers should not mutate it."""
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Safe lookup for top-level configuration keys."""
        return self._data.get(key, default)

    # --------------------------
    # High-level shortcuts
    # --------------------------
    @property
    def automod(self) -> AutomodSettings:
        """Automod matching knobs and authoring limits."""
        return AutomodSettings(self._data.get("automod"), self._data.get("limits"))

    @property
    def database_path(self) -> Path:
        """Path of the SQLite database file."""
        section = self._data.get("database", {})
        if isinstance(section, dict) and section.get("path"):
            return Path(str(section["path"])).resolve()
        return DEFAULT_DB_PATH.resolve()


def load_app_config(config_path: Path = CONFIG_PATH) -> AppConfig:
    """Build the process-wide configuration. Called once by the entrypoint."""
    return AppConfig(config_path)
