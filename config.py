import os
import yaml

APP_VERSION = "1.0.0"


class YamlConfig:
    """Load and save application configuration from a YAML file."""

    DEFAULTS = {
        "db_path": "workout_log.db",
        "timezone": "UTC",
        "log_level": "WARNING",
        "settings": {},
    }

    def __init__(self, path: str | None = None) -> None:
        self.path = path or os.environ.get("WORKOUT_LOG_CONFIG", "workout_log.yaml")

    def load(self) -> dict:
        """Return the configuration merged over :attr:`DEFAULTS`."""
        data = dict(self.DEFAULTS)
        if not os.path.exists(self.path):
            return data
        with open(self.path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"{self.path}: expected a mapping at top level")
        data.update(loaded)
        if not isinstance(data.get("settings") or {}, dict):
            raise ValueError(f"{self.path}: 'settings' must be a mapping")
        return data

    def save(self, data: dict) -> None:
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(dict(data), f)
