import os
import yaml

from settings_schema import SettingsSchema, validate_settings

APP_VERSION = "1.0.0"

ENV_OVERRIDES = {
    "api_url": "API_URL",
    "db_path": "DB_PATH",
    "log_level": "LOG_LEVEL",
}


class YamlConfig:
    """Load and save settings to a YAML file."""

    def __init__(self, path: str = "settings.yaml") -> None:
        self.path = path

    def load(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}

    def save(self, data: dict) -> None:
        validate_settings(data)
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(dict(data), f)


def load_settings(path: str | None = None) -> SettingsSchema:
    """Merge defaults, the YAML file and environment overrides."""
    data = YamlConfig(path or os.environ.get("YAML_PATH", "settings.yaml")).load()
    for key, env in ENV_OVERRIDES.items():
        if os.environ.get(env):
            data[key] = os.environ[env]
    if "log_level" in data:
        data["log_level"] = str(data["log_level"]).upper()
    return validate_settings(data)
