"""Configuration loading helpers for the notifier."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

import yaml

from .models import ConfigMissing, NotifierConfig

CONFIG_EXTENSIONS = (".yaml", ".yml", ".json")
CONFIG_FILENAME = "notifier_config.yaml"
TOKEN_ENV_VAR = "EXPA_ACCESS_TOKEN"


def _read_file(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {path}")
    return data


def _write_file(path: Path, payload: dict) -> None:
    with path.open("w", encoding="utf-8") as stream:
        if path.suffix in (".yaml", ".yml"):
            yaml.safe_dump(payload, stream, allow_unicode=True, sort_keys=False)
        else:
            json.dump(payload, stream, indent=2, ensure_ascii=False)


@dataclass(slots=True)
class ConfigLocator:
    """Resolve important paths from project root."""

    project_root: Path | None = None
    data_dir: Path | None = None
    history_dir: Path | None = None
    logs_dir: Path | None = None
    config_file: Path | None = None

    def __post_init__(self) -> None:
        env_root = os.environ.get("EXPA_NOTIFIER_HOME")
        if env_root:
            root = Path(env_root).expanduser().resolve()
        else:
            root = (self.project_root or Path(__file__).resolve().parents[2]).resolve()
        self.project_root = root
        self.data_dir = (root / "data").resolve()
        self.history_dir = (self.data_dir / "history").resolve()
        self.logs_dir = (root / "logs").resolve()
        self.ensure_directories()

    def ensure_directories(self) -> None:
        for directory in (self.data_dir, self.history_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def config_path(self) -> Path:
        if self.config_file is not None:
            return self.config_file
        return self.data_dir / CONFIG_FILENAME


class ConfigRepository:
    """Repository encapsulating config IO and schema validation."""

    def __init__(self, locator: ConfigLocator | None = None) -> None:
        self.locator = locator or ConfigLocator()
        self._cache: NotifierConfig | None = None

    def load(self) -> NotifierConfig:
        if self._cache is not None:
            return self._cache
        path = self.locator.config_path()
        if path.exists():
            config = NotifierConfig.model_validate(_read_file(path))
        else:
            config = NotifierConfig()
            self.save(config)
        if not config.upstream.token:
            env_token = os.environ.get(TOKEN_ENV_VAR, "").strip()
            if env_token:
                config.upstream.token = env_token
        self._cache = config
        return config

    def load_validated(self) -> NotifierConfig:
        """Load configuration and refuse to continue when required settings are absent."""

        config = self.load()
        missing = config.missing_settings()
        if missing:
            raise ConfigMissing(missing)
        return config

    def save(self, config: NotifierConfig) -> Path:
        path = self.locator.config_path()
        if path.suffix not in CONFIG_EXTENSIONS:
            raise ValueError(f"Unsupported configuration format: {path.suffix}")
        path.parent.mkdir(parents=True, exist_ok=True)
        _write_file(path, config.model_dump(mode="json"))
        self._cache = config
        return path

    def sqlite_path(self, config: NotifierConfig) -> Path:
        return config.store.resolved_sqlite_path(self.locator.project_root)


__all__ = ["CONFIG_EXTENSIONS", "ConfigLocator", "ConfigRepository", "TOKEN_ENV_VAR"]
