"""Configuration management for llamacode."""

from __future__ import annotations

import dataclasses
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger("llamacode.config")

APP_DIR_NAME = ".llamacode"
CONFIG_FILENAME = "config.json"
ENV_PREFIX = "LLAMACODE_"

DEFAULT_CONFIG = {
    "ollama_url": "http://localhost:11434",
    "ollama_model": "qwen2.5-coder:14b",
    "ollama_temperature": 0.7,
    "ollama_timeout": 300.0,
    "streaming": True,
    "token_limit": 0,
    "require_confirmation": True,
    "confirmation_timeout": 0.0,
    "command_timeout": 120.0,
    "custom_system_prompt": "",
    "working_directory": "",
    "plugins_dir": "",
    "plugin_tool_prefix": "plugin_",
    "plugin_timeout": 60.0,
    "sessions_dir": "",
    "rag_index_path": "",
    "enable_browser": False,
    "browser_timeout": 30.0,
    "log_file": "",
}


def get_app_dir() -> Path:
    return Path.home() / APP_DIR_NAME


def default_config_path() -> Path:
    return get_app_dir() / CONFIG_FILENAME


@dataclass(frozen=True)
class Config:
    """Application configuration loaded from ~/.llamacode/config.json."""

    # Ollama
    ollama_url: str
    ollama_model: str
    ollama_temperature: float
    ollama_timeout: float

    # Agent loop
    streaming: bool
    token_limit: int
    require_confirmation: bool
    confirmation_timeout: float
    command_timeout: float
    custom_system_prompt: str
    working_directory: str

    # Plugins
    plugins_dir: str
    plugin_tool_prefix: str
    plugin_timeout: float

    # Storage
    sessions_dir: str
    rag_index_path: str

    # Browser
    enable_browser: bool
    browser_timeout: float

    # Logging
    log_file: str

    @classmethod
    def load(cls, config_path: str | Path | None = None) -> Config:
        """Load config from the given path or the default ~/.llamacode/config.json."""
        if config_path:
            config_file = Path(config_path)
        else:
            config_file = default_config_path()
            config_file.parent.mkdir(parents=True, exist_ok=True)

        current_config = DEFAULT_CONFIG.copy()

        if config_file.exists():
            try:
                with open(config_file, "r", encoding="utf-8") as f:
                    user_config = json.load(f)
                current_config.update(
                    {k: v for k, v in user_config.items() if k in DEFAULT_CONFIG}
                )
            except (OSError, json.JSONDecodeError) as e:
                logger.error(f"Failed to load config from {config_file}: {e}. Using defaults.")
        elif config_path is None:
            logger.info(f"No config found. Generating default config at {config_file}")
            try:
                with open(config_file, "w", encoding="utf-8") as f:
                    json.dump(DEFAULT_CONFIG, f, indent=4)
            except OSError as e:
                logger.error(f"Failed to write default config: {e}")
        else:
            logger.warning(f"Configuration file not found at {config_file}, using defaults")

        # Environment variables win over the file
        for key in current_config:
            env_key = f"{ENV_PREFIX}{key.upper()}"
            if env_key not in os.environ:
                continue
            val = os.environ[env_key]
            default_val = DEFAULT_CONFIG.get(key)
            if isinstance(default_val, bool):
                current_config[key] = val.lower() in ("true", "1", "yes")
            elif isinstance(default_val, int):
                try:
                    current_config[key] = int(val)
                except ValueError:
                    logger.warning(f"Ignoring non-integer {env_key}={val!r}")
            elif isinstance(default_val, float):
                try:
                    current_config[key] = float(val)
                except ValueError:
                    logger.warning(f"Ignoring non-numeric {env_key}={val!r}")
            else:
                current_config[key] = val

        return cls(**current_config)

    def save(self, config_path: str | Path | None = None) -> Path:
        """Write this config as JSON and return the file path."""
        config_file = Path(config_path) if config_path else default_config_path()
        config_file.parent.mkdir(parents=True, exist_ok=True)
        with open(config_file, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=4)
        return config_file

    def update(self, **changes: Any) -> Config:
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)

    # ── Resolved paths ──

    def resolved_working_directory(self) -> Path:
        return Path(self.working_directory or os.getcwd()).resolve()

    def resolved_plugins_dir(self) -> Path:
        return Path(self.plugins_dir).expanduser() if self.plugins_dir else get_app_dir() / "plugins"

    def resolved_sessions_dir(self) -> Path:
        return Path(self.sessions_dir).expanduser() if self.sessions_dir else get_app_dir() / "conversations"

    def resolved_rag_index_path(self) -> Path:
        return Path(self.rag_index_path).expanduser() if self.rag_index_path else get_app_dir() / "rag-index.json"

    def resolved_log_file(self) -> Path:
        return Path(self.log_file).expanduser() if self.log_file else get_app_dir() / "log" / "llamacode.log"
