"""
Configuration loader and helpers for the media organizer.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable

import yaml

DEFAULT_CONFIG_PATH = Path("config.yaml")
ENV_CONFIG_PATH = "MEDIA_ORGANIZER_CONFIG"

# Conventional environment variables consulted when a vendor section has no api_key.
PROVIDER_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "azure_openai": "AZURE_OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "grok": "XAI_API_KEY",
}


@dataclass(frozen=True)
class AppConfig:
    """Raw YAML configuration plus path and provider helpers."""

    root_dir: Path
    raw: Dict[str, Any]

    @classmethod
    def load(cls, path: Path | None = None) -> "AppConfig":
        """Load configuration from YAML; the file's directory anchors relative paths."""
        config_path = path
        if config_path is None:
            env_value = os.environ.get(ENV_CONFIG_PATH)
            config_path = Path(env_value) if env_value else DEFAULT_CONFIG_PATH
        config_path = Path(config_path).expanduser()
        if not config_path.is_absolute():
            config_path = (Path.cwd() / config_path).resolve()
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config root must be a mapping: {config_path}")
        return cls(root_dir=config_path.parent, raw=data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], root_dir: Path | None = None) -> "AppConfig":
        return cls(root_dir=root_dir or Path.cwd(), raw=dict(data))

    def get(self, *keys: str, default: Any = None) -> Any:
        """Retrieve nested configuration values with an optional default."""
        node: Any = self.raw
        for key in keys:
            if not isinstance(node, dict) or key not in node:
                return default
            node = node[key]
        return node

    def resolve_path(self, *keys: str, default: str | None = None) -> Path:
        """Resolve a path from configuration keys to an absolute Path."""
        value = self.get(*keys, default=default)
        if value is None:
            raise KeyError(f"Missing config path for {'.'.join(keys)}")
        path = Path(value)
        if not path.is_absolute():
            path = (self.root_dir / path).resolve()
        return path

    def database_paths(self) -> Dict[str, Path]:
        return {
            "library": self.resolve_path("databases", "library", default="data/library.sqlite"),
            "state": self.resolve_path("databases", "state", default="data/state.sqlite"),
        }

    def provider_settings(self, name: str) -> Dict[str, Any]:
        """Vendor section merged with shared ai options and env-var API keys."""
        settings: Dict[str, Any] = {
            "timeout": self.get("ai", "request_timeout", default=30),
            "language": self.get("ai", "language", default="English"),
        }
        section = self.get("ai", name, default={}) or {}
        settings.update(section)
        env_key = PROVIDER_KEY_ENV.get(name)
        if env_key and not settings.get("api_key"):
            settings["api_key"] = os.environ.get(env_key, "")
        return settings


def ensure_directories(paths: Iterable[Path]) -> None:
    """Create directories if they do not already exist."""
    for path in paths:
        path.mkdir(parents=True, exist_ok=True)
