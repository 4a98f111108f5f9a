"""
langdag Configuration - Configuration loading and validation.

This module provides the Config class for managing langdag configuration
from both global (~/.langdag/config.yaml) and local (.langdag/config.yaml)
sources, with environment variable overrides on top.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from langdag.errors import ConfigError


class EngineConfig(BaseModel):
    """Where to reach the engine's GraphQL session."""

    host: str = "127.0.0.1"
    port: Optional[int] = None
    token: Optional[str] = None


class AgentConfig(BaseModel):
    """Configuration for the chat-completion agent loop."""

    model: str = "gpt-4o"
    seed: Optional[int] = 0
    system_prompt: Optional[str] = None
    max_turns: int = 20


class LangdagConfig(BaseModel):
    """Complete langdag configuration schema."""

    engine: EngineConfig = Field(default_factory=EngineConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    modules: List[str] = Field(default_factory=list)
    log_level: str = "WARNING"


# env var -> (section, key); section None means top level
ENV_OVERRIDES = {
    "DAGGER_SESSION_PORT": ("engine", "port"),
    "DAGGER_SESSION_TOKEN": ("engine", "token"),
    "LANGDAG_MODEL": ("agent", "model"),
    "LANGDAG_LOG_LEVEL": (None, "log_level"),
}


class Config:
    """
    langdag configuration manager.

    Handles loading, merging, and validating configuration from:
    - Global: ~/.langdag/config.yaml
    - Local: .langdag/config.yaml (nearest one above the working directory)
    - Environment: DAGGER_SESSION_PORT, DAGGER_SESSION_TOKEN, LANGDAG_MODEL,
      LANGDAG_LOG_LEVEL

    Later sources override earlier ones.

    Example:
        >>> config = Config.load()
        >>> config.merged.engine.port
        40123
    """

    GLOBAL_CONFIG_DIR = Path.home() / ".langdag"
    LOCAL_CONFIG_DIR = Path(".langdag")

    def __init__(
        self,
        global_config: Optional[Dict[str, Any]] = None,
        local_config: Optional[Dict[str, Any]] = None,
        environ: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize Config.

        Args:
            global_config: Global configuration dictionary.
            local_config: Local (project) configuration dictionary.
            environ: Environment to read overrides from; defaults to os.environ.
        """
        self._global_config = global_config or {}
        self._local_config = local_config or {}
        self._environ = os.environ if environ is None else environ
        self._merged: Optional[LangdagConfig] = None

    @classmethod
    def load(cls, start: Optional[Path] = None) -> "Config":
        """
        Load configuration from default locations.

        Returns:
            Config instance with loaded configuration.
        """
        global_config = cls._load_yaml(cls.GLOBAL_CONFIG_DIR / "config.yaml")
        local_config = cls._load_yaml(cls._find_local_config(start))

        return cls(global_config=global_config, local_config=local_config)

    @classmethod
    def _load_yaml(cls, path: Optional[Path]) -> Dict[str, Any]:
        """Load YAML file if it exists."""
        if path is None or not path.exists():
            return {}

        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to load config from {path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"{path}: config must be a YAML mapping")
        return data

    @classmethod
    def _find_local_config(cls, start: Optional[Path] = None) -> Optional[Path]:
        """Find the local config file by walking up the directory tree."""
        current = (start or Path.cwd()).resolve()
        while current != current.parent:
            config_path = current / cls.LOCAL_CONFIG_DIR / "config.yaml"
            if config_path.exists():
                return config_path
            current = current.parent
        return None

    def get_merged_config(self) -> Dict[str, Any]:
        """Get the merged configuration as a dictionary, environment applied last."""
        merged = self._deep_merge(self._global_config.copy(), self._local_config)
        for var, (section, key) in ENV_OVERRIDES.items():
            value = self._environ.get(var)
            if not value:
                continue
            if section is None:
                merged[key] = value
            else:
                merged[section] = {**merged.get(section, {}), key: value}
        return merged

    @property
    def merged(self) -> LangdagConfig:
        """Get the validated merged configuration."""
        if self._merged is None:
            try:
                self._merged = LangdagConfig(**self.get_merged_config())
            except ValidationError as e:
                raise ConfigError(f"Invalid configuration: {e}") from e
        return self._merged

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries, with override taking precedence."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result
