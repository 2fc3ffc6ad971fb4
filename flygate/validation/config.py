"""
flygate Configuration - Configuration loading and validation.

This module provides the Config class for managing flygate configuration
from both global (~/.flygate/config.yaml) and local (.flygate/config.yaml)
sources, plus a handful of environment overrides.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from flygate.errors import ConfigError


class FlyConfig(BaseModel):
    """How to reach the platform CLI and which org/region to default to."""

    binary: str = "fly"
    org: Optional[str] = None
    region: Optional[str] = None


class RouterConfig(BaseModel):
    """Subnet router deployment settings."""

    image: Optional[str] = None
    region: str = "iad"
    join_timeout: int = 180


class TailnetConfig(BaseModel):
    """Tailnet control-plane API access."""

    api_key: Optional[str] = None
    tailnet: str = "-"
    api_base: str = "https://api.tailscale.com/api/v2"


class AuditConfig(BaseModel):
    """Where per-call results are written, if anywhere."""

    results_dir: Optional[str] = None
    keep_results: int = 200


class LoggingConfig(BaseModel):
    level: str = "WARNING"


class FlyGateConfig(BaseModel):
    """Complete flygate configuration schema."""

    network: Optional[str] = None
    fly: FlyConfig = Field(default_factory=FlyConfig)
    router: RouterConfig = Field(default_factory=RouterConfig)
    tailnet: TailnetConfig = Field(default_factory=TailnetConfig)
    audit: AuditConfig = Field(default_factory=AuditConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


ENV_OVERRIDES = {
    "FLYGATE_NETWORK": ("network",),
    "FLY_ORG": ("fly", "org"),
    "TAILSCALE_API_KEY": ("tailnet", "api_key"),
}


class Config:
    """
    flygate configuration manager.

    Handles loading, merging, and validating configuration from:
    - Global: ~/.flygate/config.yaml
    - Local: .flygate/config.yaml (found by walking up from the cwd)
    - Environment: FLYGATE_NETWORK, FLY_ORG, TAILSCALE_API_KEY

    Local configuration overrides global configuration; the environment
    overrides both.

    Example:
        >>> config = Config.load()
        >>> network = config.get_default_network()
    """

    GLOBAL_CONFIG_DIR = Path.home() / ".flygate"
    LOCAL_CONFIG_DIR = Path(".flygate")

    def __init__(
        self,
        global_config: Optional[Dict[str, Any]] = None,
        local_config: Optional[Dict[str, Any]] = None,
        env: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize Config.

        Args:
            global_config: Global configuration dictionary.
            local_config: Local (project) configuration dictionary.
            env: Environment to read overrides from. Defaults to ``os.environ``.
        """
        self._global_config = global_config or {}
        self._local_config = local_config or {}
        self._env = os.environ if env is None else env
        self._merged: Optional[FlyGateConfig] = None

    @classmethod
    def load(cls) -> "Config":
        """
        Load configuration from default locations.

        Returns:
            Config instance with loaded configuration.
        """
        global_config = cls._load_yaml(cls.GLOBAL_CONFIG_DIR / "config.yaml")
        local_config = cls._load_yaml(cls._find_local_config())

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
            raise ConfigError(f"Failed to load config from {path}: {e}")
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        return data

    @classmethod
    def _find_local_config(cls) -> Optional[Path]:
        """Find the local config file by walking up the directory tree."""
        current = Path.cwd()
        while current != current.parent:
            config_path = current / cls.LOCAL_CONFIG_DIR / "config.yaml"
            if config_path.exists():
                return config_path
            current = current.parent
        return None

    def get_merged_config(self) -> Dict[str, Any]:
        """Get the merged configuration (files, then environment) as a dictionary."""
        merged = self._deep_merge(self._global_config.copy(), self._local_config)
        for var, path in ENV_OVERRIDES.items():
            value = self._env.get(var)
            if value:
                merged = self._deep_merge(merged, _nest(path, value))
        return merged

    @property
    def merged(self) -> FlyGateConfig:
        """Get the validated merged configuration."""
        if self._merged is None:
            try:
                self._merged = FlyGateConfig(**self.get_merged_config())
            except ValidationError as e:
                raise ConfigError(f"Invalid configuration: {e}")
        return self._merged

    def get_default_network(self) -> Optional[str]:
        return self.merged.network

    def get_default_org(self) -> Optional[str]:
        return self.merged.fly.org

    def get_tailnet_api_key(self) -> Optional[str]:
        return self.merged.tailnet.api_key

    def require_network(self) -> str:
        """The configured network, or ``ConfigError`` if none is set."""
        network = self.get_default_network()
        if not network:
            raise ConfigError(
                "No network configured. Set 'network' in .flygate/config.yaml "
                "or the FLYGATE_NETWORK environment variable."
            )
        return network

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries, with override taking precedence."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result


def _nest(path, value: Any) -> Dict[str, Any]:
    """``("fly", "org"), "x"`` -> ``{"fly": {"org": "x"}}``"""
    nested: Any = value
    for key in reversed(path):
        nested = {key: nested}
    return nested
