"""Configuration loader for mDNS discovery.

This module handles loading configuration from files and environment variables,
with validation.
"""

import dataclasses
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .schema import (
    DiscoveryConfig,
    LoggingConfig,
    MDNSDiscoveryConfig,
    create_default_config,
)

ENV_PREFIX = "MDNS_DISCOVERY_"


class ConfigLoader:
    """Configuration loader merging defaults, a file and the environment."""

    def __init__(self, config_file: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_file: Path to configuration file (YAML or JSON)
        """
        self.config_file = config_file
        self._config: Optional[MDNSDiscoveryConfig] = None

    def load_config(self) -> MDNSDiscoveryConfig:
        """Load configuration from file and environment variables.

        Returns:
            Loaded and validated discovery configuration

        Raises:
            FileNotFoundError: If config file is specified but not found
            ValueError: If configuration is invalid
            yaml.YAMLError: If YAML parsing fails
            json.JSONDecodeError: If JSON parsing fails
        """
        # Start with default configuration
        config_dict = self._get_default_config_dict()

        # Load from file if specified
        if self.config_file:
            file_config = self._load_from_file(self.config_file)
            config_dict = self._merge_configs(config_dict, file_config)

        # Apply environment variable overrides
        config_dict = self._apply_env_overrides(config_dict)

        # Create and validate configuration
        self._config = self._dict_to_config(config_dict)

        return self._config

    def get_config(self) -> Optional[MDNSDiscoveryConfig]:
        """Get current configuration."""
        return self._config

    def _load_from_file(self, file_path: str) -> Dict[str, Any]:
        """Load configuration from YAML or JSON file.

        Args:
            file_path: Path to configuration file

        Returns:
            Configuration dictionary
        """
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {file_path}")

        with open(path, "r", encoding="utf-8") as f:
            content = f.read()

        # Determine file format from extension
        if path.suffix.lower() == ".json":
            result = json.loads(content)
        else:
            # YAML is a superset of JSON, so it covers unknown extensions too
            result = yaml.safe_load(content)

        return result if isinstance(result, dict) else {}

    def _get_default_config_dict(self) -> Dict[str, Any]:
        """Get default configuration as dictionary."""
        return dataclasses.asdict(create_default_config())

    def _dict_to_config(self, config_dict: Dict[str, Any]) -> MDNSDiscoveryConfig:
        """Convert dictionary to configuration object.

        Raises:
            ValueError: If configuration is invalid or has unknown keys
        """
        try:
            discovery_config = DiscoveryConfig(**config_dict.get("discovery", {}))
            logging_config = LoggingConfig(**config_dict.get("logging", {}))
        except TypeError as e:
            raise ValueError(f"Invalid configuration: {e}") from e

        return MDNSDiscoveryConfig(discovery=discovery_config, logging=logging_config)

    def _merge_configs(
        self, base: Dict[str, Any], override: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Merge two configuration dictionaries.

        Args:
            base: Base configuration dictionary
            override: Override configuration dictionary

        Returns:
            Merged configuration dictionary
        """
        result = base.copy()

        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value

        return result

    def _apply_env_overrides(self, config_dict: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration.

        Environment variables use the format MDNS_DISCOVERY_<SECTION>_<KEY>
        For example: MDNS_DISCOVERY_DISCOVERY_WITH_LOOPBACK=true
        """
        for env_key, env_value in os.environ.items():
            if not env_key.startswith(ENV_PREFIX):
                continue

            key_parts = env_key[len(ENV_PREFIX) :].lower().split("_")
            if len(key_parts) < 2:
                continue

            section = key_parts[0]
            config_key = "_".join(key_parts[1:])

            if isinstance(config_dict.get(section), dict):
                config_dict[section][config_key] = self._convert_env_value(env_value)

        return config_dict

    def _convert_env_value(self, value: str) -> Any:
        """Convert environment variable value to appropriate Python type."""
        # Try boolean
        if value.lower() in ("true", "yes", "on"):
            return True
        elif value.lower() in ("false", "no", "off"):
            return False

        # Try integer
        try:
            return int(value)
        except ValueError:
            pass

        # Try float
        try:
            return float(value)
        except ValueError:
            pass

        # Return as string
        return value


def load_config_from_file(config_file: Optional[str] = None) -> MDNSDiscoveryConfig:
    """Convenience function to load configuration."""
    return ConfigLoader(config_file).load_config()
