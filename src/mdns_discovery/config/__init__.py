"""
Discovery Configuration Module
"""

from .loader import ConfigLoader, load_config_from_file
from .schema import (
    DiscoveryConfig,
    LoggingConfig,
    MDNSDiscoveryConfig,
    create_default_config,
)

__all__ = [
    "ConfigLoader",
    "load_config_from_file",
    "DiscoveryConfig",
    "LoggingConfig",
    "MDNSDiscoveryConfig",
    "create_default_config",
]
