"""
Discovery Configuration Schema

Configuration for a discovery run: what to query, where, for how long, and
how to log it.
"""

from dataclasses import dataclass, field
from typing import Optional

from .validators import (
    validate_boolean,
    validate_file_path,
    validate_interface_address,
    validate_log_level,
    validate_positive_float,
    validate_positive_int,
    validate_service_name,
)


@dataclass
class DiscoveryConfig:
    """Discovery configuration section."""

    service_name: str = "_rpc._tcp.local"
    interface_address: str = "0.0.0.0"
    with_loopback: bool = False
    query_interval: float = 15.0
    timeout: float = 15.0

    def __post_init__(self) -> None:
        """Validate discovery configuration."""
        if not validate_service_name(self.service_name):
            raise ValueError(f"Invalid service name: {self.service_name!r}")

        if not validate_interface_address(self.interface_address):
            raise ValueError(f"Invalid interface address: {self.interface_address}")

        if not validate_boolean(self.with_loopback):
            raise ValueError(f"With loopback must be boolean: {self.with_loopback}")

        if not validate_positive_float(self.query_interval):
            raise ValueError(
                f"Query interval must be positive: {self.query_interval}"
            )

        if not validate_positive_float(self.timeout):
            raise ValueError(f"Timeout must be positive: {self.timeout}")


@dataclass
class LoggingConfig:
    """Logging configuration section."""

    level: str = "INFO"
    format: str = "console"
    file: Optional[str] = None
    max_size_mb: int = 10
    backup_count: int = 3

    def __post_init__(self) -> None:
        """Validate logging configuration."""
        if not validate_log_level(self.level):
            raise ValueError(f"Invalid log level: {self.level}")

        if self.format not in ["console", "json"]:
            raise ValueError(f"Invalid log format: {self.format}")

        if self.file is not None and not validate_file_path(self.file):
            raise ValueError(f"Invalid log file path: {self.file}")

        if not validate_positive_int(self.max_size_mb):
            raise ValueError(f"Max size MB must be positive: {self.max_size_mb}")

        if not validate_positive_int(self.backup_count):
            raise ValueError(f"Backup count must be positive: {self.backup_count}")


@dataclass
class MDNSDiscoveryConfig:
    """Main discovery configuration."""

    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def create_default_config() -> MDNSDiscoveryConfig:
    """Create a default configuration instance."""
    return MDNSDiscoveryConfig()
