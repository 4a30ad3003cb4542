"""
Configuration Validators

This module provides validation functions for discovery configuration parameters.
"""

import ipaddress
from pathlib import Path


def validate_interface_address(address: str) -> bool:
    """Validate IPv4 interface address format."""
    if not isinstance(address, str) or not address:
        return False

    try:
        ipaddress.IPv4Address(address)
        return True
    except ValueError:
        return False


def validate_service_name(name: str) -> bool:
    """Validate a DNS-style service name such as ``_rpc._tcp.local``."""
    if not isinstance(name, str) or not name.strip("."):
        return False

    labels = name.rstrip(".").split(".")
    return all(0 < len(label.encode("utf-8")) <= 63 for label in labels)


def validate_boolean(value) -> bool:
    """Validate boolean value."""
    return isinstance(value, bool)


def validate_file_path(path: str) -> bool:
    """Validate file path format."""
    if not path:
        return False

    try:
        Path(path)
        return True
    except (TypeError, ValueError):
        return False


def validate_log_level(level: str) -> bool:
    """Validate log level."""
    valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    return isinstance(level, str) and level.upper() in valid_levels


def validate_positive_float(value: float) -> bool:
    """Validate positive float."""
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and value > 0
    )


def validate_positive_int(value: int) -> bool:
    """Validate positive integer."""
    return isinstance(value, int) and not isinstance(value, bool) and value > 0
