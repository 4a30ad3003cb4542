"""
mDNS Discovery Core Module

This module exports the discovery session components.
"""

from .errors import (
    MDNSError,
    MulticastJoinError,
    ReceiveError,
    SendError,
    SocketSetupError,
)
from .interface import (
    create_multicast_socket,
    create_session,
    mdns_interface,
    mdns_interface_with_loopback,
)
from .listener import MDNSListener
from .message import (
    DNSClass,
    DNSFormatError,
    DNSHeader,
    DNSMessage,
    DNSQuestion,
    DNSRecordType,
    DNSResourceRecord,
    build_query,
)
from .response import Response, SocketAddress
from .sender import MDNSSender
from .transport import MULTICAST_ADDR, MULTICAST_PORT, SharedSocket

__all__ = [
    # Session
    "create_session",
    "create_multicast_socket",
    "mdns_interface",
    "mdns_interface_with_loopback",
    "MDNSSender",
    "MDNSListener",
    "SharedSocket",
    "MULTICAST_ADDR",
    "MULTICAST_PORT",
    # Results
    "Response",
    "SocketAddress",
    # Errors
    "MDNSError",
    "SocketSetupError",
    "MulticastJoinError",
    "SendError",
    "ReceiveError",
    # Message components
    "DNSMessage",
    "DNSQuestion",
    "DNSResourceRecord",
    "DNSHeader",
    "DNSRecordType",
    "DNSClass",
    "DNSFormatError",
    "build_query",
]
