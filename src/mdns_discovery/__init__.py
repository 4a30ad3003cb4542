"""
mDNS service discovery client.

Multicasts PTR queries for a service on 224.0.0.251:5353 and streams the
decoded responses.
"""

from .core import (
    MDNSError,
    MDNSListener,
    MDNSSender,
    MulticastJoinError,
    ReceiveError,
    Response,
    SendError,
    SocketAddress,
    SocketSetupError,
    create_session,
    mdns_interface,
    mdns_interface_with_loopback,
)
from .discover import Discovery, discover_all, discover_all_with_loopback

__version__ = "0.1.0"

__all__ = [
    "create_session",
    "mdns_interface",
    "mdns_interface_with_loopback",
    "discover_all",
    "discover_all_with_loopback",
    "Discovery",
    "MDNSSender",
    "MDNSListener",
    "Response",
    "SocketAddress",
    "MDNSError",
    "SocketSetupError",
    "MulticastJoinError",
    "SendError",
    "ReceiveError",
]
