"""
mDNS Socket Lifecycle

Creates the multicast socket for a discovery session and splits it into a
sender and a listener:
- UDP socket bound to 0.0.0.0:5353
- Address reuse (mandatory) and port reuse (best effort) so several discovery
  clients can share the port on one host
- Multicast loopback on or off
- Membership of 224.0.0.251 on the loopback or the requested interface
"""

import ipaddress
import logging
import socket
import struct
from typing import Optional, Tuple

from .errors import MDNSError, MulticastJoinError, SocketSetupError
from .listener import DecodeErrorHook, MDNSListener
from .message import encode_name
from .sender import MDNSSender
from .transport import MULTICAST_ADDR, MULTICAST_PORT, SharedSocket

logger = logging.getLogger(__name__)

LOOPBACK_INTERFACE = "127.0.0.1"
ANY_INTERFACE = "0.0.0.0"


def validate_interface_address(address: str) -> str:
    """Validate an IPv4 interface address and return it normalized"""
    try:
        return str(ipaddress.IPv4Address(address))
    except ValueError as e:
        raise ValueError(f"Invalid IPv4 interface address: {address!r}") from e


def validate_service_name(service_name: str) -> str:
    """Validate that a service name can be sent as a DNS question"""
    if not service_name or not service_name.strip("."):
        raise ValueError("Service name must not be empty")
    encode_name(service_name)
    return service_name


def _enable_port_reuse(sock: socket.socket) -> bool:
    """Set SO_REUSEPORT where the platform has it"""
    if not hasattr(socket, "SO_REUSEPORT"):
        logger.debug("SO_REUSEPORT not available on this platform")
        return False
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
    except OSError as e:
        logger.debug(f"SO_REUSEPORT rejected, continuing with SO_REUSEADDR only: {e}")
        return False
    return True


def create_multicast_socket(
    interface_address: str = ANY_INTERFACE, with_loopback: bool = False
) -> socket.socket:
    """Create a non-blocking UDP socket bound to the mDNS port and group.

    Raises:
        ValueError: If ``interface_address`` is not an IPv4 address
        SocketSetupError: If creating, configuring or binding the socket fails
        MulticastJoinError: If joining the multicast group fails
    """
    interface_address = validate_interface_address(interface_address)
    join_interface = LOOPBACK_INTERFACE if with_loopback else interface_address

    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
    except OSError as e:
        raise SocketSetupError(f"Failed to create UDP socket: {e}") from e

    try:
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            _enable_port_reuse(sock)
            sock.bind((ANY_INTERFACE, MULTICAST_PORT))

            logger.debug(f"Setting multicast loopback to {with_loopback}")
            sock.setsockopt(
                socket.IPPROTO_IP, socket.IP_MULTICAST_LOOP, int(with_loopback)
            )
            sock.setsockopt(
                socket.IPPROTO_IP,
                socket.IP_MULTICAST_IF,
                socket.inet_aton(join_interface),
            )
        except OSError as e:
            raise SocketSetupError(
                f"Failed to configure mDNS socket on port {MULTICAST_PORT}: {e}"
            ) from e

        logger.debug(
            f"Joining multicast group {MULTICAST_ADDR} on interface {join_interface}"
        )
        mreq = struct.pack(
            "4s4s", socket.inet_aton(MULTICAST_ADDR), socket.inet_aton(join_interface)
        )
        try:
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP, mreq)
        except OSError as e:
            raise MulticastJoinError(
                f"Failed to join {MULTICAST_ADDR} on {join_interface}: {e}"
            ) from e

        sock.setblocking(False)
    except MDNSError:
        sock.close()
        raise

    return sock


def create_session(
    service_name: str,
    interface_address: str = ANY_INTERFACE,
    with_loopback: bool = False,
    on_decode_error: Optional[DecodeErrorHook] = None,
) -> Tuple[MDNSSender, MDNSListener]:
    """Create a discovery session for ``service_name``.

    Returns a sender and a listener sharing one socket. Each half can be
    closed independently; the socket closes when both are closed.

    Raises:
        ValueError: If the service name or interface address is invalid
        MDNSError: If the socket cannot be set up
    """
    validate_service_name(service_name)
    sock = create_multicast_socket(interface_address, with_loopback)
    shared = SharedSocket(sock)

    listener = MDNSListener(shared, on_decode_error=on_decode_error)
    sender = MDNSSender(service_name, shared)

    logger.info(
        f"mDNS session for {service_name} ready "
        f"(interface={interface_address}, loopback={with_loopback})"
    )
    return sender, listener


def mdns_interface(
    service_name: str, interface_address: str = ANY_INTERFACE
) -> Tuple[MDNSSender, MDNSListener]:
    """Create a session without multicast loopback"""
    return create_session(service_name, interface_address, with_loopback=False)


def mdns_interface_with_loopback(
    service_name: str, interface_address: str = ANY_INTERFACE
) -> Tuple[MDNSSender, MDNSListener]:
    """Create a session that also discovers services on this host"""
    return create_session(service_name, interface_address, with_loopback=True)
