"""
mDNS Query Sender

Transmits discovery queries on the shared multicast socket.
"""

import asyncio
import logging

from .errors import SendError
from .message import build_query
from .transport import MULTICAST_ADDR, MULTICAST_PORT, SharedSocket

logger = logging.getLogger(__name__)


class MDNSSender:
    """Send half of a discovery session"""

    def __init__(self, service_name: str, shared: SharedSocket):
        self.service_name = service_name
        self._shared = shared.acquire()
        self._closed = False
        self.queries_sent = 0

    @property
    def closed(self) -> bool:
        return self._closed

    async def send_request(self) -> None:
        """Multicast one PTR query for the service name.

        Raises:
            SendError: If the socket refuses the datagram
        """
        if self._closed:
            raise SendError("Sender is closed")

        packet = build_query(self.service_name)
        loop = asyncio.get_running_loop()

        try:
            await loop.sock_sendto(
                self._shared.socket, packet, (MULTICAST_ADDR, MULTICAST_PORT)
            )
        except OSError as e:
            raise SendError(f"Failed to send query for {self.service_name}: {e}") from e

        self.queries_sent += 1
        logger.debug(f"Sent mDNS query for {self.service_name} ({len(packet)} bytes)")

    def close(self) -> None:
        """Release this sender's reference to the socket"""
        if self._closed:
            return
        self._closed = True
        self._shared.release()

    def __enter__(self) -> "MDNSSender":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    async def __aenter__(self) -> "MDNSSender":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"MDNSSender(service_name={self.service_name!r}, closed={self._closed})"
