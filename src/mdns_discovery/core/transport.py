"""
Shared Multicast Transport

One OS socket shared by a sender and a listener. Each holder acquires a
reference; the socket is closed when the last reference is released.
"""

import logging
import socket
import threading

logger = logging.getLogger(__name__)

MULTICAST_ADDR = "224.0.0.251"
MULTICAST_PORT = 5353
RECV_BUFFER_SIZE = 4096


class SharedSocket:
    """Reference-counted, thread-safe owner of one UDP socket"""

    def __init__(self, sock: socket.socket):
        self._sock = sock
        self._refs = 0
        self._lock = threading.Lock()

    @property
    def socket(self) -> socket.socket:
        return self._sock

    @property
    def closed(self) -> bool:
        return self._sock.fileno() == -1

    @property
    def ref_count(self) -> int:
        with self._lock:
            return self._refs

    def acquire(self) -> "SharedSocket":
        with self._lock:
            if self._sock.fileno() == -1:
                raise RuntimeError("Cannot acquire a closed socket")
            self._refs += 1
        return self

    def release(self) -> None:
        with self._lock:
            if self._refs == 0:
                return
            self._refs -= 1
            if self._refs:
                return
        logger.debug(f"Closing mDNS socket {self._sock}")
        self._sock.close()

    def __repr__(self) -> str:
        return f"SharedSocket(fd={self._sock.fileno()}, refs={self._refs})"
