"""
mDNS Response Listener

Receives datagrams from the shared multicast socket and decodes them into
discovery responses. The loop is pull-driven: one receive per item requested,
with no queue in front of the OS socket buffer.
"""

import asyncio
import logging
from typing import Any, AsyncGenerator, Callable, Dict, Optional, Tuple

from .errors import ReceiveError
from .message import DNSFormatError, DNSMessage
from .response import Response
from .transport import RECV_BUFFER_SIZE, SharedSocket

logger = logging.getLogger(__name__)

DecodeErrorHook = Callable[[bytes, Exception, Optional[Tuple[str, int]]], None]


def log_decode_error(
    data: bytes, error: Exception, source: Optional[Tuple[str, int]]
) -> None:
    """Default decode-error hook: log and drop the datagram"""
    logger.warning(f"Malformed mDNS packet from {source}: {error}, {data.hex()}")


class ResponseStream:
    """Async iterator over a listener's responses.

    Closing the stream releases the listener's socket reference even if
    iteration never started.
    """

    def __init__(self, listener: "MDNSListener", responses: AsyncGenerator):
        self._listener = listener
        self._responses = responses

    def __aiter__(self) -> "ResponseStream":
        return self

    async def __anext__(self) -> Response:
        return await self._responses.__anext__()

    async def aclose(self) -> None:
        try:
            await self._responses.aclose()
        finally:
            self._listener.close()


class MDNSListener:
    """Receive half of a discovery session"""

    def __init__(
        self,
        shared: SharedSocket,
        on_decode_error: Optional[DecodeErrorHook] = None,
        buffer_size: int = RECV_BUFFER_SIZE,
    ):
        self._shared = shared.acquire()
        self._recv_buffer = bytearray(buffer_size)
        self.on_decode_error = on_decode_error or log_decode_error
        self._consumed = False
        self._closed = False

        self._stats = {
            "datagrams_received": 0,
            "empty_datagrams": 0,
            "decode_errors": 0,
            "responses": 0,
        }

    @property
    def closed(self) -> bool:
        return self._closed

    def listen(self) -> ResponseStream:
        """Consume the listener and return its stream of responses.

        The stream never ends on its own. It stops when the consumer closes
        it (``aclose()``, ``contextlib.aclosing``) or is cancelled, and it
        raises ``ReceiveError`` if the socket fails. Malformed datagrams are
        passed to ``on_decode_error`` and skipped; an exception raised by
        the hook is logged and does not end the stream.
        """
        if self._consumed:
            raise RuntimeError("listen() can only be called once per listener")
        if self._closed:
            raise RuntimeError("Listener is closed")
        self._consumed = True
        return ResponseStream(self, self._receive_loop())

    async def _receive_loop(self) -> AsyncGenerator[Response, None]:
        loop = asyncio.get_running_loop()
        sock = self._shared.socket

        try:
            while True:
                try:
                    count, source = await loop.sock_recvfrom_into(
                        sock, self._recv_buffer
                    )
                except OSError as e:
                    raise ReceiveError(f"Failed to receive mDNS packet: {e}") from e

                self._stats["datagrams_received"] += 1
                if count == 0:
                    self._stats["empty_datagrams"] += 1
                    continue

                data = bytes(self._recv_buffer[:count])
                try:
                    message = DNSMessage.from_bytes(data)
                except DNSFormatError as e:
                    self._stats["decode_errors"] += 1
                    try:
                        self.on_decode_error(data, e, source)
                    except Exception:
                        logger.exception(f"Decode error hook failed for {source}")
                    continue

                self._stats["responses"] += 1
                yield Response.from_message(message, source)
        finally:
            self.close()

    def close(self) -> None:
        """Release this listener's reference to the socket"""
        if self._closed:
            return
        self._closed = True
        self._shared.release()

    def get_stats(self) -> Dict[str, Any]:
        """Get receive statistics"""
        return dict(self._stats, closed=self._closed)

    def __repr__(self) -> str:
        return f"MDNSListener(consumed={self._consumed}, closed={self._closed})"
