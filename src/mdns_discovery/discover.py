"""
Periodic mDNS Discovery

Combines a session's sender and listener: a background task re-sends the
query every ``query_interval`` seconds while responses stream back.
"""

import asyncio
import logging
from typing import AsyncIterator, Optional

from .core.interface import ANY_INTERFACE, create_session
from .core.listener import DecodeErrorHook, MDNSListener
from .core.response import Response
from .core.sender import MDNSSender

logger = logging.getLogger(__name__)


class Discovery:
    """A discovery session that queries on a fixed interval"""

    def __init__(
        self,
        sender: MDNSSender,
        listener: MDNSListener,
        query_interval: float,
        ignore_empty: bool = True,
    ):
        if query_interval <= 0:
            raise ValueError(f"Query interval must be positive: {query_interval}")

        self.sender = sender
        self.listener = listener
        self.query_interval = query_interval
        self.ignore_empty = ignore_empty

    @property
    def service_name(self) -> str:
        return self.sender.service_name

    def listen(self) -> AsyncIterator[Response]:
        """Stream responses while querying in the background.

        Empty responses (including this host's own looped-back queries) are
        dropped unless ``ignore_empty`` is False. A failed send ends the
        stream with the ``SendError``.
        """
        return self._run()

    async def _query_loop(self) -> None:
        while True:
            await self.sender.send_request()
            await asyncio.sleep(self.query_interval)

    async def _run(self) -> AsyncIterator[Response]:
        responses = self.listener.listen()
        query_task = asyncio.create_task(self._query_loop())
        receive: Optional[asyncio.Future] = None

        try:
            while True:
                receive = asyncio.ensure_future(anext(responses))
                done, _ = await asyncio.wait(
                    {receive, query_task}, return_when=asyncio.FIRST_COMPLETED
                )

                if receive not in done:
                    # The query loop only finishes by raising.
                    query_task.result()

                try:
                    response = receive.result()
                except StopAsyncIteration:
                    return
                receive = None

                if self.ignore_empty and response.is_empty():
                    continue
                yield response
        finally:
            if receive is not None and not receive.done():
                receive.cancel()
                await asyncio.gather(receive, return_exceptions=True)
            query_task.cancel()
            await asyncio.gather(query_task, return_exceptions=True)
            await responses.aclose()
            self.listener.close()
            self.sender.close()
            logger.debug(f"Discovery for {self.service_name} stopped")

    def close(self) -> None:
        """Release both halves when ``listen()`` was never consumed"""
        self.listener.close()
        self.sender.close()


def discover_all(
    service_name: str,
    query_interval: float,
    interface_address: str = ANY_INTERFACE,
    with_loopback: bool = False,
    on_decode_error: Optional[DecodeErrorHook] = None,
) -> Discovery:
    """Discover every responder for ``service_name``, re-querying periodically"""
    if query_interval <= 0:
        raise ValueError(f"Query interval must be positive: {query_interval}")

    sender, listener = create_session(
        service_name, interface_address, with_loopback, on_decode_error
    )
    return Discovery(sender, listener, query_interval)


def discover_all_with_loopback(
    service_name: str,
    query_interval: float,
    interface_address: str = ANY_INTERFACE,
) -> Discovery:
    """Like ``discover_all`` but also finds services advertised on this host"""
    return discover_all(
        service_name, query_interval, interface_address, with_loopback=True
    )
