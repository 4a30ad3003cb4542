"""Shared fixtures: loopback responders, multicast probing and logging state."""

import asyncio
import logging
import socket
import uuid

import pytest
import pytest_asyncio
import structlog

from mdns_discovery.core.errors import MDNSError
from mdns_discovery.core.interface import create_multicast_socket, create_session
from mdns_discovery.core.message import (
    DNSFormatError,
    DNSMessage,
    DNSRecordType,
    names_equal,
)
from mdns_discovery.core.transport import MULTICAST_ADDR, MULTICAST_PORT
from mdns_discovery.discovery_logging import logger as logger_module

from .packets import (
    FIXTURE_ADDRESS,
    FIXTURE_HOST,
    FIXTURE_PORT,
    SERVICE_NAME,
    build_service_response,
)


def _probe_loopback_multicast() -> str:
    """Return an empty string if looped-back multicast works, else a reason."""
    try:
        sock = create_multicast_socket(with_loopback=True)
    except MDNSError as e:
        return f"cannot set up mDNS socket: {e}"

    marker = uuid.uuid4().bytes
    try:
        sock.setblocking(True)
        sock.settimeout(1.0)
        sock.sendto(marker, (MULTICAST_ADDR, MULTICAST_PORT))
        while True:
            data, _ = sock.recvfrom(4096)
            if data == marker:
                return ""
    except OSError as e:
        return f"loopback multicast unavailable: {e}"
    finally:
        sock.close()


@pytest.fixture(scope="session")
def multicast_available():
    reason = _probe_loopback_multicast()
    if reason:
        pytest.skip(reason)


@pytest.fixture
def session_factory(multicast_available):
    """Create sessions and close whatever the test leaves open."""
    sessions = []

    def factory(service_name=SERVICE_NAME, interface="0.0.0.0", with_loopback=True):
        sender, listener = create_session(service_name, interface, with_loopback)
        sessions.append((sender, listener))
        return sender, listener

    yield factory

    for sender, listener in sessions:
        sender.close()
        listener.close()


async def _answer_queries(sock: socket.socket, service_name: str, response: bytes):
    loop = asyncio.get_running_loop()
    while True:
        data, _ = await loop.sock_recvfrom(sock, 4096)
        try:
            query = DNSMessage.from_bytes(data)
        except DNSFormatError:
            continue

        if query.is_query() and any(
            question.qtype == DNSRecordType.PTR
            and names_equal(question.name, service_name)
            for question in query.questions
        ):
            await loop.sock_sendto(sock, response, (MULTICAST_ADDR, MULTICAST_PORT))


@pytest_asyncio.fixture
async def local_responder(multicast_available):
    """Answer PTR queries for SERVICE_NAME on the loopback group."""
    sock = create_multicast_socket(with_loopback=True)
    task = asyncio.create_task(
        _answer_queries(sock, SERVICE_NAME, build_service_response())
    )

    yield (FIXTURE_HOST.rstrip("."), FIXTURE_ADDRESS, FIXTURE_PORT)

    task.cancel()
    await asyncio.gather(task, return_exceptions=True)
    sock.close()


@pytest.fixture
def restore_logging():
    """Put the root logger and structlog back the way the test found them."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level

    yield

    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()
    logger_module._logger_instance = None
