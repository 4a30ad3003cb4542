"""
Listener and Shared Socket Tests

Runs the receive loop over a plain UDP socket on 127.0.0.1 so decoding,
tolerance of bad datagrams and socket ownership can be checked without
multicast.
"""

import asyncio
import contextlib
import socket

import pytest
import pytest_asyncio

from mdns_discovery.core.errors import ReceiveError, SendError
from mdns_discovery.core.listener import MDNSListener
from mdns_discovery.core.message import build_query
from mdns_discovery.core.sender import MDNSSender
from mdns_discovery.core.transport import SharedSocket

from .packets import build_ptr_only_response, build_service_response


def make_local_socket() -> socket.socket:
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    sock.setblocking(False)
    return sock


@pytest.fixture
def shared():
    shared = SharedSocket(make_local_socket())
    yield shared
    if not shared.closed:
        shared.socket.close()


@pytest.fixture
def client():
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    yield sock
    sock.close()


@pytest_asyncio.fixture
async def listener_stream(shared):
    errors = []
    listener = MDNSListener(
        shared, on_decode_error=lambda data, exc, source: errors.append((data, exc))
    )
    stream = listener.listen()
    yield listener, stream, errors
    await stream.aclose()


async def next_response(stream, timeout=2.0):
    return await asyncio.wait_for(anext(stream), timeout)


class TestSharedSocket:
    """Test reference counted socket ownership"""

    def test_closes_after_last_release(self, shared):
        shared.acquire()
        shared.acquire()
        assert shared.ref_count == 2

        shared.release()
        assert not shared.closed

        shared.release()
        assert shared.closed

    def test_acquire_after_close_fails(self, shared):
        shared.acquire().release()
        with pytest.raises(RuntimeError):
            shared.acquire()

    def test_halves_close_independently(self, shared):
        """Socket survives either half closing; closes after both"""
        sender = MDNSSender("_rpc._tcp.local", shared)
        listener = MDNSListener(shared)

        sender.close()
        assert not shared.closed
        sender.close()
        assert shared.ref_count == 1

        listener.close()
        assert shared.closed

    def test_repeated_sessions_do_not_leak(self):
        for _ in range(50):
            shared = SharedSocket(make_local_socket())
            sender = MDNSSender("_rpc._tcp.local", shared)
            listener = MDNSListener(shared)
            listener.close()
            sender.close()
            assert shared.closed


class TestListener:
    """Test the receive loop"""

    @pytest.mark.asyncio
    async def test_yields_decoded_response(self, shared, client, listener_stream):
        _, stream, _ = listener_stream
        client.sendto(build_service_response(), shared.socket.getsockname())

        response = await next_response(stream)

        assert response.hostname == "fixture-host.local"
        assert str(response.socket_address) == "127.0.0.1:8080"
        assert response.source_address == client.getsockname()

    @pytest.mark.asyncio
    async def test_malformed_datagram_does_not_end_stream(
        self, shared, client, listener_stream
    ):
        """Garbage goes to the hook; the next valid packet still arrives"""
        listener, stream, errors = listener_stream
        address = shared.socket.getsockname()

        client.sendto(b"\xff" * 7, address)
        client.sendto(b"\x00\x00\x84\x00\x00\x01\x00\x00\x00\x00\x00\x00", address)
        client.sendto(build_ptr_only_response(), address)

        response = await next_response(stream)

        assert len(errors) == 2
        assert errors[0][0] == b"\xff" * 7
        assert response.hostname is None
        assert response.socket_address is None
        assert listener.get_stats()["decode_errors"] == 2
        assert listener.get_stats()["responses"] == 1

    @pytest.mark.asyncio
    async def test_empty_datagram_skipped(self, shared, client, listener_stream):
        listener, stream, errors = listener_stream
        address = shared.socket.getsockname()

        client.sendto(b"", address)
        client.sendto(build_query("_rpc._tcp.local"), address)

        response = await next_response(stream)

        assert response.is_empty()
        assert errors == []
        assert listener.get_stats()["empty_datagrams"] == 1

    @pytest.mark.asyncio
    async def test_buffer_reused_between_packets(self, shared, client, listener_stream):
        """A shorter packet after a longer one is not polluted by old bytes"""
        _, stream, errors = listener_stream
        address = shared.socket.getsockname()

        client.sendto(build_service_response(), address)
        client.sendto(build_ptr_only_response(), address)

        first = await next_response(stream)
        second = await next_response(stream)

        assert first.socket_address is not None
        assert second.socket_address is None
        assert errors == []

    @pytest.mark.asyncio
    async def test_listen_only_once(self, shared):
        listener = MDNSListener(shared)
        stream = listener.listen()

        with pytest.raises(RuntimeError):
            listener.listen()

        await stream.aclose()
        listener.close()

    @pytest.mark.asyncio
    async def test_closing_stream_releases_socket(self, shared, client):
        sender = MDNSSender("_rpc._tcp.local", shared)
        listener = MDNSListener(shared)
        stream = listener.listen()

        client.sendto(build_ptr_only_response(), shared.socket.getsockname())
        await next_response(stream)
        await stream.aclose()

        assert listener.closed
        assert not shared.closed

        sender.close()
        assert shared.closed

    @pytest.mark.asyncio
    async def test_closing_unstarted_stream_releases_socket(self, shared):
        """aclose() before the first read still gives back the reference"""
        sender = MDNSSender("_rpc._tcp.local", shared)
        listener = MDNSListener(shared)

        stream = listener.listen()
        await stream.aclose()
        assert listener.closed

        sender.close()
        assert shared.closed

    @pytest.mark.asyncio
    async def test_failing_hook_does_not_end_stream(self, shared, client):
        def broken_hook(data, exc, source):
            raise RuntimeError("hook failed")

        listener = MDNSListener(shared, on_decode_error=broken_hook)
        address = shared.socket.getsockname()

        client.sendto(b"\xff" * 7, address)
        client.sendto(build_ptr_only_response(), address)

        async with contextlib.aclosing(listener.listen()) as stream:
            response = await next_response(stream)

        assert not response.is_empty()
        assert listener.get_stats()["decode_errors"] == 1
        assert listener.closed

    @pytest.mark.asyncio
    async def test_cancelling_consumer_releases_socket(self, shared):
        sender = MDNSSender("_rpc._tcp.local", shared)
        listener = MDNSListener(shared)

        async def consume():
            async with contextlib.aclosing(listener.listen()) as stream:
                async for _ in stream:
                    pass

        task = asyncio.create_task(consume())
        await asyncio.sleep(0.05)
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

        assert listener.closed
        sender.close()
        assert shared.closed

    @pytest.mark.asyncio
    async def test_receive_failure_ends_stream(self, shared):
        listener = MDNSListener(shared)
        stream = listener.listen()

        # A closed descriptor makes the next receive fail at the OS level.
        shared.socket.close()

        with pytest.raises(ReceiveError):
            await next_response(stream)
        assert listener.closed


class TestSender:
    """Test the query sender without multicast"""

    @pytest.mark.asyncio
    async def test_closed_sender_refuses(self, shared):
        sender = MDNSSender("_rpc._tcp.local", shared)
        sender.close()

        with pytest.raises(SendError):
            await sender.send_request()

    @pytest.mark.asyncio
    async def test_send_failure_is_send_error(self, shared):
        sender = MDNSSender("_rpc._tcp.local", shared)
        shared.socket.close()

        with pytest.raises(SendError):
            await sender.send_request()
        sender.close()

    @pytest.mark.asyncio
    async def test_context_managers_close(self, shared):
        listener = MDNSListener(shared)

        with MDNSSender("_rpc._tcp.local", shared) as sender:
            assert not sender.closed
        assert sender.closed

        async with MDNSSender("_rpc._tcp.local", shared) as sender:
            assert shared.ref_count == 2
        assert sender.closed
        assert shared.ref_count == 1

        listener.close()
        assert shared.closed
