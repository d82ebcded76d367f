"""Tests for the websockets binding of the relay."""
import asyncio
import logging
import socket
from datetime import datetime, timezone

import pytest
import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedError

from chat_relay.config import RelayConfig
from chat_relay.protocol import decode_envelope
from chat_relay.server import BindError, ChatRelayServer


@pytest.fixture
def relay(registry):
    config = RelayConfig(host="127.0.0.1", port=0, status_interval=0)
    return ChatRelayServer(config, registry=registry)


async def wait_for_users(registry, count, timeout=5.0):
    async def poll():
        while len(await registry.names()) != count:
            await asyncio.sleep(0.01)
    await asyncio.wait_for(poll(), timeout)


@pytest.mark.asyncio
async def test_handler_cleans_up_when_stream_ends(relay, registry, make_conn):
    listener = make_conn()
    await relay.handler(listener)  # no frames: connects and leaves unnamed

    conn = make_conn(frames=["alice", "hello"])
    await relay.handler(conn)

    assert [e.msg for e in conn.envelopes()] == ["hello"]
    assert not await registry.is_registered(conn)


@pytest.mark.asyncio
async def test_handler_stops_reading_after_rejection(relay, registry, make_conn):
    alice = make_conn()
    await registry.register(alice, "alice")
    impostor = make_conn(frames=["alice", "should never be broadcast"])

    await relay.handler(impostor)

    assert impostor.closed
    assert len(impostor.sent) == 1
    assert alice.sent == []
    assert await registry.all_connections() == [alice]


@pytest.mark.asyncio
async def test_handler_decodes_binary_frames(relay, registry, make_conn):
    alice = make_conn()
    await registry.register(alice, "alice")
    bob = make_conn(frames=["bob".encode(), "café".encode(), b"\xff\xfe", "bye"])

    await relay.handler(bob)

    assert [e.msg for e in alice.envelopes()] == ["café", "bye"]


@pytest.mark.asyncio
async def test_abnormal_close_is_reported_and_cleaned(relay, registry, make_conn, caplog):
    error = ConnectionClosedError(None, None)
    conn = make_conn(frames=["alice", error])

    await relay.handler(conn)

    assert not await registry.is_registered(conn)
    assert "Connection error" in caplog.text


@pytest.mark.asyncio
async def test_bind_failure(registry):
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as blocker:
        blocker.bind(("127.0.0.1", 0))
        blocker.listen()
        port = blocker.getsockname()[1]
        relay = ChatRelayServer(RelayConfig(host="127.0.0.1", port=port, status_interval=0), registry)

        with pytest.raises(BindError, match="maybe in use"):
            await relay.serve(asyncio.Event())


@pytest.mark.asyncio
async def test_end_to_end(relay, registry):
    stop = asyncio.Event()
    serving = asyncio.create_task(relay.serve(stop))
    await asyncio.wait_for(relay.started.wait(), 5)
    uri = f"ws://127.0.0.1:{relay.bound_port}"

    try:
        async with websockets.connect(uri) as alice, websockets.connect(uri) as bob:
            await alice.send("alice")
            await bob.send("bob")
            await wait_for_users(registry, 2)

            await alice.send("hello")
            for ws in (alice, bob):
                envelope = decode_envelope(await asyncio.wait_for(ws.recv(), 5))
                assert (envelope.uid, envelope.msg) == ("alice", "hello")

            async with websockets.connect(uri) as impostor:
                await impostor.send("bob")
                rejection = decode_envelope(await asyncio.wait_for(impostor.recv(), 5))
                assert rejection.uid == "bob"
                assert "already in use" in rejection.msg
                with pytest.raises(ConnectionClosed):
                    await asyncio.wait_for(impostor.recv(), 5)

        await wait_for_users(registry, 0)
    finally:
        stop.set()
        await asyncio.wait_for(serving, 5)


class FrozenDatetime(datetime):
    """``datetime`` whose ``now`` is 2012-07-05 17:04:00 UTC."""

    @classmethod
    def now(cls, tz=None):
        moment = datetime(2012, 7, 5, 17, 4, 0, tzinfo=timezone.utc)
        if tz is None:
            return moment.astimezone().replace(tzinfo=None)
        return moment.astimezone(tz)


@pytest.mark.asyncio
@pytest.mark.parametrize("zone,expected", [
    ("UTC", "2012-07-05 17:04:00"),
    ("Europe/Berlin", "2012-07-05 19:04:00"),
    ("America/New_York", "2012-07-05 13:04:00"),
])
async def test_configured_zone_stamps_messages(monkeypatch, registry, make_conn, zone, expected):
    monkeypatch.setattr("chat_relay.timestamps.datetime", FrozenDatetime)
    config = RelayConfig(host="127.0.0.1", port=0, status_interval=0, timezone=zone)
    relay = ChatRelayServer(config, registry=registry)
    alice = make_conn()
    await registry.register(alice, "alice")
    impostor = make_conn(frames=["alice"])
    bob = make_conn(frames=["bob", "hello"])

    await relay.handler(impostor)
    await relay.handler(bob)

    assert [e.ts for e in impostor.envelopes()] == [expected]
    assert [(e.ts, e.msg) for e in alice.envelopes()] == [(expected, "hello")]


@pytest.mark.asyncio
async def test_status_loop_logs_connected_users(registry, make_conn, caplog):
    caplog.set_level(logging.INFO, logger="chat_relay.server")
    await registry.register(make_conn(), "alice")
    await registry.register(make_conn(), "bob")
    config = RelayConfig(host="127.0.0.1", port=0, status_interval=0.01)
    relay = ChatRelayServer(config, registry=registry)
    stop = asyncio.Event()
    serving = asyncio.create_task(relay.serve(stop))

    async def status_logged():
        while "Connected users: ['alice', 'bob']" not in caplog.text:
            await asyncio.sleep(0.01)

    try:
        await asyncio.wait_for(status_logged(), 5)
    finally:
        stop.set()
        await asyncio.wait_for(serving, 5)
