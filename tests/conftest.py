"""Test configuration and fixtures."""
import itertools

import pytest

from chat_relay.protocol import decode_envelope
from chat_relay.registry import ParticipantRegistry

_ports = itertools.count(50000)

FIXED_TS = "2012-07-05 19:04:00"


class FakeConnection:
    """Stands in for a websockets connection: records frames, can be made to fail."""

    def __init__(self, frames=(), fail=False):
        self.frames = list(frames)
        self.sent = []
        self.closed = False
        self.fail = fail
        self.remote_address = ("127.0.0.1", next(_ports))

    async def send(self, raw):
        if self.fail or self.closed:
            raise ConnectionError("dead socket")
        self.sent.append(raw)

    async def close(self):
        self.closed = True

    def __aiter__(self):
        return self._iter_frames()

    async def _iter_frames(self):
        for frame in self.frames:
            if isinstance(frame, BaseException):
                raise frame
            yield frame

    def envelopes(self):
        return [decode_envelope(raw) for raw in self.sent]


@pytest.fixture
def registry():
    return ParticipantRegistry()


@pytest.fixture
def make_conn():
    def factory(frames=(), fail=False):
        return FakeConnection(frames=frames, fail=fail)
    return factory


@pytest.fixture
def fixed_clock(monkeypatch):
    """Pin server timestamps so envelopes compare exactly."""
    monkeypatch.setattr("chat_relay.protocol.format_timestamp", lambda moment=None, tz=None: FIXED_TS)
    return FIXED_TS
