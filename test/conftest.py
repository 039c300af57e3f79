"""
Pytest configuration and shared fixtures for the tic-tac-toe server.
"""

import os
import sys
from collections import deque

import pytest

# Add src to path for testing
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from tictactoe.server.game import GameSession  # noqa: E402
from tictactoe.server.network import NetworkServer  # noqa: E402
from tictactoe.server.network.transport import (  # noqa: E402
    Connection,
    EventType,
    NetworkEvent,
    Transport,
)
from tictactoe.shared.protocols import decode_frame, encode_frame  # noqa: E402


class FakeTransport(Transport):
    """In-memory transport driven directly by tests."""

    def __init__(self, bind_error=None):
        self.bind_error = bind_error
        self.bound = None
        self.closed = False
        self.updates = 0
        self.pending = deque()
        self.events = {}
        self.live = set()
        self.sent = {}
        self.failing = set()
        self.disconnected = []
        self._next_id = 1

    # Transport interface
    def bind(self, host, port):
        if self.bind_error is not None:
            raise self.bind_error
        self.bound = (host, port)

    def update(self):
        self.updates += 1

    def accept(self):
        return self.pending.popleft() if self.pending else None

    def pop_event(self, conn):
        queue = self.events.get(conn)
        if not queue:
            return None
        event = queue.popleft()
        if event.type is EventType.DISCONNECT:
            self.live.discard(conn)
        return event

    def send(self, conn, payload):
        if conn not in self.live or conn in self.failing:
            return False
        self.sent.setdefault(conn, []).append(payload)
        return True

    def is_live(self, conn):
        return conn in self.live

    def disconnect(self, conn):
        self.live.discard(conn)
        self.disconnected.append(conn)

    def close(self):
        self.closed = True
        self.live.clear()

    # Test helpers
    def connect(self):
        conn = Connection(self._next_id, ("127.0.0.1", 50000 + self._next_id))
        self._next_id += 1
        self.live.add(conn)
        self.events[conn] = deque()
        self.pending.append(conn)
        return conn

    def push_text(self, conn, text):
        self.events[conn].append(NetworkEvent(EventType.DATA, encode_frame(text)))

    def push_raw(self, conn, payload):
        self.events[conn].append(NetworkEvent(EventType.DATA, payload))

    def push_disconnect(self, conn):
        self.events[conn].append(NetworkEvent(EventType.DISCONNECT))

    def drop(self, conn):
        """Invalidate a connection without delivering an event."""
        self.live.discard(conn)

    def received(self, conn):
        return [decode_frame(p) for p in self.sent.get(conn, [])]

    def reset_sent(self):
        self.sent.clear()


@pytest.fixture
def game():
    return GameSession()


@pytest.fixture
def make_transport():
    return FakeTransport


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def server(transport):
    srv = NetworkServer(transport=transport, host="127.0.0.1", port=9001)
    srv.init()
    yield srv
    srv.shutdown()


@pytest.fixture
def two_players(server, transport):
    """Two admitted connections, with the first tick already run."""
    a = transport.connect()
    b = transport.connect()
    server.tick()
    return a, b
