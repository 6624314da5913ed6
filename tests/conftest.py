"""Pytest fixtures for launcher link testing."""
import os
import shutil
import socket
import tempfile
import threading
from typing import List, Optional

import pytest

from turnlink.network.client import MultiplayerClient
from turnlink.network.transport import Transport


MP_ARGS = ['-multiplayer', '-pipe', r'\\.\pipe\test', '-session', 's1', '-player', 'p1']


class FakeTransport(Transport):
    """Scripted in-memory transport.

    Usage:
        transport.push(b'{"type":"turn-start","participantId":"p1"}\\n')
        client.poll()
        assert transport.written[0] == b'...'
    """

    def __init__(self, address: str = r'\\.\pipe\test', appear: bool = True):
        super().__init__(address)
        self.appear = appear
        self.incoming = bytearray()
        self.written: List[bytes] = []
        self.fail_writes = False
        self.short_writes = False
        self.fail_reads = False
        self.connect_calls = 0
        self.close_calls = 0
        self.last_timeout_ms: Optional[int] = None
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    def connect(self, timeout_ms: int, cancel: Optional[threading.Event] = None) -> bool:
        self.connect_calls += 1
        self.last_timeout_ms = timeout_ms
        if cancel is not None and cancel.is_set():
            return False
        self._open = self.appear
        return self._open

    def available(self) -> int:
        if self.fail_reads:
            raise ConnectionError("pipe broken")
        return len(self.incoming)

    def read(self, max_bytes: int) -> bytes:
        data = bytes(self.incoming[:max_bytes])
        del self.incoming[:max_bytes]
        return data

    def write(self, data: bytes) -> int:
        if self.fail_writes:
            raise BrokenPipeError("pipe broken")
        self.written.append(data)
        if self.short_writes:
            return len(data) - 1
        return len(data)

    def close(self):
        self.close_calls += 1
        self._open = False

    def push(self, data: bytes):
        """Queue bytes as if the launcher had written them."""
        self.incoming.extend(data)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def client(transport: FakeTransport) -> MultiplayerClient:
    """Active client for participant p1, with the ready frame cleared."""
    c = MultiplayerClient.init(MP_ARGS, transport_factory=lambda address: transport)
    assert c.is_active()
    transport.written.clear()
    yield c
    c.exit()


@pytest.fixture
def socket_path():
    """Short Unix socket path (AF_UNIX paths are length-limited)."""
    if not hasattr(socket, 'AF_UNIX'):
        pytest.skip("Unix domain sockets not available")
    directory = tempfile.mkdtemp(prefix='tl')
    yield os.path.join(directory, 'game.sock')
    shutil.rmtree(directory, ignore_errors=True)


@pytest.fixture
def listener(socket_path):
    """Listening Unix socket standing in for the launcher."""
    server = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    server.bind(socket_path)
    server.listen(1)
    server.settimeout(2.0)
    yield server
    server.close()
