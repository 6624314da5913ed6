"""Tests for the socket transport and the client over a real socket."""
import socket
import sys
import threading
import time

import pytest

from turnlink.network.client import MultiplayerClient
from turnlink.network.transport import (
    NamedPipeTransport, SocketTransport, open_transport, parse_tcp_address,
)


def wait_for(predicate, timeout: float = 2.0):
    """Spin until predicate() is truthy, returning its value."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        value = predicate()
        if value:
            return value
        time.sleep(0.01)
    raise AssertionError("condition not met in time")


class TestAddresses:
    """Choosing a transport from an address."""

    def test_parse_tcp_address(self):
        assert parse_tcp_address("tcp://127.0.0.1:7777") == ("127.0.0.1", 7777)

    @pytest.mark.parametrize("address", ["tcp://nohost", "tcp://:80", "tcp://host:port"])
    def test_bad_tcp_address(self, address):
        with pytest.raises(ValueError):
            parse_tcp_address(address)

    def test_socket_path(self):
        assert isinstance(open_transport("/tmp/game.sock"), SocketTransport)

    @pytest.mark.skipif(sys.platform == "win32", reason="named pipes exist on Windows")
    def test_named_pipe_needs_windows(self):
        with pytest.raises(ValueError):
            open_transport(r"\\.\pipe\test")

    @pytest.mark.skipif(sys.platform != "win32", reason="Windows only")
    def test_named_pipe_on_windows(self):
        assert isinstance(open_transport(r"\\.\pipe\test"), NamedPipeTransport)


class TestSocketConnect:
    """Bounded wait for the endpoint."""

    def test_endpoint_missing_times_out(self, socket_path):
        transport = SocketTransport(socket_path)
        started = time.monotonic()
        assert transport.connect(timeout_ms=150) is False
        assert time.monotonic() - started >= 0.1
        assert not transport.is_open

    def test_cancel_stops_wait(self, socket_path):
        cancel = threading.Event()
        timer = threading.Timer(0.1, cancel.set)
        timer.start()
        started = time.monotonic()
        try:
            assert SocketTransport(socket_path).connect(timeout_ms=5000, cancel=cancel) is False
        finally:
            timer.cancel()
        assert time.monotonic() - started < 2.0

    def test_endpoint_appears_during_wait(self, socket_path):
        server = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)

        def listen_later():
            time.sleep(0.2)
            server.bind(socket_path)
            server.listen(1)

        thread = threading.Thread(target=listen_later)
        thread.start()
        transport = SocketTransport(socket_path)
        try:
            assert transport.connect(timeout_ms=3000) is True
        finally:
            thread.join()
            transport.close()
            server.close()


class TestSocketIO:
    """Peek, read and write on a connected socket."""

    def test_read_write(self, socket_path, listener):
        transport = SocketTransport(socket_path)
        assert transport.connect(timeout_ms=1000)
        peer, _ = listener.accept()
        try:
            assert transport.available() == 0

            peer.sendall(b"hello\n")
            assert wait_for(transport.available) == 6
            assert transport.read(1023) == b"hello\n"
            assert transport.available() == 0

            assert transport.write(b"ready\n") == 6
            assert peer.recv(64) == b"ready\n"
        finally:
            peer.close()
            transport.close()

    def test_write_returns_when_peer_stops_reading(self):
        ours, theirs = socket.socketpair()
        transport = SocketTransport("socketpair", sock=ours)
        frame = b'{"type":"action","action":"end-turn"}\n'
        started = time.monotonic()
        try:
            while transport.write(frame) == len(frame):
                assert time.monotonic() - started < 5.0
            assert transport.write(frame) < len(frame)
        finally:
            transport.close()
            theirs.close()

    def test_peer_closed(self, socket_path, listener):
        transport = SocketTransport(socket_path)
        transport.connect(timeout_ms=1000)
        peer, _ = listener.accept()
        peer.close()
        time.sleep(0.05)
        with pytest.raises(ConnectionError):
            transport.available()
        transport.close()

    def test_close_is_idempotent(self, socket_path, listener):
        transport = SocketTransport(socket_path)
        transport.connect(timeout_ms=1000)
        transport.close()
        transport.close()
        assert not transport.is_open
        with pytest.raises(ConnectionError):
            transport.available()


class TestClientOverSocket:
    """The full game-side path over a real Unix socket."""

    def test_ready_and_turn_start(self, socket_path, listener):
        args = ['-multiplayer', '-pipe', socket_path, '-session', 's1', '-player', 'p1']
        client = MultiplayerClient.init(args, connect_timeout_ms=1000)
        assert client.is_active()

        peer, _ = listener.accept()
        peer.settimeout(2.0)
        try:
            assert peer.recv(1024) == b'{"type":"ready","participantId":"p1"}\n'

            calls = []
            client.on_turn_start(lambda player_id, time_limit: calls.append((player_id, time_limit)))
            peer.sendall(b'{"type":"turn-start",')
            peer.sendall(b'"participantId":"p1","timeLimit":30}\n')

            wait_for(lambda: client.poll() and calls)
            assert client.is_my_turn() is True
            assert calls == [("p1", 30)]
        finally:
            client.exit()
            peer.close()

    def test_peer_gone_is_not_fatal(self, socket_path, listener):
        args = ['-multiplayer', '-pipe', socket_path, '-session', 's1', '-player', 'p1']
        client = MultiplayerClient.init(args, connect_timeout_ms=1000)
        peer, _ = listener.accept()
        peer.close()
        time.sleep(0.05)
        try:
            assert client.poll() is False
        finally:
            client.exit()
