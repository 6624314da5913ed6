"""Byte-stream transports to the launcher.

The game only needs four things from the pipe: a bounded-wait connect,
a non-blocking "how many bytes are waiting" check, best-effort read and
best-effort write. Errors surface as OSError; the session layer decides
what to do with them.

Addresses:
    \\\\.\\pipe\\name    Windows named pipe (NamedPipeTransport)
    tcp://host:port      TCP socket (SocketTransport)
    /path/to/socket      Unix domain socket (SocketTransport)
"""

import logging
import select
import socket
import sys
import threading
import time
from abc import ABC, abstractmethod
from typing import Optional, Tuple

from ..constants import CONNECT_POLL_INTERVAL

logger = logging.getLogger(__name__)

PIPE_PREFIX = "\\\\.\\pipe\\"
TCP_PREFIX = "tcp://"


class Transport(ABC):
    """Duplex byte stream keyed by an address string."""

    def __init__(self, address: str):
        self.address = address

    @property
    @abstractmethod
    def is_open(self) -> bool:
        ...

    @abstractmethod
    def connect(self, timeout_ms: int, cancel: Optional[threading.Event] = None) -> bool:
        """Wait up to timeout_ms for the endpoint, then open it.

        Returns False if the endpoint never appeared, the open failed,
        or cancel was set while waiting.
        """

    @abstractmethod
    def available(self) -> int:
        """Bytes ready to read without blocking. Raises OSError on failure."""

    @abstractmethod
    def read(self, max_bytes: int) -> bytes:
        """Read up to max_bytes. Only call after available() > 0."""

    @abstractmethod
    def write(self, data: bytes) -> int:
        """Write data, returning the number of bytes written."""

    @abstractmethod
    def close(self):
        """Close the stream. Safe to call more than once."""


def _wait(cancel: Optional[threading.Event], seconds: float) -> bool:
    """Sleep between connect attempts. Returns True if cancelled."""
    if cancel is not None:
        return cancel.wait(seconds)
    time.sleep(seconds)
    return False


def parse_tcp_address(address: str) -> Tuple[str, int]:
    """Split tcp://host:port into (host, port)."""
    host, _, port = address[len(TCP_PREFIX):].rpartition(':')
    if not host or not port.isdigit():
        raise ValueError(f"Bad TCP address: {address}")
    return host, int(port)


class SocketTransport(Transport):
    """Unix domain socket or TCP connection to the launcher."""

    def __init__(self, address: str, sock: Optional[socket.socket] = None):
        super().__init__(address)
        self._sock = sock
        if sock is not None:
            sock.setblocking(False)

    @property
    def is_open(self) -> bool:
        return self._sock is not None

    def _new_socket(self) -> Tuple[socket.socket, object]:
        if self.address.startswith(TCP_PREFIX):
            return socket.socket(socket.AF_INET, socket.SOCK_STREAM), parse_tcp_address(self.address)
        return socket.socket(socket.AF_UNIX, socket.SOCK_STREAM), self.address

    def connect(self, timeout_ms: int, cancel: Optional[threading.Event] = None) -> bool:
        if self._sock is not None:
            return True

        deadline = time.monotonic() + timeout_ms / 1000.0
        while True:
            if cancel is not None and cancel.is_set():
                return False
            sock, target = self._new_socket()
            try:
                sock.settimeout(max(deadline - time.monotonic(), CONNECT_POLL_INTERVAL))
                sock.connect(target)
            except (FileNotFoundError, ConnectionRefusedError, socket.timeout):
                # Endpoint not there yet
                sock.close()
            except OSError as e:
                sock.close()
                logger.warning(f"Failed to open {self.address}: {e}")
                return False
            else:
                sock.setblocking(False)
                self._sock = sock
                logger.info(f"Connected to {self.address}")
                return True

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.warning(f"Timed out after {timeout_ms}ms waiting for {self.address}")
                return False
            if _wait(cancel, min(CONNECT_POLL_INTERVAL, remaining)):
                return False

    def available(self) -> int:
        if self._sock is None:
            raise ConnectionError("Transport is closed")
        readable, _, _ = select.select([self._sock], [], [], 0)
        if not readable:
            return 0
        try:
            peeked = self._sock.recv(65536, socket.MSG_PEEK)
        except BlockingIOError:
            return 0
        if not peeked:
            raise ConnectionError("Connection closed by peer")
        return len(peeked)

    def read(self, max_bytes: int) -> bytes:
        if self._sock is None:
            raise ConnectionError("Transport is closed")
        try:
            return self._sock.recv(max_bytes)
        except BlockingIOError:
            return b""

    def write(self, data: bytes) -> int:
        if self._sock is None:
            raise ConnectionError("Transport is closed")
        # Never blocks; a full send buffer reports zero bytes written
        try:
            return self._sock.send(data)
        except BlockingIOError:
            return 0

    def close(self):
        if self._sock is None:
            return
        try:
            self._sock.close()
        finally:
            self._sock = None


class NamedPipeTransport(Transport):
    """Windows named pipe client. Clients read in byte mode by default.

    Uses the same _winapi calls as multiprocessing.connection.
    """

    def __init__(self, address: str):
        super().__init__(address)
        self._handle = None

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    def connect(self, timeout_ms: int, cancel: Optional[threading.Event] = None) -> bool:
        import _winapi

        if self._handle is not None:
            return True

        deadline = time.monotonic() + timeout_ms / 1000.0
        while True:
            if cancel is not None and cancel.is_set():
                return False
            remaining = deadline - time.monotonic()
            # Short slices so cancel is checked
            slice_ms = int(max(0.0, min(remaining, CONNECT_POLL_INTERVAL)) * 1000)
            try:
                _winapi.WaitNamedPipe(self.address, max(slice_ms, 1))
            except OSError:
                if remaining <= 0:
                    logger.warning(f"Timed out after {timeout_ms}ms waiting for {self.address}")
                    return False
                if _wait(cancel, CONNECT_POLL_INTERVAL):
                    return False
                continue
            break

        try:
            handle = _winapi.CreateFile(
                self.address,
                _winapi.GENERIC_READ | _winapi.GENERIC_WRITE,
                0,
                _winapi.NULL,
                _winapi.OPEN_EXISTING,
                0,
                _winapi.NULL,
            )
        except OSError as e:
            logger.warning(f"Failed to open {self.address}: {e}")
            return False

        self._handle = handle
        logger.info(f"Connected to {self.address}")
        return True

    def available(self) -> int:
        import _winapi

        if self._handle is None:
            raise ConnectionError("Transport is closed")
        available, _ = _winapi.PeekNamedPipe(self._handle)
        return available

    def read(self, max_bytes: int) -> bytes:
        import _winapi

        if self._handle is None:
            raise ConnectionError("Transport is closed")
        data, _ = _winapi.ReadFile(self._handle, max_bytes)
        return data

    def write(self, data: bytes) -> int:
        import _winapi

        if self._handle is None:
            raise ConnectionError("Transport is closed")
        written, _ = _winapi.WriteFile(self._handle, data)
        return written

    def close(self):
        import _winapi

        if self._handle is None:
            return
        try:
            _winapi.CloseHandle(self._handle)
        finally:
            self._handle = None


def open_transport(address: str) -> Transport:
    """Pick the transport for an address (not yet connected)."""
    if address.startswith(PIPE_PREFIX):
        if sys.platform != "win32":
            raise ValueError(f"Named pipes need Windows: {address}")
        return NamedPipeTransport(address)
    return SocketTransport(address)
