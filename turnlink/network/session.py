"""Session identity and the connection to the launcher."""

import logging
import threading
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, List, Optional, Sequence, Union

from ..constants import (
    ConnectResult, DEFAULT_CONNECT_TIMEOUT_MS, READ_CHUNK_SIZE,
    FLAG_MULTIPLAYER, FLAG_PIPE, FLAG_SESSION, FLAG_PLAYER,
)
from ..player_state import PlayerAction, PlayerState
from .protocol import (
    FrameWriter, Message, MessageCodec,
    msg_action, msg_ready, msg_state_update,
)
from .transport import Transport, open_transport

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Connection states."""
    DISCONNECTED = auto()   # Not connected, or exited
    CONNECTING = auto()     # Inside the bounded connect wait
    CONNECTED = auto()      # Pipe open, ready sent


@dataclass(frozen=True)
class Session:
    """Identity of the local process within one multiplayer match."""
    session_id: str
    participant_id: str
    address: str
    is_host: bool = False


@dataclass
class SessionFlags:
    """Launcher flags as found on the command line."""
    enabled: bool = False
    address: Optional[str] = None
    session_id: Optional[str] = None
    participant_id: Optional[str] = None

    @property
    def missing(self) -> List[str]:
        """Names of the identifiers that were not supplied."""
        names = []
        if not self.address:
            names.append(FLAG_PIPE)
        if not self.session_id:
            names.append(FLAG_SESSION)
        if not self.participant_id:
            names.append(FLAG_PLAYER)
        return names


# Flag -> SessionFlags field, for flags that take a value
_VALUE_FLAGS = {
    FLAG_PIPE: 'address',
    FLAG_SESSION: 'session_id',
    FLAG_PLAYER: 'participant_id',
}


def parse_flags(args: Sequence[str]) -> SessionFlags:
    """Pick the launcher flags out of argv. Everything else is ignored.

    The argv belongs to the game, so flags must match exactly; argparse
    would treat other single-dash options as abbreviations of ours.
    A value flag takes the next argument, whatever it is.
    """
    flags = SessionFlags()
    i = 0
    while i < len(args):
        arg = args[i]
        if arg == FLAG_MULTIPLAYER:
            flags.enabled = True
        elif arg in _VALUE_FLAGS and i + 1 < len(args):
            i += 1
            setattr(flags, _VALUE_FLAGS[arg], args[i])
        i += 1
    return flags


class SessionConnector:
    """Owns the Session and the transport handle.

    Usage:
        connector = SessionConnector.init(parse_flags(sys.argv[1:]))
        if connector and connector.connect() == ConnectResult.CONNECTED:
            connector.send(state)
            data = connector.read_available()
        connector.exit()
    """

    def __init__(
        self,
        session: Session,
        codec: Optional[MessageCodec] = None,
        transport_factory: Callable[[str], Transport] = open_transport,
    ):
        self.session = session
        self.codec = codec or MessageCodec()
        self._transport_factory = transport_factory
        self._transport: Optional[Transport] = None
        self._state = SessionState.DISCONNECTED
        self._failed = False
        self._read_errors = 0

    @classmethod
    def init(cls, flags: SessionFlags, **kwargs) -> Optional['SessionConnector']:
        """Build a connector from launcher flags, or None if inactive."""
        if not flags.enabled:
            logger.debug("Not running in multiplayer mode")
            return None

        missing = flags.missing
        if missing:
            logger.warning(f"Multiplayer requested but missing arguments: {', '.join(missing)}")
            return None

        session = Session(
            session_id=flags.session_id,
            participant_id=flags.participant_id,
            address=flags.address,
        )
        return cls(session, **kwargs)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == SessionState.CONNECTED

    def connect(
        self,
        timeout_ms: int = DEFAULT_CONNECT_TIMEOUT_MS,
        cancel: Optional[threading.Event] = None,
    ) -> ConnectResult:
        """Single bounded wait for the launcher, then send ready.

        A failed or cancelled connect is final for this connector.
        """
        if self._state == SessionState.CONNECTED:
            return ConnectResult.CONNECTED
        if self._failed:
            return ConnectResult.FAILED

        self._state = SessionState.CONNECTING
        address = self.session.address
        try:
            transport = self._transport_factory(address)
            connected = transport.connect(timeout_ms, cancel)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to connect to launcher at {address}: {e}")
            connected = False

        if not connected:
            self._state = SessionState.DISCONNECTED
            self._failed = True
            if cancel is not None and cancel.is_set():
                logger.info("Connect to launcher cancelled")
                return ConnectResult.CANCELLED
            logger.warning(f"Failed to connect to launcher at {address}")
            return ConnectResult.FAILED

        self._transport = transport
        self._state = SessionState.CONNECTED
        self._write(msg_ready(self.session.participant_id))
        logger.info(f"Connected to launcher as {self.session.participant_id} "
                    f"(session {self.session.session_id})")
        return ConnectResult.CONNECTED

    def exit(self):
        """Close the transport. Safe to call repeatedly or before connect."""
        if self._transport is not None:
            try:
                self._transport.close()
            except OSError as e:
                logger.warning(f"Error closing launcher pipe: {e}")
            self._transport = None
            logger.info("Disconnected from launcher")
        self._state = SessionState.DISCONNECTED

    def send(self, item: Union[PlayerState, PlayerAction]) -> bool:
        """Encode and write a state update or an action."""
        if isinstance(item, PlayerState):
            return self._write(msg_state_update(item))
        elif isinstance(item, PlayerAction):
            return self._write(msg_action(item))
        raise TypeError(f"Cannot send {type(item).__name__}")

    def read_available(self, max_bytes: int = READ_CHUNK_SIZE) -> Optional[bytes]:
        """Read whatever is waiting, without blocking. None if nothing."""
        if not self.is_connected:
            return None
        try:
            if self._transport.available() <= 0:
                return None
            data = self._transport.read(max_bytes)
        except OSError as e:
            self._read_errors += 1
            if self._read_errors == 1:
                logger.warning(f"Read from launcher failed: {e}")
            else:
                logger.debug(f"Read from launcher failed again ({self._read_errors}x): {e}")
            return None
        self._read_errors = 0
        return data or None

    def _write(self, message: Message) -> bool:
        if not self.is_connected:
            return False
        data = FrameWriter.pack(self.codec.encode(message))
        try:
            written = self._transport.write(data)
        except OSError as e:
            logger.warning(f"Write to launcher failed: {e}")
            return False
        if written != len(data):
            logger.warning(f"Short write to launcher: {written} of {len(data)} bytes")
            return False
        return True
