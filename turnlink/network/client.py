"""Multiplayer client: the host game's view of the launcher link.

Usage:
    client = MultiplayerClient.init(sys.argv[1:])
    client.on_turn_start(lambda player_id, time_limit: ...)
    client.on_remote_action(lambda action: ...)
    client.on_player_state(lambda state: ...)

    # Every tick
    client.poll()
    if client.is_my_turn():
        client.send_action(action_end_turn())
    client.send_state(state)

    client.exit()

Everything runs on the caller's thread. poll() never blocks; the only
blocking call is the bounded wait inside init().
"""

import logging
import threading
from collections import deque
from typing import Callable, Optional, Sequence

from ..constants import ConnectResult, DEFAULT_CONNECT_TIMEOUT_MS, FRAME_BUFFER_CAPACITY
from ..player_state import PlayerAction, PlayerState
from .events import EventDispatcher, EventKind
from .protocol import FrameReader, Message, MessageCodec, MessageType
from .session import Session, SessionConnector, SessionState, parse_flags
from .transport import Transport, open_transport
from .turns import TurnState, TurnStateTracker

logger = logging.getLogger(__name__)


class MultiplayerClient:
    """Session context for one multiplayer match.

    An inactive client (single-player, or multiplayer that failed to
    start) answers every query with the single-player value and ignores
    sends.
    """

    def __init__(
        self,
        connector: Optional[SessionConnector] = None,
        frame_capacity: int = FRAME_BUFFER_CAPACITY,
    ):
        self._connector = connector
        self._reader = FrameReader(frame_capacity)
        self._frames = deque()
        self._events = EventDispatcher()
        participant_id = connector.session.participant_id if connector else ""
        self._turns = TurnStateTracker(participant_id)

    @classmethod
    def init(
        cls,
        args: Sequence[str],
        connect_timeout_ms: int = DEFAULT_CONNECT_TIMEOUT_MS,
        transport_factory: Callable[[str], Transport] = open_transport,
        cancel: Optional[threading.Event] = None,
        codec: Optional[MessageCodec] = None,
    ) -> 'MultiplayerClient':
        """Parse launcher flags and connect. Check is_active() afterwards."""
        connector = SessionConnector.init(
            parse_flags(args),
            codec=codec,
            transport_factory=transport_factory,
        )
        if connector is None:
            return cls()

        result = connector.connect(connect_timeout_ms, cancel)
        if result != ConnectResult.CONNECTED:
            logger.warning("Multiplayer unavailable, continuing in single-player mode")
            return cls()

        logger.info("Multiplayer initialized")
        return cls(connector)

    # =========================================================================
    # PUBLIC API (called from the game loop)
    # =========================================================================

    def exit(self):
        """Close the link. Idempotent."""
        if self._connector is not None:
            self._connector.exit()

    def is_active(self) -> bool:
        return self._connector is not None and self._connector.is_connected

    @property
    def state(self) -> SessionState:
        if self._connector is None:
            return SessionState.DISCONNECTED
        return self._connector.state

    def get_session(self) -> Optional[Session]:
        """Session identity, or None when not active."""
        return self._connector.session if self.is_active() else None

    def is_my_turn(self) -> bool:
        return self.is_active() and self._turns.is_my_turn()

    def current_turn_participant(self) -> Optional[str]:
        return self._turns.current_turn_player()

    @property
    def turn_state(self) -> TurnState:
        return self._turns.state

    def send_state(self, state: PlayerState) -> bool:
        """Send local stats. False if inactive or the write failed."""
        if not self.is_active():
            return False
        return self._connector.send(state)

    def send_action(self, action: PlayerAction) -> bool:
        """Send a local action. False if inactive or the write failed."""
        if not self.is_active():
            return False
        return self._connector.send(action)

    def on_turn_start(self, handler: Optional[Callable[[str, int], None]]):
        self._events.register(EventKind.TURN_START, handler)

    def on_remote_action(self, handler: Optional[Callable[[PlayerAction], None]]):
        self._events.register(EventKind.REMOTE_ACTION, handler)

    def on_player_state(self, handler: Optional[Callable[[PlayerState], None]]):
        self._events.register(EventKind.PLAYER_STATE, handler)

    def poll(self) -> bool:
        """Read and handle whatever the launcher sent since the last call.

        Returns True if any data was read. Handlers fire before this
        returns, in the order the frames arrived. If a handler raises,
        the frames after it stay queued for the next poll.
        """
        if not self.is_active():
            return False

        data = self._connector.read_available()
        if data is not None:
            self._frames.extend(self._reader.feed(data))

        while self._frames:
            frame = self._frames.popleft()
            self._handle_message(self._connector.codec.decode(frame))
        return data is not None

    # =========================================================================
    # INCOMING
    # =========================================================================

    def _handle_message(self, msg: Message):
        """Apply a decoded message and fire its handler."""
        if msg.type == MessageType.TURN_START:
            # Turn state changes even when nobody listens
            self._turns.turn_started(msg.participant_id, msg.time_limit)
            self._events.dispatch(EventKind.TURN_START, msg.participant_id, msg.time_limit)

        elif msg.type == MessageType.REMOTE_ACTION:
            self._events.dispatch(EventKind.REMOTE_ACTION, msg.action)

        elif msg.type == MessageType.PLAYER_STATE:
            self._events.dispatch(EventKind.PLAYER_STATE, msg.state)

        else:
            logger.debug(f"Ignoring message type: {msg.raw_type}")
