"""Network protocol: message types, framing, tolerant field codec.

Wire format:
    one message per line, terminated by '\\n'

Message layout (loosely JSON, fixed field order on encode):
    {"type":"turn-start","participantId":"p1","timeLimit":30}

Decoding does not parse JSON. Each field is found by scanning for its
quoted key, so field order does not matter and unknown fields are
skipped. Escaped quotes and nested objects are not supported.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from ..constants import DEFAULT_TIME_LIMIT, FRAME_BUFFER_CAPACITY, FRAME_DELIMITER
from ..player_state import ActionType, PlayerAction, PlayerState

logger = logging.getLogger(__name__)


class MessageType(Enum):
    """Wire message kinds. Values are the "type" strings."""
    # Game → Launcher
    READY = "ready"                 # Handshake after connect
    STATE_UPDATE = "state-update"   # Local participant stats
    ACTION = "action"               # Local participant action

    # Launcher → Game
    TURN_START = "turn-start"       # Who may act now
    REMOTE_ACTION = "remote-action" # Another participant's action
    PLAYER_STATE = "player-state"   # Another participant's stats


@dataclass
class Message:
    """Decoded message envelope.

    type is None for frames whose "type" we don't recognize; raw_type
    keeps whatever string was on the wire (None if absent).
    """
    type: Optional[MessageType]
    raw_type: Optional[str] = None
    participant_id: str = ""
    time_limit: int = DEFAULT_TIME_LIMIT
    action: Optional[PlayerAction] = None
    state: Optional[PlayerState] = None

    @property
    def is_recognized(self) -> bool:
        return self.type is not None


# =============================================================================
# FIELD LOOKUP - substring scans, tolerant of bad input
# =============================================================================

_INT_RE = re.compile(r'\s*([+-]?\d+)')


def get_string(text: str, key: str, default: Optional[str] = None) -> Optional[str]:
    """Value of "key":"..." up to the next quote, or default."""
    needle = f'"{key}":"'
    start = text.find(needle)
    if start < 0:
        return default
    start += len(needle)
    end = text.find('"', start)
    if end < 0:
        return default
    return text[start:end]


def get_int(text: str, key: str, default: int = 0) -> int:
    """Leading integer after "key":, or default if the key is absent.

    Works like C atoi: leading whitespace and one sign are allowed,
    parsing stops at the first non-digit, and no digits at all gives 0.
    """
    needle = f'"{key}":'
    start = text.find(needle)
    if start < 0:
        return default
    match = _INT_RE.match(text, start + len(needle))
    if not match:
        return 0
    return int(match.group(1))


def get_bool(text: str, key: str, default: bool = False) -> bool:
    """True only if "key": is followed (after spaces) by literal true."""
    needle = f'"{key}":'
    start = text.find(needle)
    if start < 0:
        return default
    start += len(needle)
    while start < len(text) and text[start] == ' ':
        start += 1
    return text.startswith('true', start)


# =============================================================================
# FRAME READER/WRITER - newline framing over a byte stream
# =============================================================================

class FrameReader:
    """Splits a byte stream into newline-delimited frames.

    Usage:
        reader = FrameReader()
        for frame in reader.feed(data_from_pipe):
            message = codec.decode(frame)

    Partial data is kept for the next feed. A frame longer than
    capacity is truncated: bytes past capacity are dropped until the
    next delimiter, so only that one frame is damaged.
    """

    def __init__(self, capacity: int = FRAME_BUFFER_CAPACITY):
        if capacity <= 0:
            raise ValueError(f"Frame capacity must be positive: {capacity}")
        self.capacity = capacity
        self._buffer = bytearray()
        self._truncated = False

    @property
    def pending(self) -> int:
        """Bytes buffered for the current (incomplete) frame."""
        return len(self._buffer)

    def feed(self, data: bytes) -> List[str]:
        """Add received data and return each complete, non-empty frame.

        The whole chunk is buffered before anything is returned.
        """
        frames = []
        start = 0
        while True:
            end = data.find(FRAME_DELIMITER, start)
            if end < 0:
                self._append(data[start:])
                return frames
            self._append(data[start:end])
            start = end + len(FRAME_DELIMITER)

            frame = bytes(self._buffer)
            self._buffer.clear()
            self._truncated = False
            if frame:
                frames.append(frame.decode('utf-8', errors='replace'))

    def _append(self, chunk: bytes):
        room = self.capacity - len(self._buffer)
        if len(chunk) > room:
            if not self._truncated:
                logger.warning(f"Frame exceeds {self.capacity} bytes, dropping the rest")
                self._truncated = True
            chunk = chunk[:room]
        self._buffer.extend(chunk)


class FrameWriter:
    """Turns encoded message text into a frame ready to write."""

    @staticmethod
    def pack(text: str) -> bytes:
        """Append the delimiter and encode to bytes."""
        return text.encode('utf-8') + FRAME_DELIMITER


# =============================================================================
# CODEC
# =============================================================================

def _bool_text(value: bool) -> str:
    return "true" if value else "false"


class MessageCodec:
    """Encodes messages to wire text and decodes frames back.

    Decoding never raises: unknown kinds come back unrecognized and
    missing fields get their defaults.
    """

    def encode(self, message: Message) -> str:
        """Encode a message into its fixed wire layout (no delimiter)."""
        kind = message.type
        if kind == MessageType.READY:
            return f'{{"type":"ready","participantId":"{message.participant_id}"}}'

        elif kind in (MessageType.STATE_UPDATE, MessageType.PLAYER_STATE):
            return self._encode_state(kind, message.state or PlayerState())

        elif kind in (MessageType.ACTION, MessageType.REMOTE_ACTION):
            if message.action is None:
                raise ValueError(f"{kind.value} message without an action")
            return self._encode_action(kind, message.action)

        elif kind == MessageType.TURN_START:
            return (
                f'{{"type":"turn-start",'
                f'"participantId":"{message.participant_id}",'
                f'"timeLimit":{message.time_limit}}}'
            )

        raise ValueError(f"Cannot encode message type: {message.raw_type or kind}")

    def _encode_state(self, kind: MessageType, state: PlayerState) -> str:
        return (
            f'{{"type":"{kind.value}",'
            f'"participantId":"{state.participant_id}",'
            f'"tileIndex":{state.tile_index},'
            f'"elevation":{state.elevation},'
            f'"rotation":{state.rotation},'
            f'"currentHp":{state.current_hp},'
            f'"maxHp":{state.max_hp},'
            f'"currentAp":{state.current_ap},'
            f'"maxAp":{state.max_ap},'
            f'"isDead":{_bool_text(state.is_dead)}}}'
        )

    def _encode_action(self, kind: MessageType, action: PlayerAction) -> str:
        head = f'{{"type":"{kind.value}","action":"{action.type_name}"'
        action_type = action.type

        if action_type == ActionType.MOVE:
            return f'{head},"targetTile":{action.target_tile}}}'
        elif action_type == ActionType.ATTACK:
            return (
                f'{head},"targetId":"{action.target_id}",'
                f'"weaponMode":"{action.weapon_mode}",'
                f'"aimedLocation":"{action.aimed_location}"}}'
            )
        elif action_type == ActionType.USE_ITEM:
            return f'{head},"itemId":"{action.item_id}","targetId":"{action.target_id}"}}'
        elif action_type == ActionType.END_TURN:
            return f'{head}}}'

        raise ValueError(f"Unknown action type: {action.type_name}")

    def decode(self, frame: str) -> Message:
        """Decode one frame. Unknown or missing type gives an unrecognized message."""
        raw_type = get_string(frame, "type")
        try:
            kind = MessageType(raw_type)
        except ValueError:
            return Message(type=None, raw_type=raw_type)

        if kind == MessageType.TURN_START:
            return Message(
                type=kind,
                raw_type=raw_type,
                participant_id=get_string(frame, "participantId", ""),
                time_limit=get_int(frame, "timeLimit", DEFAULT_TIME_LIMIT),
            )

        elif kind in (MessageType.REMOTE_ACTION, MessageType.ACTION):
            return Message(type=kind, raw_type=raw_type, action=self._decode_action(frame))

        elif kind in (MessageType.PLAYER_STATE, MessageType.STATE_UPDATE):
            state = self._decode_state(frame)
            return Message(
                type=kind,
                raw_type=raw_type,
                participant_id=state.participant_id,
                state=state,
            )

        # READY
        return Message(
            type=kind,
            raw_type=raw_type,
            participant_id=get_string(frame, "participantId", ""),
        )

    def _decode_action(self, frame: str) -> PlayerAction:
        return PlayerAction(
            type=ActionType.from_wire(get_string(frame, "action", "")),
            target_tile=get_int(frame, "targetTile", 0),
            target_id=get_string(frame, "targetId", ""),
            weapon_mode=get_string(frame, "weaponMode", ""),
            aimed_location=get_string(frame, "aimedLocation", ""),
            item_id=get_string(frame, "itemId", ""),
        )

    def _decode_state(self, frame: str) -> PlayerState:
        return PlayerState(
            participant_id=get_string(frame, "participantId", ""),
            tile_index=get_int(frame, "tileIndex", 0),
            elevation=get_int(frame, "elevation", 0),
            rotation=get_int(frame, "rotation", 0),
            current_hp=get_int(frame, "currentHp", 0),
            max_hp=get_int(frame, "maxHp", 0),
            current_ap=get_int(frame, "currentAp", 0),
            max_ap=get_int(frame, "maxAp", 0),
            is_dead=get_bool(frame, "isDead", False),
        )


# =============================================================================
# MESSAGE BUILDERS - convenience functions for creating messages
# =============================================================================

def msg_ready(participant_id: str) -> Message:
    """Game handshake announcing the local participant."""
    return Message(type=MessageType.READY, participant_id=participant_id)


def msg_state_update(state: PlayerState) -> Message:
    """Local participant stats."""
    return Message(
        type=MessageType.STATE_UPDATE,
        participant_id=state.participant_id,
        state=state,
    )


def msg_action(action: PlayerAction) -> Message:
    """Local participant action."""
    return Message(type=MessageType.ACTION, action=action)


def msg_turn_start(participant_id: str, time_limit: int = DEFAULT_TIME_LIMIT) -> Message:
    """Launcher announcing whose turn it is."""
    return Message(
        type=MessageType.TURN_START,
        participant_id=participant_id,
        time_limit=time_limit,
    )


def msg_remote_action(action: PlayerAction) -> Message:
    """Launcher relaying another participant's action."""
    return Message(type=MessageType.REMOTE_ACTION, action=action)


def msg_player_state(state: PlayerState) -> Message:
    """Launcher relaying another participant's stats."""
    return Message(
        type=MessageType.PLAYER_STATE,
        participant_id=state.participant_id,
        state=state,
    )
