"""Single-slot event handlers for decoded launcher messages."""

import logging
from enum import Enum, auto
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


class EventKind(Enum):
    """Events the host game can listen for."""
    TURN_START = auto()     # handler(participant_id: str, time_limit: int)
    REMOTE_ACTION = auto()  # handler(action: PlayerAction)
    PLAYER_STATE = auto()   # handler(state: PlayerState)


Handler = Callable[..., None]


class EventDispatcher:
    """One handler per event kind; registering again replaces it.

    Handlers run synchronously on the thread that calls poll(), so they
    must not block.
    """

    def __init__(self):
        self._handlers: Dict[EventKind, Optional[Handler]] = {kind: None for kind in EventKind}

    def register(self, kind: EventKind, handler: Optional[Handler]):
        """Set the handler for kind. None clears it."""
        if not isinstance(kind, EventKind):
            raise ValueError(f"Unknown event kind: {kind!r}")
        self._handlers[kind] = handler

    def handler_for(self, kind: EventKind) -> Optional[Handler]:
        return self._handlers[kind]

    def dispatch(self, kind: EventKind, *args) -> bool:
        """Call the handler for kind, if any. Returns True if one ran."""
        handler = self._handlers[kind]
        if handler is None:
            logger.debug(f"No handler for {kind.name}")
            return False
        handler(*args)
        return True
