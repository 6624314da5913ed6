"""Turn ownership, driven only by inbound turn-start messages."""

import logging
from dataclasses import dataclass, replace
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class TurnState:
    """Whose turn it is, as last announced by the launcher.

    time_limit is informational; nothing here enforces it.
    """
    current_turn_participant_id: str = ""
    is_local_turn: bool = False
    time_limit: int = 0


class TurnStateTracker:
    """Tracks turn ownership for the local participant.

    The only transition is turn_started(). The tracker never hands the
    turn back on its own.
    """

    def __init__(self, local_participant_id: str):
        self.local_participant_id = local_participant_id
        self._state = TurnState()

    @property
    def state(self) -> TurnState:
        """Copy of the current turn state."""
        return replace(self._state)

    def turn_started(self, participant_id: str, time_limit: int):
        """Apply a turn-start message."""
        self._state.current_turn_participant_id = participant_id
        self._state.is_local_turn = participant_id == self.local_participant_id
        self._state.time_limit = time_limit
        if self._state.is_local_turn:
            logger.info(f"Turn started: local player {participant_id} ({time_limit}s)")
        else:
            logger.debug(f"Turn started: {participant_id} ({time_limit}s)")

    def is_my_turn(self) -> bool:
        return self._state.is_local_turn

    def current_turn_player(self) -> Optional[str]:
        """Participant whose turn it is, or None before the first turn-start."""
        return self._state.current_turn_participant_id or None
