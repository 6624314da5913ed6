"""Player state and combat actions exchanged with the launcher.

PlayerState is a snapshot of one participant's live combat stats.
PlayerAction is what the active participant did on their turn.

Both are transient: the IPC layer builds them for a single send or a
single dispatch and never keeps them around.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Union


class ActionType(Enum):
    """Combat action tags. Values are the wire strings."""
    MOVE = "move"
    ATTACK = "attack"
    USE_ITEM = "use-item"
    END_TURN = "end-turn"

    @classmethod
    def from_wire(cls, value: str) -> Union['ActionType', str]:
        """Map a wire string to an ActionType, keeping unknown tags as-is."""
        try:
            return cls(value)
        except ValueError:
            return value


@dataclass
class PlayerState:
    """Per-participant combat stats."""
    participant_id: str = ""
    tile_index: int = 0
    elevation: int = 0
    rotation: int = 0
    current_hp: int = 0
    max_hp: int = 0
    current_ap: int = 0
    max_ap: int = 0
    is_dead: bool = False


@dataclass
class PlayerAction:
    """A combat action, tagged by type.

    Fields used per tag:
        move     -> target_tile
        attack   -> target_id, weapon_mode, aimed_location
        use-item -> item_id, target_id
        end-turn -> (none)

    Other fields are ignored on encode and stay at their defaults on decode.
    An inbound action with a tag we don't know keeps the raw string in type.
    """
    type: Union[ActionType, str]
    target_tile: int = 0
    target_id: str = ""
    weapon_mode: str = ""
    aimed_location: str = ""
    item_id: str = ""

    @property
    def type_name(self) -> str:
        """Wire string for the action tag."""
        if isinstance(self.type, ActionType):
            return self.type.value
        return self.type


# Action factory functions for cleaner API
def action_move(target_tile: int) -> PlayerAction:
    """Move to a tile."""
    return PlayerAction(ActionType.MOVE, target_tile=target_tile)

def action_attack(target_id: str, weapon_mode: str, aimed_location: str = "") -> PlayerAction:
    """Attack a participant. aimed_location only matters for aimed shots."""
    return PlayerAction(
        ActionType.ATTACK,
        target_id=target_id,
        weapon_mode=weapon_mode,
        aimed_location=aimed_location,
    )

def action_use_item(item_id: str, target_id: str = "") -> PlayerAction:
    return PlayerAction(ActionType.USE_ITEM, item_id=item_id, target_id=target_id)

def action_end_turn() -> PlayerAction:
    return PlayerAction(ActionType.END_TURN)
