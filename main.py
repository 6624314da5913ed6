"""
Headless demo host for the launcher link.
Runs a fake combat loop: polls the launcher every tick, reports its own
stats, and ends its turn as soon as it gets one.

    python main.py -multiplayer -pipe /tmp/turnlink.sock -session s1 -player p1
"""
import logging
import sys

import pygame

from turnlink.constants import FPS, STATE_SEND_INTERVAL
from turnlink.network import MultiplayerClient
from turnlink.player_state import PlayerAction, PlayerState, action_end_turn
from turnlink.settings import get_connect_timeout_ms, get_log_level

logger = logging.getLogger(__name__)


def create_local_state(participant_id: str) -> PlayerState:
    """Starting stats for the local participant."""
    return PlayerState(
        participant_id=participant_id,
        tile_index=0,
        current_hp=30,
        max_hp=30,
        current_ap=8,
        max_ap=8,
    )


def main():
    """Main host loop."""
    logging.basicConfig(
        level=get_log_level(),
        format='%(asctime)s [%(levelname)s] %(message)s',
    )

    client = MultiplayerClient.init(sys.argv[1:], connect_timeout_ms=get_connect_timeout_ms())
    if not client.is_active():
        logger.info("Single-player mode, nothing to sync")
        return

    session = client.get_session()
    local_state = create_local_state(session.participant_id)
    pending_end_turn = False

    def handle_turn_start(player_id: str, time_limit: int):
        nonlocal pending_end_turn
        logger.info(f"Turn: {player_id} ({time_limit}s)")
        if player_id == session.participant_id:
            local_state.current_ap = local_state.max_ap
            pending_end_turn = True

    def handle_remote_action(action: PlayerAction):
        logger.info(f"Remote action: {action}")

    def handle_player_state(state: PlayerState):
        logger.info(f"Remote state: {state.participant_id} hp={state.current_hp}/{state.max_hp}")

    client.on_turn_start(handle_turn_start)
    client.on_remote_action(handle_remote_action)
    client.on_player_state(handle_player_state)

    pygame.init()
    clock = pygame.time.Clock()
    tick = 0

    try:
        while client.is_active():
            client.poll()

            if pending_end_turn and client.is_my_turn():
                pending_end_turn = False
                client.send_action(action_end_turn())

            if tick % STATE_SEND_INTERVAL == 0:
                client.send_state(local_state)

            tick += 1
            clock.tick(FPS)
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        client.exit()
        pygame.quit()


if __name__ == "__main__":
    main()
