"""Launcher side of the game pipe.

Handles:
- Listening on the pipe address for the game process
- Decoding ready / state-update / action frames from the game
- Sending turn-start / remote-action / player-state frames to the game
- Optionally spawning the game with the multiplayer flags
"""

import asyncio
import logging
import os
import shlex
from typing import Callable, Dict, List, Optional

from ..constants import (
    DEFAULT_TIME_LIMIT, READ_CHUNK_SIZE,
    FLAG_MULTIPLAYER, FLAG_PIPE, FLAG_SESSION, FLAG_PLAYER,
)
from ..player_state import PlayerAction, PlayerState
from .protocol import (
    FrameReader, FrameWriter, Message, MessageCodec, MessageType,
    msg_player_state, msg_remote_action, msg_turn_start,
)
from .transport import TCP_PREFIX, parse_tcp_address

logger = logging.getLogger(__name__)


def build_game_args(address: str, session_id: str, participant_id: str) -> List[str]:
    """Command line flags that put the game in multiplayer mode."""
    return [
        FLAG_MULTIPLAYER,
        FLAG_PIPE, address,
        FLAG_SESSION, session_id,
        FLAG_PLAYER, participant_id,
    ]


class LauncherServer:
    """Accepts the game's connection and relays messages.

    Only one game is attached at a time; a new connection replaces the
    previous one.

    Usage:
        server = LauncherServer('/tmp/turnlink.sock')
        await server.start()
        await server.wait_for_game(timeout=5.0)
        await server.send_turn_start('p1')
    """

    def __init__(
        self,
        address: str,
        on_message: Optional[Callable[[Message], None]] = None,
        codec: Optional[MessageCodec] = None,
    ):
        self.address = address
        self.on_message = on_message
        self.codec = codec or MessageCodec()

        # Latest info reported by the game
        self.ready_participants: List[str] = []
        self.player_states: Dict[str, PlayerState] = {}
        self.actions: List[PlayerAction] = []

        self._server: Optional[asyncio.AbstractServer] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._game_connected = asyncio.Event()

    @property
    def has_game(self) -> bool:
        return self._writer is not None

    async def start(self):
        """Start listening."""
        if self.address.startswith(TCP_PREFIX):
            host, port = parse_tcp_address(self.address)
            self._server = await asyncio.start_server(self._handle_connection, host, port)
        else:
            if os.path.exists(self.address):
                os.unlink(self.address)  # Stale socket from a previous run
            self._server = await asyncio.start_unix_server(self._handle_connection, self.address)
        logger.info(f"IPC server listening on {self.address}")

    async def serve_forever(self):
        if self._server is None:
            await self.start()
        async with self._server:
            await self._server.serve_forever()

    async def stop(self):
        """Stop listening and drop the game connection."""
        if self._writer is not None:
            self._writer.close()
            try:
                await self._writer.wait_closed()
            except ConnectionError:
                pass
            self._writer = None
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        logger.info("IPC server stopped")

    async def wait_for_game(self, timeout: Optional[float] = None) -> bool:
        """Wait until a game has connected. False on timeout."""
        try:
            await asyncio.wait_for(self._game_connected.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    # =========================================================================
    # SENDING
    # =========================================================================

    async def send(self, message: Message) -> bool:
        """Send a message to the game. False if no game is attached."""
        if self._writer is None:
            logger.warning(f"No game connected, dropping {message.type.value}")
            return False
        try:
            self._writer.write(FrameWriter.pack(self.codec.encode(message)))
            await self._writer.drain()
        except ConnectionError as e:
            logger.warning(f"Send to game failed: {e}")
            return False
        return True

    async def send_turn_start(self, participant_id: str, time_limit: int = DEFAULT_TIME_LIMIT) -> bool:
        return await self.send(msg_turn_start(participant_id, time_limit))

    async def send_remote_action(self, action: PlayerAction) -> bool:
        return await self.send(msg_remote_action(action))

    async def send_player_state(self, state: PlayerState) -> bool:
        return await self.send(msg_player_state(state))

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    async def _handle_connection(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        """Handle the game connecting to the pipe."""
        logger.info("Game connected to IPC")
        self._writer = writer
        self._game_connected.set()
        frame_reader = FrameReader()

        try:
            while True:
                data = await reader.read(READ_CHUNK_SIZE)
                if not data:
                    break  # Connection closed
                for frame in frame_reader.feed(data):
                    self._handle_game_message(self.codec.decode(frame))
        except ConnectionError as e:
            logger.warning(f"Game socket error: {e}")
        finally:
            logger.info("Game disconnected from IPC")
            if self._writer is writer:
                self._writer = None
                self._game_connected.clear()
            writer.close()

    def _handle_game_message(self, msg: Message):
        """Record a message from the game and pass it on."""
        if msg.type == MessageType.READY:
            logger.info(f"Game is ready: {msg.participant_id}")
            self.ready_participants.append(msg.participant_id)

        elif msg.type == MessageType.STATE_UPDATE:
            self.player_states[msg.participant_id] = msg.state

        elif msg.type == MessageType.ACTION:
            logger.info(f"Game action: {msg.action.type_name}")
            self.actions.append(msg.action)

        else:
            logger.warning(f"Unhandled message type from game: {msg.raw_type}")
            return

        if self.on_message:
            self.on_message(msg)


async def _run(address: str, game_command: Optional[str], session_id: str, participant_id: str):
    server = LauncherServer(address)
    await server.start()

    game = None
    if game_command:
        args = shlex.split(game_command) + build_game_args(address, session_id, participant_id)
        logger.info(f"Launching game: {' '.join(args)}")
        game = await asyncio.create_subprocess_exec(*args)

    try:
        if game is not None and await server.wait_for_game(timeout=30.0):
            # Single-seat match: hand the turn to the only player
            await server.send_turn_start(participant_id)
        await server.serve_forever()
    finally:
        if game is not None and game.returncode is None:
            game.terminate()
        await server.stop()


def run_launcher(
    address: str,
    game_command: Optional[str] = None,
    session_id: str = "local",
    participant_id: str = "p1",
):
    """Run the launcher pipe server until interrupted."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s [%(levelname)s] %(message)s',
    )

    try:
        asyncio.run(_run(address, game_command, session_id, participant_id))
    except KeyboardInterrupt:
        logger.info("Launcher interrupted")


if __name__ == '__main__':
    import argparse

    parser = argparse.ArgumentParser(description='Turnlink launcher pipe server')
    parser.add_argument('--address', default='/tmp/turnlink.sock',
                        help='Socket path or tcp://host:port to listen on')
    parser.add_argument('--game', help='Game command to launch with multiplayer flags')
    parser.add_argument('--session', default='local', help='Session id passed to the game')
    parser.add_argument('--player', default='p1', help='Participant id passed to the game')

    args = parser.parse_args()
    run_launcher(args.address, args.game, args.session, args.player)
