"""Network module for multiplayer support."""

from .protocol import MessageType, Message, MessageCodec, FrameReader, FrameWriter
from .transport import Transport, SocketTransport, NamedPipeTransport, open_transport
from .session import Session, SessionFlags, SessionConnector, SessionState, parse_flags
from .turns import TurnState, TurnStateTracker
from .events import EventDispatcher, EventKind
from .client import MultiplayerClient
from .launcher import LauncherServer, run_launcher, build_game_args
