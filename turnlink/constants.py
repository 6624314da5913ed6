"""IPC constants and defaults."""
from enum import Enum


# Command line flags passed by the launcher
FLAG_MULTIPLAYER = "-multiplayer"
FLAG_PIPE = "-pipe"
FLAG_SESSION = "-session"
FLAG_PLAYER = "-player"

# Pipe name the launcher listens on
DEFAULT_PIPE_NAME = r"\\.\pipe\fallout1mp"

# Framing
FRAME_DELIMITER = b"\n"
FRAME_BUFFER_CAPACITY = 4096  # Max bytes kept for one frame
READ_CHUNK_SIZE = 1023        # Max bytes read per poll

# Connection
DEFAULT_CONNECT_TIMEOUT_MS = 5000
CONNECT_POLL_INTERVAL = 0.05  # Seconds between endpoint checks while waiting

# Turns
DEFAULT_TIME_LIMIT = 30  # Seconds, used when turn-start omits timeLimit

# Host loop
FPS = 60
STATE_SEND_INTERVAL = 30  # Ticks between state updates in the demo host


class WeaponMode:
    """Weapon modes the launcher understands (not enforced)."""
    SINGLE = "single"
    BURST = "burst"
    AIMED = "aimed"


class ConnectResult(Enum):
    """Outcome of a single bounded connect attempt."""
    CONNECTED = "connected"
    FAILED = "failed"
    CANCELLED = "cancelled"
