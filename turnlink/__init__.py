"""Turn-based combat multiplayer sync over a launcher pipe."""

__version__ = "0.1.0"
