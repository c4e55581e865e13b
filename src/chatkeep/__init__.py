"""chatkeep: API key registry and per-chat session store for chat services."""

__version__ = "0.1.0"
