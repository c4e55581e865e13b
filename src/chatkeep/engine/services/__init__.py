"""Engine services."""

from chatkeep.engine.services.key_registry import KeyRegistry
from chatkeep.engine.services.session_store import SessionStore

__all__ = ["KeyRegistry", "SessionStore"]
