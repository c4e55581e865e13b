"""Engine data models (SQLAlchemy ORM).

Import :data:`ALL_MODELS` for migration and table creation.
"""

from chatkeep.engine.models.api_key import ApiKeyRecord
from chatkeep.engine.models.base import Base
from chatkeep.engine.models.user_session import UserSession

ALL_MODELS: list[type[Base]] = [
    ApiKeyRecord,
    UserSession,
]

__all__ = [
    "ALL_MODELS",
    "ApiKeyRecord",
    "Base",
    "UserSession",
]
