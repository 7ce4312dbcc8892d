from curation.core.config import settings
from curation.core.database import Base, async_session_maker, engine, session_scope
from curation.core.logging import setup_logging
from curation.core.redis import close_redis, get_redis

__all__ = [
    "settings",
    "Base",
    "engine",
    "async_session_maker",
    "session_scope",
    "get_redis",
    "close_redis",
    "setup_logging",
]
