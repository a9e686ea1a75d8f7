"""
Shared Redis connection pool for the scheduler lock and status trace.

Provides a singleton connection pool so every lock and status read in a
process reuses the same connections.  Returns None when Redis is down;
callers decide whether that is fatal.
"""
import logging
from typing import Optional

from redis import ConnectionPool, Redis

from ..config import settings

logger = logging.getLogger(__name__)

# Module-level pool instance (singleton)
_pool: Optional[ConnectionPool] = None


def get_redis_pool() -> Optional[ConnectionPool]:
    """
    Get the shared Redis connection pool (singleton).

    Creates the pool on first call with settings from config.
    Returns None if Redis connection fails.
    """
    global _pool

    if _pool is not None:
        return _pool

    try:
        _pool = ConnectionPool(
            host=settings.redis_host,
            port=settings.redis_port,
            db=settings.lock_redis_db,
            max_connections=10,
            socket_connect_timeout=2,
            socket_timeout=2,
            decode_responses=True,
        )
        Redis(connection_pool=_pool).ping()

        logger.info(
            "Redis connection pool initialized: %s:%s/db%s",
            settings.redis_host,
            settings.redis_port,
            settings.lock_redis_db,
        )
        return _pool

    except Exception as e:
        logger.warning(f"Failed to create Redis connection pool: {e}")
        _pool = None
        return None


def get_redis_client() -> Optional[Redis]:
    """Redis client on the shared pool, or None if Redis is unavailable."""
    pool = get_redis_pool()
    if pool is None:
        return None
    return Redis(connection_pool=pool)

