"""
Redis Client Utility Module

Provides the singleton async Redis client used by the Redis-backed
user-progress store.
"""

import logging
from typing import Optional

from redis.asyncio import Redis as AsyncRedis

from skillforge.common.config import get_config

logger = logging.getLogger(__name__)

_redis_client: Optional[AsyncRedis] = None


def get_redis_client() -> AsyncRedis:
    """
    Get the shared async Redis client, creating it on first use.

    Connections are opened lazily by redis-py, so this never blocks.
    """
    global _redis_client

    if _redis_client is None:
        redis_config = get_config().redis
        _redis_client = AsyncRedis.from_url(
            redis_config.url,
            socket_timeout=redis_config.socket_timeout,
            decode_responses=True
        )
        logger.info(f"Created Redis client for {redis_config.url}")

    return _redis_client


async def reset_redis_client() -> None:
    """
    Close and drop the shared client.

    The next call to get_redis_client() creates a fresh connection pool.
    """
    global _redis_client

    if _redis_client is not None:
        try:
            await _redis_client.aclose()
        finally:
            _redis_client = None
            logger.info("Redis client reset")
