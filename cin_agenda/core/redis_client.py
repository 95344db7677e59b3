"""Redis client configuration and utilities."""

import json
from typing import Any, cast

import redis

from cin_agenda.config import Settings


def create_redis_client(config: Settings) -> redis.Redis:
    """
    Create a Redis client instance.

    Called once from the application lifespan; the client is kept on
    ``app.state`` rather than in a module global.

    Args:
        config: Application settings

    Returns:
        Redis client instance
    """
    return redis.Redis(
        host=config.redis_host,
        port=config.redis_port,
        username=config.redis_username,
        password=config.redis_password,
        decode_responses=config.redis_decode_responses,
        socket_connect_timeout=5,
        socket_keepalive=True,
        health_check_interval=30,
    )


def check_redis_connection(client: redis.Redis | None) -> bool:
    """
    Check if Redis connection is healthy.

    Returns:
        True if connection is healthy, False otherwise
    """
    if client is None:
        return False
    try:
        client.ping()
        return True
    except redis.RedisError:
        return False


class CacheManager:
    """Redis-based cache manager.

    Every operation fails open: a Redis outage degrades to cache misses.
    """

    def __init__(self, redis_client: redis.Redis):
        """Initialize cache manager with Redis client."""
        self.redis = redis_client

    def get_json(self, key: str) -> Any | None:
        """
        Get JSON value from cache and deserialize.

        Args:
            key: Cache key

        Returns:
            Deserialized object or None
        """
        try:
            value = cast(str | None, self.redis.get(key))
            if value:
                return json.loads(value)
            return None
        except (redis.RedisError, ValueError):
            return None

    def set_json(
        self,
        key: str,
        value: Any,
        ttl: int | None = None,
    ) -> bool:
        """
        Serialize and set JSON value in cache.

        Args:
            key: Cache key
            value: Value to serialize and cache
            ttl: Time to live in seconds

        Returns:
            True if successful, False otherwise
        """
        try:
            json_value = json.dumps(value, default=str)
            if ttl:
                self.redis.setex(key, ttl, json_value)
            else:
                self.redis.set(key, json_value)
            return True
        except (redis.RedisError, TypeError):
            return False

