"""Redis cache client"""
from typing import Callable
import logging

import redis

from app.config import RedisConfig, parse_port
from app.errors import CacheError

logger = logging.getLogger(__name__)


def connect_redis(cfg: RedisConfig, client_factory: Callable[..., redis.Redis] = redis.Redis) -> redis.Redis:
    """
    Create a Redis client and verify the server answers PING

    Args:
        cfg: Redis section of the configuration
        client_factory: Callable building the client (redis.Redis by default)

    Returns:
        Connected Redis client

    Raises:
        CacheError: If the port is invalid, or the server cannot be reached
            or rejects the credentials
    """
    try:
        port = parse_port(cfg.port)
    except ValueError as e:
        raise CacheError(f"Invalid Redis port {cfg.port!r}") from e

    client = client_factory(
        host=cfg.host,
        port=port,
        password=cfg.password or None,
        db=cfg.db,
        decode_responses=True,
    )
    try:
        client.ping()
    except redis.RedisError as e:
        client.close()
        raise CacheError(f"Failed to connect to Redis at {cfg.host}:{cfg.port}/{cfg.db}") from e

    logger.info(f"Connected to Redis at {cfg.host}:{cfg.port}/{cfg.db}")
    return client


def ping(client: redis.Redis) -> bool:
    """Return True when Redis answers PING"""
    try:
        return bool(client.ping())
    except redis.RedisError as e:
        logger.warning(f"Redis health check failed: {e}")
        return False
