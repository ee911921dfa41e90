"""
Thin async wrappers over Redis commands.

Values written through `set_data`/`set_ex`/`hset` are JSON-encoded; reads
through `get_data`/`hvals`/`mget` are parsed back with `safely_parse_json`, so a
miss or a malformed value comes back as `{}` instead of raising.
"""

import json
from typing import Any, Dict, List, Optional, Sequence

import redis.asyncio as redis
import structlog

from helperkit.core.config import settings
from helperkit.utils.common import is_empty_object, safely_parse_json

logger = structlog.get_logger(__name__)


def redis_connection(
    host: Optional[str] = None,
    port: Optional[int] = None,
    db: Optional[int] = None,
    **options: Any,
) -> redis.Redis:
    """
    Build an asyncio Redis client.

    Connection parameters default to REDIS_HOST / REDIS_PORT / REDIS_DB.
    Extra keyword arguments are passed to `redis.Redis` unchanged. The client
    connects lazily; call `ping_connection` to verify it eagerly.
    """
    options.setdefault("decode_responses", True)
    client = redis.Redis(
        host=host or settings.REDIS_HOST,
        port=port or settings.REDIS_PORT,
        db=settings.REDIS_DB if db is None else db,
        **options,
    )
    logger.info(
        "Redis client created",
        host=host or settings.REDIS_HOST,
        port=port or settings.REDIS_PORT,
    )
    return client


async def ping_connection(client: redis.Redis) -> bool:
    try:
        await client.ping()
        logger.info("Redis client connected")
        return True
    except redis.ConnectionError as e:
        logger.error("Something went wrong with redis", error=str(e))
        raise


async def set_ex(client: redis.Redis, key: str, seconds: int, value: Any) -> Any:
    return await client.setex(key, seconds, json.dumps(value))


async def set_data(client: redis.Redis, key: str, value: Any) -> Any:
    return await client.set(key, json.dumps(value))


async def get_data(client: redis.Redis, key: str) -> Any:
    data = await client.get(key)
    return safely_parse_json(data)


get_async = get_data


async def incr(client: redis.Redis, key: str) -> int:
    return await client.incr(key)


async def delete(client: redis.Redis, key: str) -> int:
    return await client.delete(key)


async def hvals(client: redis.Redis, hash_name: str) -> List[Any]:
    data = await client.hvals(hash_name)
    return [safely_parse_json(item) for item in data]


async def hset(client: redis.Redis, hash_name: str, key: str, value: Any) -> int:
    return await client.hset(hash_name, key, json.dumps(value))


async def mget(client: redis.Redis, keys: Sequence[str]) -> List[Any]:
    data = await client.mget(list(keys))
    return [safely_parse_json(item) for item in data]


async def hgetall(client: redis.Redis, hash_name: str) -> Optional[Dict[str, Any]]:
    data = await client.hgetall(hash_name)
    return None if is_empty_object(data) else data


async def hmset(client: redis.Redis, hash_name: str, mapping: Dict[str, Any]) -> int:
    # HMSET is deprecated server-side; HSET accepts a mapping since Redis 4
    return await client.hset(hash_name, mapping=mapping)


async def zadd(client: redis.Redis, key: str, score: float, member: str) -> int:
    return await client.zadd(key, {member: score})


async def zincrby(client: redis.Redis, key: str, score: float, member: str) -> int:
    incremented = await client.zincrby(key, score, member)
    return int(incremented)


async def zrange(client: redis.Redis, key: str, start: int, stop: int) -> List[str]:
    return await client.zrange(key, start, stop)


async def zrevrange(client: redis.Redis, key: str, start: int, stop: int) -> List[str]:
    return await client.zrevrange(key, start, stop)


def _ranked(pairs: Sequence[Any], start: int) -> List[Dict[str, Any]]:
    return [
        {"member": member, "score": score, "rank": start + index}
        for index, (member, score) in enumerate(pairs)
    ]


async def zrange_with_scores(
    client: redis.Redis, key: str, start: int, stop: int
) -> List[Dict[str, Any]]:
    """Members with scores and their absolute rank (start + offset)."""
    pairs = await client.zrange(key, start, stop, withscores=True)
    return _ranked(pairs, start)


async def zrevrange_with_scores(
    client: redis.Redis, key: str, start: int, stop: int
) -> List[Dict[str, Any]]:
    pairs = await client.zrevrange(key, start, stop, withscores=True)
    return _ranked(pairs, start)


async def zrank(client: redis.Redis, key: str, member: str) -> Optional[int]:
    return await client.zrank(key, member)


async def zrevrank(client: redis.Redis, key: str, member: str) -> Optional[int]:
    return await client.zrevrank(key, member)


async def zscore(client: redis.Redis, key: str, member: str) -> Optional[float]:
    return await client.zscore(key, member)


async def zrem(client: redis.Redis, key: str, member: str) -> int:
    return await client.zrem(key, member)


async def zcard(client: redis.Redis, key: str) -> int:
    return await client.zcard(key)
