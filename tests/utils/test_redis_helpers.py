from unittest.mock import AsyncMock, patch

import pytest

from helperkit.utils import redis_helpers

pytestmark = pytest.mark.asyncio


@pytest.fixture
def mock_redis_client():
    """Fixture to mock the redis.asyncio.Redis client."""
    mock_client = AsyncMock()
    mock_client.get.return_value = None
    mock_client.set.return_value = True
    return mock_client


@patch("helperkit.utils.redis_helpers.redis.Redis")
async def test_redis_connection_uses_settings(mock_redis):
    redis_helpers.redis_connection(db=2)

    _, kwargs = mock_redis.call_args
    assert kwargs["db"] == 2
    assert kwargs["decode_responses"] is True


async def test_ping_connection(mock_redis_client):
    assert await redis_helpers.ping_connection(mock_redis_client) is True
    mock_redis_client.ping.assert_awaited_once()


async def test_set_data_serializes_json(mock_redis_client):
    await redis_helpers.set_data(mock_redis_client, "k", {"a": 1})
    mock_redis_client.set.assert_awaited_with("k", '{"a": 1}')


async def test_set_ex_serializes_json(mock_redis_client):
    await redis_helpers.set_ex(mock_redis_client, "k", 60, [1, 2])
    mock_redis_client.setex.assert_awaited_with("k", 60, "[1, 2]")


async def test_get_data_hit_and_miss(mock_redis_client):
    mock_redis_client.get.return_value = '{"data": "some_value"}'
    assert await redis_helpers.get_data(mock_redis_client, "k") == {"data": "some_value"}

    mock_redis_client.get.return_value = None
    assert await redis_helpers.get_async(mock_redis_client, "k") == {}


async def test_hvals_and_mget_parse_each_item(mock_redis_client):
    mock_redis_client.hvals.return_value = ['{"a": 1}', "not json"]
    assert await redis_helpers.hvals(mock_redis_client, "h") == [{"a": 1}, {}]

    mock_redis_client.mget.return_value = ["1", None]
    assert await redis_helpers.mget(mock_redis_client, ("x", "y")) == [1, {}]
    mock_redis_client.mget.assert_awaited_with(["x", "y"])


async def test_hset_and_hmset(mock_redis_client):
    await redis_helpers.hset(mock_redis_client, "h", "f", {"v": True})
    mock_redis_client.hset.assert_awaited_with("h", "f", '{"v": true}')

    await redis_helpers.hmset(mock_redis_client, "h", {"a": "1"})
    mock_redis_client.hset.assert_awaited_with("h", mapping={"a": "1"})


async def test_hgetall_empty_is_none(mock_redis_client):
    mock_redis_client.hgetall.return_value = {}
    assert await redis_helpers.hgetall(mock_redis_client, "h") is None

    mock_redis_client.hgetall.return_value = {"a": "1"}
    assert await redis_helpers.hgetall(mock_redis_client, "h") == {"a": "1"}


async def test_zincrby_returns_int(mock_redis_client):
    mock_redis_client.zincrby.return_value = 3.0
    assert await redis_helpers.zincrby(mock_redis_client, "z", 1, "m") == 3


async def test_zadd_passes_mapping(mock_redis_client):
    await redis_helpers.zadd(mock_redis_client, "z", 5, "m")
    mock_redis_client.zadd.assert_awaited_with("z", {"m": 5})


async def test_range_with_scores_reports_absolute_rank(mock_redis_client):
    mock_redis_client.zrange.return_value = [("a", 1.0), ("b", 2.0)]
    result = await redis_helpers.zrange_with_scores(mock_redis_client, "z", 5, 6)
    assert result == [
        {"member": "a", "score": 1.0, "rank": 5},
        {"member": "b", "score": 2.0, "rank": 6},
    ]
    mock_redis_client.zrange.assert_awaited_with("z", 5, 6, withscores=True)

    mock_redis_client.zrevrange.return_value = [("b", 2.0)]
    result = await redis_helpers.zrevrange_with_scores(mock_redis_client, "z", 0, 0)
    assert result == [{"member": "b", "score": 2.0, "rank": 0}]


async def test_passthrough_commands(mock_redis_client):
    mock_redis_client.zcard.return_value = 4
    mock_redis_client.zrank.return_value = 1
    mock_redis_client.incr.return_value = 2

    assert await redis_helpers.zcard(mock_redis_client, "z") == 4
    assert await redis_helpers.zrank(mock_redis_client, "z", "m") == 1
    assert await redis_helpers.incr(mock_redis_client, "c") == 2
    await redis_helpers.delete(mock_redis_client, "c")
    mock_redis_client.delete.assert_awaited_with("c")
