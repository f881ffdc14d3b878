import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import RedisError

from skillforge.common.exceptions import StoreError, ValidationError
from skillforge.common.redis import get_redis_client, reset_redis_client
from skillforge.gamification.models import SkillLevel, UserProgress
from skillforge.gamification.repository import MemoryUserProgressStore, RedisUserProgressStore


@pytest.mark.asyncio
async def test_memory_store_returns_snapshots():
    store = MemoryUserProgressStore([UserProgress(user_id="user-1", total_points=10)])

    progress = await store.get("user-1")
    progress.total_points = 999
    progress.badges_earned.append("Mentor")

    stored = await store.get("user-1")
    assert stored.total_points == 10
    assert stored.badges_earned == []
    assert await store.get("nobody") is None


@pytest.mark.asyncio
async def test_memory_store_increment_and_badges():
    store = MemoryUserProgressStore([UserProgress(user_id="user-1", total_points=10)])

    assert await store.increment_points("user-1", 5) == 15
    assert await store.increment_points("user-2", 7) == 7

    await store.add_badges("user-1", ["Mentor", "Bug Hunter"])
    await store.add_badges("user-1", ["Mentor"])

    progress = await store.get("user-1")
    assert progress.total_points == 15
    assert progress.badges_earned == ["Mentor", "Bug Hunter"]


@pytest.mark.asyncio
async def test_memory_store_increments_counters():
    store = MemoryUserProgressStore([UserProgress(user_id="user-1", challenges_completed=2)])

    assert await store.increment_counter("user-1", "challenges_completed") == 3
    assert await store.increment_counter("user-1", "peer_reviews_given") == 1

    progress = await store.get("user-1")
    assert progress.challenges_completed == 3
    assert progress.peer_reviews_given == 1

    with pytest.raises(ValidationError):
        await store.increment_counter("user-1", "total_points")


@pytest.mark.asyncio
async def test_memory_store_creates_lock_on_first_write():
    store = MemoryUserProgressStore()
    assert store._lock is None

    await store.increment_points("user-1", 1)

    assert isinstance(store._lock, asyncio.Lock)
    assert store.lock is store._lock


@pytest.mark.asyncio
async def test_memory_store_rank():
    store = MemoryUserProgressStore([
        UserProgress(user_id="a", total_points=300),
        UserProgress(user_id="b", total_points=200),
        UserProgress(user_id="c", total_points=200),
    ])

    assert await store.get_rank("a") == 1
    assert await store.get_rank("b") == 2
    assert await store.get_rank("c") == 2
    assert await store.get_rank("nobody") is None


@pytest.mark.asyncio
async def test_memory_store_save_replaces_record():
    store = MemoryUserProgressStore()
    await store.save(UserProgress(user_id="user-1", streak_days=4))

    progress = await store.get("user-1")
    assert progress.streak_days == 4


@pytest.fixture
def redis_client():
    client = AsyncMock()
    client.pipeline = MagicMock()
    return client


@pytest.fixture
def redis_store(redis_client):
    return RedisUserProgressStore(redis_client, key_prefix="test:")


@pytest.mark.asyncio
async def test_redis_store_get_merges_leaderboard_and_badges(redis_store, redis_client):
    document = UserProgress(
        user_id="user-1",
        skill_levels={"python": SkillLevel("python", "Python", 3, 120)},
        total_points=0,
        badges_earned=["First Steps"],
    ).to_json()
    redis_client.get.return_value = document
    redis_client.zscore.return_value = 150.0
    redis_client.smembers.return_value = {"First Steps", "Bug Hunter"}
    redis_client.hgetall.return_value = {"challenges_completed": "3", "peer_reviews_given": "2"}

    progress = await redis_store.get("user-1")

    redis_client.get.assert_awaited_once_with("test:progress:user-1")
    redis_client.zscore.assert_awaited_once_with("test:leaderboard:points", "user-1")
    redis_client.smembers.assert_awaited_once_with("test:badges:user-1")
    redis_client.hgetall.assert_awaited_once_with("test:counters:user-1")
    assert progress.total_points == 150
    assert progress.badges_earned == ["First Steps", "Bug Hunter"]
    assert progress.skill_levels["python"].current_level == 3
    assert progress.challenges_completed == 3
    assert progress.peer_reviews_given == 2


@pytest.mark.asyncio
async def test_redis_store_get_missing(redis_store, redis_client):
    redis_client.get.return_value = None

    assert await redis_store.get("user-1") is None
    redis_client.zscore.assert_not_awaited()


@pytest.mark.asyncio
async def test_redis_store_save_uses_transaction(redis_store, redis_client):
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[True, 1, 1])
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=pipe)
    context.__aexit__ = AsyncMock(return_value=False)
    redis_client.pipeline.return_value = context

    progress = UserProgress(user_id="user-1", total_points=40, badges_earned=["Mentor"])
    await redis_store.save(progress)

    redis_client.pipeline.assert_called_once_with(transaction=True)
    key, payload = pipe.set.call_args[0]
    assert key == "test:progress:user-1"
    assert json.loads(payload)["total_points"] == 40
    pipe.zadd.assert_called_once_with("test:leaderboard:points", {"user-1": 40})
    pipe.sadd.assert_called_once_with("test:badges:user-1", "Mentor")
    pipe.hset.assert_called_once_with(
        "test:counters:user-1", mapping={"challenges_completed": 0, "peer_reviews_given": 0}
    )
    pipe.execute.assert_awaited_once()


@pytest.mark.asyncio
async def test_redis_store_increment_points(redis_store, redis_client):
    redis_client.zincrby.return_value = 42.0

    total = await redis_store.increment_points("user-1", 10)

    assert total == 42
    redis_client.zincrby.assert_awaited_once_with("test:leaderboard:points", 10, "user-1")


@pytest.mark.asyncio
async def test_redis_store_increment_counter(redis_store, redis_client):
    redis_client.hincrby.return_value = 4

    assert await redis_store.increment_counter("user-1", "peer_reviews_given") == 4
    redis_client.hincrby.assert_awaited_once_with("test:counters:user-1", "peer_reviews_given", 1)

    with pytest.raises(ValidationError):
        await redis_store.increment_counter("user-1", "badges_earned")


@pytest.mark.asyncio
async def test_redis_store_add_badges(redis_store, redis_client):
    await redis_store.add_badges("user-1", [])
    redis_client.sadd.assert_not_awaited()

    await redis_store.add_badges("user-1", ["Mentor", "Innovator"])
    redis_client.sadd.assert_awaited_once_with("test:badges:user-1", "Mentor", "Innovator")


@pytest.mark.asyncio
async def test_redis_store_rank(redis_store, redis_client):
    redis_client.zrevrank.return_value = 0
    assert await redis_store.get_rank("user-1") == 1

    redis_client.zrevrank.return_value = None
    assert await redis_store.get_rank("user-1") is None


@pytest.mark.asyncio
async def test_redis_errors_become_store_errors(redis_store, redis_client):
    redis_client.zincrby.side_effect = RedisError("connection refused")

    with pytest.raises(StoreError) as exc_info:
        await redis_store.increment_points("user-1", 10)

    assert isinstance(exc_info.value.original_exception, RedisError)


@pytest.mark.asyncio
async def test_shared_redis_client_is_reused_and_reset():
    client = AsyncMock()
    with patch("skillforge.common.redis.AsyncRedis.from_url", return_value=client) as from_url:
        await reset_redis_client()

        assert get_redis_client() is get_redis_client()
        from_url.assert_called_once()

        await reset_redis_client()
        client.aclose.assert_awaited_once()
