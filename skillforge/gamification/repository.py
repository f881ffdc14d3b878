"""
User Progress Repository

This module defines the store contract the reward orchestrator reads and
updates learner progress through, with two implementations:
1. An in-memory store for development and tests
2. A Redis store that keeps point totals in a sorted set for ranking

Both make point and counter increments atomic; the engine itself never
does a read-modify-write on a total.
"""

import abc
import copy
import json
import asyncio
import datetime
from typing import Dict, Iterable, List, Optional

from redis.asyncio import Redis as AsyncRedis
from redis.exceptions import RedisError

from skillforge.common.config import get_config
from skillforge.common.exceptions import StoreError, ValidationError
from skillforge.common.logger import app_logger
from skillforge.common.redis import get_redis_client
from skillforge.gamification.models import UserProgress

# Set up module logger
logger = app_logger.getChild("gamification.repository")

# Activity counters kept on UserProgress
PROGRESS_COUNTERS = ("challenges_completed", "peer_reviews_given")


def _check_counter(counter: str) -> None:
    if counter not in PROGRESS_COUNTERS:
        raise ValidationError(f"Unknown progress counter: {counter}", {"counter": counter})


class UserProgressStore(abc.ABC):
    """
    Abstract base class for user progress stores.

    ``get`` returns a snapshot; mutating it does not change stored state.
    """

    @abc.abstractmethod
    async def get(self, user_id: str) -> Optional[UserProgress]:
        """
        Get a learner's progress.

        Args:
            user_id: User identifier

        Returns:
            Progress snapshot if found, None otherwise
        """
        pass

    @abc.abstractmethod
    async def save(self, progress: UserProgress) -> UserProgress:
        """Create or replace a learner's progress."""
        pass

    @abc.abstractmethod
    async def increment_points(self, user_id: str, delta: int) -> int:
        """
        Atomically add points to a learner's total.

        Args:
            user_id: User identifier
            delta: Points to add

        Returns:
            The new total
        """
        pass

    @abc.abstractmethod
    async def increment_counter(self, user_id: str, counter: str, delta: int = 1) -> int:
        """
        Atomically add to one of a learner's activity counters.

        Args:
            user_id: User identifier
            counter: One of ``PROGRESS_COUNTERS``
            delta: Amount to add

        Returns:
            The new counter value

        Raises:
            ValidationError: If the counter is unknown
        """
        pass

    @abc.abstractmethod
    async def add_badges(self, user_id: str, badge_names: Iterable[str]) -> None:
        """Record badges as earned, ignoring ones already held."""
        pass

    @abc.abstractmethod
    async def get_rank(self, user_id: str) -> Optional[int]:
        """
        Get a learner's 1-based rank by total points.

        Returns:
            Rank if the learner is ranked, None otherwise
        """
        pass


class MemoryUserProgressStore(UserProgressStore):
    """
    In-memory implementation of the UserProgressStore.

    Intended for development and testing. Writes are serialized with an
    asyncio lock, which makes increments atomic within one event loop. The
    lock is created on first use so it belongs to the loop that awaits it.
    """

    def __init__(self, initial_data: Optional[List[UserProgress]] = None):
        """
        Initialize the store with optional initial data.

        Args:
            initial_data: Optional list of progress records to start with
        """
        self._progress: Dict[str, UserProgress] = {}
        self._lock: Optional[asyncio.Lock] = None

        if initial_data:
            for progress in initial_data:
                self._progress[progress.user_id] = copy.deepcopy(progress)

    @property
    def lock(self) -> asyncio.Lock:
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    async def get(self, user_id: str) -> Optional[UserProgress]:
        progress = self._progress.get(user_id)
        return copy.deepcopy(progress) if progress is not None else None

    async def save(self, progress: UserProgress) -> UserProgress:
        async with self.lock:
            progress.updated_at = datetime.datetime.now()
            self._progress[progress.user_id] = copy.deepcopy(progress)
        return progress

    async def increment_points(self, user_id: str, delta: int) -> int:
        async with self.lock:
            progress = self._progress.get(user_id)
            if progress is None:
                progress = UserProgress(user_id=user_id)
                self._progress[user_id] = progress
            progress.total_points += delta
            progress.updated_at = datetime.datetime.now()
            return progress.total_points

    async def increment_counter(self, user_id: str, counter: str, delta: int = 1) -> int:
        _check_counter(counter)
        async with self.lock:
            progress = self._progress.setdefault(user_id, UserProgress(user_id=user_id))
            value = getattr(progress, counter) + delta
            setattr(progress, counter, value)
            progress.updated_at = datetime.datetime.now()
            return value

    async def add_badges(self, user_id: str, badge_names: Iterable[str]) -> None:
        async with self.lock:
            progress = self._progress.setdefault(user_id, UserProgress(user_id=user_id))
            for name in badge_names:
                if name not in progress.badges_earned:
                    progress.badges_earned.append(name)

    async def get_rank(self, user_id: str) -> Optional[int]:
        """Rank is one more than the number of learners with strictly more points."""
        progress = self._progress.get(user_id)
        if progress is None:
            return None
        ahead = sum(
            1 for other in self._progress.values()
            if other.total_points > progress.total_points
        )
        return ahead + 1


class RedisUserProgressStore(UserProgressStore):
    """
    Redis implementation of the UserProgressStore.

    Layout under the configured key prefix:
    - ``progress:{user_id}``: JSON progress document
    - ``leaderboard:points``: sorted set of point totals, the source of truth
      for ``total_points``
    - ``badges:{user_id}``: set of earned badge names
    - ``counters:{user_id}``: hash of activity counters, the source of truth
      for ``challenges_completed`` and ``peer_reviews_given``

    Redis failures surface as ``StoreError``.
    """

    def __init__(self, redis_client: Optional[AsyncRedis] = None, key_prefix: Optional[str] = None):
        """
        Initialize the Redis store.

        Args:
            redis_client: Async Redis client, defaults to the shared client
            key_prefix: Prefix for every key, defaults to the configured one
        """
        self.redis = redis_client or get_redis_client()
        self.key_prefix = key_prefix if key_prefix is not None else get_config().redis.key_prefix

    def _progress_key(self, user_id: str) -> str:
        return f"{self.key_prefix}progress:{user_id}"

    def _badges_key(self, user_id: str) -> str:
        return f"{self.key_prefix}badges:{user_id}"

    def _counters_key(self, user_id: str) -> str:
        return f"{self.key_prefix}counters:{user_id}"

    @property
    def _leaderboard_key(self) -> str:
        return f"{self.key_prefix}leaderboard:points"

    async def get(self, user_id: str) -> Optional[UserProgress]:
        try:
            raw = await self.redis.get(self._progress_key(user_id))
            if raw is None:
                return None
            score = await self.redis.zscore(self._leaderboard_key, user_id)
            badges = await self.redis.smembers(self._badges_key(user_id))
            counters = await self.redis.hgetall(self._counters_key(user_id))
        except RedisError as e:
            raise StoreError(f"Error loading progress for user {user_id}", e)

        progress = UserProgress.from_dict(json.loads(raw))
        if score is not None:
            progress.total_points = int(score)
        for counter, value in counters.items():
            if counter in PROGRESS_COUNTERS:
                setattr(progress, counter, int(value))
        known = set(progress.badges_earned)
        progress.badges_earned.extend(sorted(set(badges) - known))
        return progress

    async def save(self, progress: UserProgress) -> UserProgress:
        progress.updated_at = datetime.datetime.now()
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.set(self._progress_key(progress.user_id), progress.to_json())
                pipe.zadd(self._leaderboard_key, {progress.user_id: progress.total_points})
                if progress.badges_earned:
                    pipe.sadd(self._badges_key(progress.user_id), *progress.badges_earned)
                pipe.hset(
                    self._counters_key(progress.user_id),
                    mapping={counter: getattr(progress, counter) for counter in PROGRESS_COUNTERS}
                )
                await pipe.execute()
        except RedisError as e:
            raise StoreError(f"Error saving progress for user {progress.user_id}", e)

        logger.debug(f"Saved progress for user {progress.user_id}")
        return progress

    async def increment_points(self, user_id: str, delta: int) -> int:
        try:
            new_total = await self.redis.zincrby(self._leaderboard_key, delta, user_id)
        except RedisError as e:
            raise StoreError(f"Error incrementing points for user {user_id}", e)
        return int(new_total)

    async def increment_counter(self, user_id: str, counter: str, delta: int = 1) -> int:
        _check_counter(counter)
        try:
            value = await self.redis.hincrby(self._counters_key(user_id), counter, delta)
        except RedisError as e:
            raise StoreError(f"Error incrementing {counter} for user {user_id}", e)
        return int(value)

    async def add_badges(self, user_id: str, badge_names: Iterable[str]) -> None:
        names = list(badge_names)
        if not names:
            return
        try:
            await self.redis.sadd(self._badges_key(user_id), *names)
        except RedisError as e:
            raise StoreError(f"Error adding badges for user {user_id}", e)

    async def get_rank(self, user_id: str) -> Optional[int]:
        try:
            rank = await self.redis.zrevrank(self._leaderboard_key, user_id)
        except RedisError as e:
            raise StoreError(f"Error getting rank for user {user_id}", e)
        return rank + 1 if rank is not None else None
