"""
Per-user last-activity storage shared by every session keeper of a deployment.

Supports an in-memory store for tests/local runs and a Redis-backed store so
that several processes agree on when each user was last active.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

logger = logging.getLogger(__name__)


class ActivityStore(Protocol):
    """Holds the epoch timestamp of each user's most recent activity."""

    def touch(self, uid: str, timestamp: Optional[float] = None) -> float:
        ...

    def last_activity(self, uid: str) -> Optional[float]:
        ...


@dataclass
class InMemoryActivityStore:
    values: Dict[str, float] = field(default_factory=dict)

    def touch(self, uid: str, timestamp: Optional[float] = None) -> float:
        self.values[uid] = time.time() if timestamp is None else timestamp
        return self.values[uid]

    def last_activity(self, uid: str) -> Optional[float]:
        return self.values.get(uid)

    def reset(self) -> None:
        self.values.clear()


@dataclass
class RedisActivityStore:
    """Redis-backed store, one key per user; last writer wins."""

    url: str
    prefix: str = "innonexus:last_activity"
    client: redis.Redis = field(init=False)

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def key(self, uid: str) -> str:
        return f"{self.prefix}:{uid}"

    def touch(self, uid: str, timestamp: Optional[float] = None) -> float:
        value = time.time() if timestamp is None else timestamp
        try:
            self.client.set(self.key(uid), repr(value))
        except redis_exceptions.ConnectionError:
            # Managed Redis drops idle connections; reconnect and retry once.
            self.client = redis.Redis.from_url(self.url)
            self.client.set(self.key(uid), repr(value))
        return value

    def last_activity(self, uid: str) -> Optional[float]:
        try:
            raw = self.client.get(self.key(uid))
        except redis_exceptions.ConnectionError:
            logger.warning("Redis unavailable while reading %s", self.key(uid))
            self.client = redis.Redis.from_url(self.url)
            return None
        if raw is None:
            return None
        return float(raw.decode("utf-8"))
