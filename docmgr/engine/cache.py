"""
docmgr Redis Cache Layer — backing store for sessions when
``security.session_backend`` is ``redis``.

Sessions live under ``docmgr:session:{token}`` with a TTL equal to the
session timeout. Unlocked folders are a set under
``docmgr:session:{token}:folders``. All Redis data is ephemeral; losing it
only signs users out.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Optional, Set, TypeVar

logger = logging.getLogger("docmgr.engine.cache")

T = TypeVar("T")

FAILURE_THRESHOLD = 5
FAILURE_WINDOW_SECONDS = 30


class RedisCache:
    """
    Prefixed Redis operations that never raise.

    Every operation returns a miss value (None, False, empty set) when Redis
    is unreachable. ``FAILURE_THRESHOLD`` errors within
    ``FAILURE_WINDOW_SECONDS`` open the circuit: calls short-circuit to the
    miss value until the window has passed and a reconnect succeeds.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        prefix: str = "docmgr:",
        default_ttl: int = 300,
        client: Any = None,
    ):
        self._redis_url = redis_url
        self._prefix = prefix
        self._default_ttl = default_ttl
        self._client = client
        self._available = client is not None

        self._failure_count = 0
        self._first_failure_time = 0.0
        self._circuit_open = False

    def connect(self) -> bool:
        import redis

        try:
            client = redis.Redis.from_url(
                self._redis_url,
                decode_responses=True,
                socket_timeout=5,
                socket_connect_timeout=5,
                retry_on_timeout=True,
            )
            client.ping()
        except redis.RedisError as e:
            logger.warning(f"Redis unreachable at {self._redis_url} ({self._prefix}): {e}")
            self._available = False
            return False

        self._client = client
        self._available = True
        self._reset_circuit()
        logger.info(f"Redis connected ({self._prefix})")
        return True

    # ── Circuit breaker ──

    def _reset_circuit(self) -> None:
        self._circuit_open = False
        self._failure_count = 0

    def _check_circuit(self) -> bool:
        """True if a call may go to Redis now."""
        if not self._circuit_open:
            return self._available
        if time.time() - self._first_failure_time <= FAILURE_WINDOW_SECONDS:
            return False
        self._reset_circuit()
        return self.connect()

    def _record_failure(self, op: str, error: Exception) -> None:
        now = time.time()
        if self._failure_count == 0:
            self._first_failure_time = now
        self._failure_count += 1
        logger.debug(f"Redis {op} failed: {error}")

        elapsed = now - self._first_failure_time
        if self._failure_count >= FAILURE_THRESHOLD and elapsed <= FAILURE_WINDOW_SECONDS:
            self._circuit_open = True
            logger.error(f"Redis circuit breaker OPEN: {self._failure_count} failures in {elapsed:.1f}s")

    def _call(self, op: str, miss: T, fn: Callable[[Any], T]) -> T:
        if not self._check_circuit():
            return miss
        try:
            return fn(self._client)
        except Exception as e:
            self._record_failure(op, e)
            return miss

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    # ── Strings ──

    def get(self, key: str) -> Optional[str]:
        return self._call("GET", None, lambda c: c.get(self._key(key)))

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        def op(c):
            c.set(self._key(key), value, ex=ttl or self._default_ttl)
            return True
        return self._call("SET", False, op)

    def delete(self, key: str) -> bool:
        def op(c):
            c.delete(self._key(key))
            return True
        return self._call("DELETE", False, op)

    def expire(self, key: str, ttl: int) -> bool:
        return self._call("EXPIRE", False, lambda c: bool(c.expire(self._key(key), ttl)))

    def get_json(self, key: str) -> Optional[Any]:
        raw = self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Discarding non-JSON value at {self._key(key)}")
            return None

    def set_json(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        return self.set(key, json.dumps(value, default=str), ttl=ttl)

    # ── Sets (unlocked folders per session) ──

    def sadd(self, key: str, *values: str) -> bool:
        def op(c):
            c.sadd(self._key(key), *values)
            return True
        return self._call("SADD", False, op)

    def sismember(self, key: str, value: str) -> bool:
        return self._call("SISMEMBER", False, lambda c: bool(c.sismember(self._key(key), value)))

    def smembers(self, key: str) -> Set[str]:
        return self._call("SMEMBERS", set(), lambda c: set(c.smembers(self._key(key))))

    # ── Lifecycle ──

    def ping(self) -> bool:
        if self._client is None:
            return False
        try:
            return bool(self._client.ping())
        except Exception:
            return False

    def close(self) -> None:
        if self._client is not None:
            try:
                self._client.close()
            except Exception as e:
                logger.debug(f"Redis close failed: {e}")
            self._client = None
        self._available = False
        self._reset_circuit()

    @property
    def is_available(self) -> bool:
        return self._available and not self._circuit_open

    @property
    def is_circuit_open(self) -> bool:
        return self._circuit_open


def create_session_cache(redis_url: str, ttl: int = 86400) -> RedisCache:
    """Session cache under ``docmgr:session:``, connected if Redis is reachable."""
    cache = RedisCache(redis_url=redis_url, prefix="docmgr:session:", default_ttl=ttl)
    cache.connect()
    return cache
