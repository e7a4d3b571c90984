"""
Redis cache for company-scoped catalog reads.

Item list and lookup responses are read on every editor open and change
rarely, so they are cached per company and dropped on any item write.
Redis being down only costs a database query: every call degrades to a miss.
"""

import logging
import json
from typing import Any, Callable, Optional

import redis
from redis.exceptions import RedisError, ConnectionError, TimeoutError
from flask import Flask, current_app

logger = logging.getLogger(__name__)


class CacheService:
    """
    Redis-based cache with company isolation.

    Keys pattern: {prefix}:company:{company_id}:{module}:{key}
    """

    def __init__(self, app: Optional[Flask] = None):
        self.client: Optional[redis.Redis] = None
        self._enabled: bool = False
        self._prefix: str = ""

        if app:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        """Initialize Redis client from Flask app config."""
        self._enabled = app.config.get('CACHE_ENABLED', True)
        self._prefix = app.config.get('CACHE_KEY_PREFIX', 'invoicing')
        redis_url = app.config.get('REDIS_URL', 'redis://redis:6379/0')

        if not self._enabled:
            logger.info("[CACHE] Cache is DISABLED via config")
            return

        try:
            self.client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=3,
                socket_timeout=3,
                retry_on_timeout=True,
                health_check_interval=30
            )
            self.client.ping()
            logger.info(f"[CACHE] Redis connected: {redis_url}")
        except (ConnectionError, TimeoutError, RedisError) as e:
            logger.warning(f"[CACHE] Redis connection failed: {e}. Cache DISABLED.")
            self._enabled = False
            self.client = None

    def is_available(self) -> bool:
        return self._enabled and self.client is not None

    def _build_key(self, company_id: int, module: str, key: str) -> str:
        return f"{self._prefix}:company:{company_id}:{module}:{key}"

    def get(self, company_id: int, module: str, key: str) -> Optional[Any]:
        """Get a JSON value from cache, None on miss or error."""
        if not self.is_available():
            return None
        try:
            value = self.client.get(self._build_key(company_id, module, key))
            return None if value is None else json.loads(value)
        except (RedisError, json.JSONDecodeError) as e:
            logger.warning(f"[CACHE] Get error: {e}")
            return None

    def set(self, company_id: int, module: str, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Store a JSON-serialisable value with a TTL."""
        if not self.is_available():
            return False
        try:
            if ttl is None:
                ttl = current_app.config.get('CACHE_DEFAULT_TTL', 60)
            self.client.setex(self._build_key(company_id, module, key), ttl, json.dumps(value))
            return True
        except (RedisError, TypeError) as e:
            logger.warning(f"[CACHE] Set error: {e}")
            return False

    def memoize(self, company_id: int, module: str, key: str,
                loader_fn: Callable[[], Any], ttl: Optional[int] = None) -> Any:
        """Cache-aside: return the cached value or load, store and return it."""
        cached = self.get(company_id, module, key)
        if cached is not None:
            logger.debug(f"[CACHE] HIT {module}:{key} company={company_id}")
            return cached
        value = loader_fn()
        self.set(company_id, module, key, value, ttl)
        return value

    def invalidate_module(self, company_id: int, module: str) -> int:
        """Delete every key of one module for one company."""
        if not self.is_available():
            return 0
        try:
            pattern = self._build_key(company_id, module, '*')
            keys = list(self.client.scan_iter(match=pattern, count=100))
            if keys:
                self.client.delete(*keys)
                logger.info(f"[CACHE] INVALIDATE: {pattern} ({len(keys)} keys)")
            return len(keys)
        except RedisError as e:
            logger.warning(f"[CACHE] Invalidate error: {e}")
            return 0


_cache_service: Optional[CacheService] = None


def init_cache(app: Flask) -> None:
    """Initialize cache service singleton."""
    global _cache_service
    _cache_service = CacheService(app)
    app.extensions['cache'] = _cache_service


def get_cache() -> CacheService:
    """Get cache service instance."""
    if _cache_service is None:
        raise RuntimeError("Cache not initialized.")
    return _cache_service
