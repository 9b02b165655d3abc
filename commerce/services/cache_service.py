"""
Read-through Redis cache for catalog and tenant lookups.

Entries live under ``{prefix}:tenant:{scope}:{module}:{key}`` where the
scope is the tenant id, or the slug for lookups made before the id is
known. Every operation degrades to a miss when Redis is down. Checkout
never reads from here.
"""

import json
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Optional, Union

import redis
from flask import Flask
from redis.exceptions import ConnectionError, RedisError, TimeoutError

logger = logging.getLogger(__name__)

TenantScope = Union[int, str]

DECIMAL_TAG = '__decimal__'
SCAN_BATCH = 100


def _encode(value: Any) -> str:
    """JSON with Decimals tagged so prices come back exact."""
    def fallback(obj):
        if isinstance(obj, Decimal):
            return {DECIMAL_TAG: str(obj)}
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        raise TypeError(f"Cannot cache {type(obj).__name__}")
    return json.dumps(value, default=fallback)


def _decode(raw: str) -> Any:
    return json.loads(raw, object_hook=lambda d: Decimal(d[DECIMAL_TAG]) if DECIMAL_TAG in d else d)


class CacheService:
    """Tenant-scoped cache-aside helper over a Redis client."""

    def __init__(self, app: Optional[Flask] = None, client: Optional[redis.Redis] = None):
        self.client: Optional[redis.Redis] = client
        self.enabled: bool = client is not None
        self.prefix: str = 'commerce'
        self.default_ttl: int = 60

        if app:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        self.enabled = app.config.get('CACHE_ENABLED', True)
        self.prefix = app.config.get('CACHE_KEY_PREFIX', self.prefix)
        self.default_ttl = app.config.get('CACHE_DEFAULT_TTL', self.default_ttl)

        if not self.enabled:
            logger.info("[CACHE] Disabled by configuration")
            return

        redis_url = app.config.get('REDIS_URL', 'redis://redis:6379/0')
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
            logger.info(f"[CACHE] Using Redis at {redis_url}")
        except (ConnectionError, TimeoutError, RedisError) as e:
            logger.warning(f"[CACHE] Redis unreachable ({e}); running without cache")
            self.enabled = False
            self.client = None

    def is_available(self) -> bool:
        if not self.enabled or self.client is None:
            return False
        try:
            self.client.ping()
        except RedisError:
            return False
        return True

    def key(self, tenant_scope: TenantScope, module: str, name: str) -> str:
        return f"{self.prefix}:tenant:{tenant_scope}:{module}:{name}"

    def _guarded(self, operation: str, default: Any, fn: Callable[[], Any]) -> Any:
        if not self.is_available():
            return default
        try:
            return fn()
        except (RedisError, TypeError, ValueError) as e:
            logger.warning(f"[CACHE] {operation} failed: {e}")
            return default

    def get(self, tenant_scope: TenantScope, module: str, name: str) -> Optional[Any]:
        def read():
            raw = self.client.get(self.key(tenant_scope, module, name))
            return None if raw is None else _decode(raw)
        return self._guarded('get', None, read)

    def set(self, tenant_scope: TenantScope, module: str, name: str, value: Any, ttl: Optional[int] = None) -> bool:
        def write():
            self.client.setex(self.key(tenant_scope, module, name), ttl or self.default_ttl, _encode(value))
            return True
        return self._guarded('set', False, write)

    def memoize(self, tenant_scope: TenantScope, module: str, name: str,
                loader_fn: Callable[[], Any], ttl: Optional[int] = None) -> Any:
        """Return the cached value or load, store and return it. None results are not stored."""
        hit = self.get(tenant_scope, module, name)
        if hit is not None:
            return hit
        value = loader_fn()
        if value is not None:
            self.set(tenant_scope, module, name, value, ttl)
        return value

    def invalidate_module(self, tenant_scope: TenantScope, module: str) -> int:
        """Drop every entry of one module for one tenant scope; returns the number of keys removed."""
        pattern = self.key(tenant_scope, module, '*')

        def purge():
            removed = 0
            cursor = 0
            while True:
                cursor, keys = self.client.scan(cursor, match=pattern, count=SCAN_BATCH)
                if keys:
                    pipe = self.client.pipeline()
                    for k in keys:
                        pipe.delete(k)
                    pipe.execute()
                    removed += len(keys)
                if cursor == 0:
                    return removed

        removed = self._guarded('invalidate', 0, purge)
        if removed:
            logger.info(f"[CACHE] Invalidated {removed} keys under {pattern}")
        return removed


_cache_service: Optional[CacheService] = None


def init_cache(app: Flask) -> None:
    global _cache_service
    _cache_service = CacheService(app)
    app.extensions['cache'] = _cache_service


def get_cache() -> CacheService:
    if _cache_service is None:
        raise RuntimeError("Cache not initialized.")
    return _cache_service
