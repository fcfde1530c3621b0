"""
Multi-Tenant Cache Service for the public catalog and storefront carts.

IMPORTANT: All cache keys MUST include the company id to prevent
cross-tenant data leakage.

Supports:
1. Redis (preferred for production)
2. In-memory fallback (for development/testing)

Usage:
    cache = get_cache()

    await cache.set_catalog_products(company_id, params, payload)
    payload = await cache.get_catalog_products(company_id, params)

    # After an admin edits products
    await cache.invalidate_catalog(company_id)
"""
import json
import hashlib
from typing import Any, Optional, Dict
from datetime import datetime, timedelta, timezone
from abc import ABC, abstractmethod
import asyncio
import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from graphpos.config import settings

logger = logging.getLogger(__name__)


class CacheBackend(ABC):
    """Abstract cache backend interface."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache."""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        """Set value in cache with TTL (seconds)."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete key from cache."""
        pass

    @abstractmethod
    async def clear_pattern(self, pattern: str) -> int:
        """Clear all keys matching pattern."""
        pass


class InMemoryCache(CacheBackend):
    """
    In-memory cache for development and tests.

    Values are JSON round-tripped so callers never share mutable state
    with the cache, matching what Redis does.
    """

    def __init__(self):
        self._cache: Dict[str, tuple[str, datetime]] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            if key in self._cache:
                value, expires_at = self._cache[key]
                if expires_at > datetime.now(timezone.utc):
                    return json.loads(value)
                del self._cache[key]
            return None

    async def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        async with self._lock:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=ttl)
            self._cache[key] = (json.dumps(value, default=str), expires_at)
            return True

    async def delete(self, key: str) -> bool:
        async with self._lock:
            if key in self._cache:
                del self._cache[key]
                return True
            return False

    async def clear_pattern(self, pattern: str) -> int:
        """Clear keys matching pattern (simple prefix match)."""
        async with self._lock:
            prefix = pattern.rstrip('*')
            keys_to_delete = [k for k in self._cache.keys() if k.startswith(prefix)]
            for key in keys_to_delete:
                del self._cache[key]
            return len(keys_to_delete)

    async def cleanup_expired(self) -> int:
        """Remove expired entries."""
        async with self._lock:
            now = datetime.now(timezone.utc)
            expired_keys = [
                k for k, (_, expires_at) in self._cache.items()
                if expires_at <= now
            ]
            for key in expired_keys:
                del self._cache[key]
            return len(expired_keys)


class RedisCache(CacheBackend):
    """
    Redis cache backend for production.

    Connection errors degrade to cache misses and are logged; the
    database stays the source of truth.
    """

    def __init__(self, redis_url: str):
        self._redis_url = redis_url
        self._client = None

    def _get_client(self):
        if self._client is None:
            self._client = redis.from_url(self._redis_url, decode_responses=True)
        return self._client

    async def get(self, key: str) -> Optional[Any]:
        try:
            value = await self._get_client().get(key)
        except RedisError as e:
            logger.warning("Redis get failed for %s: %s", key, e)
            return None
        if value:
            return json.loads(value)
        return None

    async def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        try:
            await self._get_client().set(key, json.dumps(value, default=str), ex=ttl)
            return True
        except RedisError as e:
            logger.warning("Redis set failed for %s: %s", key, e)
            return False

    async def delete(self, key: str) -> bool:
        try:
            await self._get_client().delete(key)
            return True
        except RedisError as e:
            logger.warning("Redis delete failed for %s: %s", key, e)
            return False

    async def clear_pattern(self, pattern: str) -> int:
        client = self._get_client()
        deleted = 0
        try:
            cursor = 0
            while True:
                cursor, keys = await client.scan(cursor, match=pattern, count=100)
                if keys:
                    await client.delete(*keys)
                    deleted += len(keys)
                if cursor == 0:
                    break
        except RedisError as e:
            logger.warning("Redis clear failed for %s: %s", pattern, e)
        return deleted


class CacheService:
    """
    Multi-Tenant Cache Service.

    Cache keys follow the format:

        {namespace}:{company_id}:{resource_type}:{identifier}

    Examples:
        graphpos:<company>:catalog:products:3f9a1c2b7d10
        graphpos:<company>:company:catalog
        graphpos:<cart_id>:public_catalog_cart:<company>   (carts are keyed by visitor)
    """

    def __init__(self, backend: CacheBackend, namespace: str = "graphpos"):
        self._backend = backend
        self._namespace = namespace

    @property
    def backend(self) -> CacheBackend:
        return self._backend

    def _make_key(self, tenant_id, key: str) -> str:
        """Create namespaced, tenant-isolated cache key."""
        if not tenant_id:
            logger.warning("Cache key created without tenant id: %s", key)
        return f"{self._namespace}:{tenant_id}:{key}"

    async def get(self, tenant_id, key: str) -> Optional[Any]:
        return await self._backend.get(self._make_key(tenant_id, key))

    async def set(self, tenant_id, key: str, value: Any, ttl: int = 3600) -> bool:
        return await self._backend.set(self._make_key(tenant_id, key), value, ttl)

    async def delete(self, tenant_id, key: str) -> bool:
        return await self._backend.delete(self._make_key(tenant_id, key))

    async def clear_pattern(self, tenant_id, pattern: str) -> int:
        return await self._backend.clear_pattern(self._make_key(tenant_id, pattern))

    # ==================== Catalog Cache ====================

    @staticmethod
    def hash_params(params: dict) -> str:
        """Create hash from query parameters."""
        sorted_params = sorted(params.items())
        param_str = json.dumps(sorted_params, sort_keys=True, default=str)
        return hashlib.md5(param_str.encode()).hexdigest()[:12]

    async def get_catalog_products(self, tenant_id, params: dict) -> Optional[dict]:
        key = f"catalog:products:{self.hash_params(params)}"
        return await self.get(tenant_id, key)

    async def set_catalog_products(
        self,
        tenant_id,
        params: dict,
        data: dict,
        ttl: Optional[int] = None
    ) -> bool:
        key = f"catalog:products:{self.hash_params(params)}"
        return await self.set(tenant_id, key, data, ttl or settings.CATALOG_CACHE_TTL)

    async def invalidate_catalog(self, tenant_id) -> int:
        """Invalidate all public catalog listings for a tenant."""
        return await self.clear_pattern(tenant_id, "catalog:*")

    # ==================== Company Cache ====================

    async def get_company(self, tenant_id) -> Optional[dict]:
        return await self.get(tenant_id, "company:catalog")

    async def set_company(self, tenant_id, data: dict, ttl: Optional[int] = None) -> bool:
        return await self.set(tenant_id, "company:catalog", data, ttl or settings.COMPANY_CACHE_TTL)

    async def invalidate_company(self, tenant_id) -> int:
        await self.delete(tenant_id, "company:catalog")
        return 1

    async def invalidate_storefront(self, tenant_id) -> int:
        """Invalidate every storefront cache of a tenant except carts."""
        count = await self.invalidate_catalog(tenant_id)
        count += await self.invalidate_company(tenant_id)
        return count


# Singleton cache instance
_cache_instance: Optional[CacheService] = None


def get_cache() -> CacheService:
    """Get the cache service singleton."""
    global _cache_instance

    if _cache_instance is None:
        if settings.REDIS_URL and settings.CACHE_ENABLED:
            backend = RedisCache(settings.REDIS_URL)
            logger.info("Cache initialized with Redis backend")
        else:
            backend = InMemoryCache()
            logger.info("Cache initialized with in-memory backend")

        _cache_instance = CacheService(backend)

    return _cache_instance
