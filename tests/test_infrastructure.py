"""Tests for security helpers, the cache layer and the live order channel."""

import asyncio
import json
import uuid
from datetime import timedelta

from sqlalchemy import select

from graphpos.core.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    get_password_hash,
    verify_access_token,
    verify_password,
    verify_refresh_token,
)
from graphpos.database import get_db_session
from graphpos.models.company import Company
from graphpos.services.cache_service import CacheService, InMemoryCache, get_cache
from graphpos.services.order_events import (
    ORDER_STATUS_CHANGED,
    OrderEventBroker,
    format_sse,
    stream_events,
)


class TestSecurity:
    def test_password_hash(self):
        hashed = get_password_hash("Senha@123")
        assert hashed != "Senha@123"
        assert verify_password("Senha@123", hashed)
        assert not verify_password("outra", hashed)
        assert not verify_password("Senha@123", "nao-e-hash")

    def test_token_types(self):
        user_id = uuid.uuid4()
        access = create_access_token(user_id, additional_claims={"role": "admin"})
        refresh = create_refresh_token(user_id)

        assert verify_access_token(access) == str(user_id)
        assert verify_access_token(refresh) is None
        assert verify_refresh_token(refresh) == str(user_id)
        assert decode_token(access)["role"] == "admin"

    def test_expired_token(self):
        token = create_access_token("u1", expires_delta=timedelta(seconds=-1))
        assert verify_access_token(token) is None


class TestCache:
    async def test_keys_are_tenant_scoped(self):
        cache = CacheService(InMemoryCache())
        params = {"search": "", "featured": None}
        await cache.set_catalog_products("t1", params, {"items": [], "total": 0})

        assert await cache.get_catalog_products("t1", params) == {"items": [], "total": 0}
        assert await cache.get_catalog_products("t2", params) is None

    async def test_invalidate_storefront_keeps_other_keys(self):
        cache = CacheService(InMemoryCache())
        await cache.set_catalog_products("t1", {"search": "x"}, {"total": 1})
        await cache.set_company("t1", {"name": "Loja"})
        await cache.set("t1", "outro", [1, 2])

        await cache.invalidate_storefront("t1")

        assert await cache.get_catalog_products("t1", {"search": "x"}) is None
        assert await cache.get_company("t1") is None
        assert await cache.get("t1", "outro") == [1, 2]

    async def test_values_are_copies(self):
        cache = CacheService(InMemoryCache())
        value = {"items": [1]}
        await cache.set("t1", "k", value)
        value["items"].append(2)
        assert await cache.get("t1", "k") == {"items": [1]}

    async def test_expired_entries(self):
        backend = InMemoryCache()
        await backend.set("k", 1, ttl=-1)
        assert await backend.get("k") is None
        await backend.set("k2", 1, ttl=-1)
        assert await backend.cleanup_expired() == 1

    def test_singleton_uses_memory_without_redis(self):
        assert isinstance(get_cache().backend, InMemoryCache)
        assert get_cache() is get_cache()


class TestOrderChannel:
    async def test_events_are_per_tenant(self):
        broker = OrderEventBroker()
        mine = await broker.subscribe("t1")
        other = await broker.subscribe("t2")

        reached = await broker.publish("t1", ORDER_STATUS_CHANGED, uuid.uuid4())

        assert reached == 1
        assert mine.get_nowait()["type"] == ORDER_STATUS_CHANGED
        assert other.empty()

    async def test_full_queue_drops_oldest(self):
        broker = OrderEventBroker(max_queue_size=2)
        queue = await broker.subscribe("t1")
        ids = [uuid.uuid4() for _ in range(3)]
        for order_id in ids:
            await broker.publish("t1", ORDER_STATUS_CHANGED, order_id)

        received = [queue.get_nowait()["order_id"] for _ in range(queue.qsize())]
        assert received == [str(ids[1]), str(ids[2])]

    async def test_stream_frames_and_cleanup(self):
        broker = OrderEventBroker()
        order_id = uuid.uuid4()
        stream = stream_events(broker, "t1", heartbeat_seconds=0.05)

        assert await stream.__anext__() == ": connected\n\n"
        assert broker.subscriber_count("t1") == 1

        await broker.publish("t1", ORDER_STATUS_CHANGED, order_id)
        frame = await stream.__anext__()
        assert frame.startswith(f"event: {ORDER_STATUS_CHANGED}\n")
        payload = json.loads(frame.split("data: ", 1)[1])
        assert payload["order_id"] == str(order_id)

        assert await asyncio.wait_for(stream.__anext__(), timeout=1) == ": keep-alive\n\n"

        await stream.aclose()
        assert broker.subscriber_count("t1") == 0

    def test_format_sse(self):
        frame = format_sse({"type": "order_created", "order_id": "1"})
        assert frame == 'event: order_created\ndata: {"type": "order_created", "order_id": "1"}\n\n'


async def test_health_and_root(client):
    health = await client.get("/health")
    assert health.status_code == 200
    assert health.json()["checks"]["database"] == "connected"

    root = await client.get("/")
    assert root.status_code == 200


async def test_session_outside_requests_commits(db):
    async with get_db_session() as session:
        session.add(Company(name="Gráfica Norte", slug="grafica-norte"))

    saved = (await db.execute(select(Company).where(Company.slug == "grafica-norte"))).scalar_one()
    assert saved.name == "Gráfica Norte"
