"""Tests for product management and the public catalog."""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from graphpos.config import settings
from graphpos.core.permissions import AppRole
from graphpos.services.cache_service import get_cache
from graphpos.services.cart_service import PUBLIC_CART_UPDATED_EVENT, CartRepository
from graphpos.services.catalog_service import listing_ttl

from conftest import auth_headers, make_company, make_user


async def _create_product(client, headers, **fields):
    payload = {"name": "Cartão de Visita", "final_price": "0.30", "catalog_visible": True}
    payload.update(fields)
    response = await client.post("/api/v1/products", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


class TestProducts:
    async def test_slug_and_visibility_keys(self, client, admin_headers):
        first = await _create_product(client, admin_headers)
        second = await _create_product(client, admin_headers)

        assert first["slug"] == "cartao-de-visita"
        assert second["slug"] == "cartao-de-visita-2"
        assert first["catalog_visible"] is True
        assert first["catalog_enabled"] is True
        assert first["show_in_catalog"] is True

    @pytest.mark.parametrize("flags,visible", [
        ({"catalog_enabled": True}, True),
        ({"show_in_catalog": True, "catalog_visible": False}, True),
        ({"catalog_enabled": False}, False),
    ])
    async def test_legacy_visibility_flags(self, client, admin_headers, flags, visible):
        payload = {"name": "Banner", "final_price": "80"}
        payload.update(flags)
        response = await client.post("/api/v1/products", json=payload, headers=admin_headers)
        assert response.json()["catalog_visible"] is visible

    async def test_update_visibility_with_legacy_key(self, client, admin_headers):
        product = await _create_product(client, admin_headers)
        response = await client.put(
            f"/api/v1/products/{product['id']}", json={"show_in_catalog": False}, headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["catalog_visible"] is False

    async def test_legacy_flags_survive_reread(self, client, admin_headers):
        product = await _create_product(client, admin_headers, catalog_visible=False)
        await client.put(
            f"/api/v1/products/{product['id']}",
            json={"catalog_enabled": True, "show_in_catalog": True},
            headers=admin_headers,
        )

        response = await client.get(f"/api/v1/products/{product['id']}", headers=admin_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["catalog_visible"] is True
        assert body["catalog_enabled"] is True
        assert body["show_in_catalog"] is True

    async def test_overlapping_tiers_rejected(self, client, admin_headers):
        response = await client.post(
            "/api/v1/products",
            json={
                "name": "Flyer",
                "price_tiers": [
                    {"min_quantity": 1, "max_quantity": 100, "price": "0.50"},
                    {"min_quantity": 50, "max_quantity": None, "price": "0.30"},
                ],
            },
            headers=admin_headers,
        )
        assert response.status_code == 400

    async def test_staff_cannot_create(self, client, db, company):
        headers = auth_headers(await make_user(db, company, AppRole.ATENDENTE.value))
        response = await client.post("/api/v1/products", json={"name": "X"}, headers=headers)
        assert response.status_code == 403

    async def test_delete_is_soft(self, client, admin_headers):
        product = await _create_product(client, admin_headers)
        response = await client.delete(f"/api/v1/products/{product['id']}", headers=admin_headers)
        assert response.status_code == 204

        listing = await client.get("/api/v1/products", headers=admin_headers)
        assert listing.json()["total"] == 0
        inactive = await client.get("/api/v1/products", params={"is_active": False}, headers=admin_headers)
        assert inactive.json()["items"][0]["catalog_visible"] is False


class TestPublicCatalog:
    async def test_company_is_cached(self, client, company):
        first = await client.get(f"/api/v1/catalog/{company.slug}")
        second = await client.get(f"/api/v1/catalog/{company.slug}")

        assert first.status_code == 200
        assert first.headers["X-Cache"] == "MISS"
        assert second.headers["X-Cache"] == "HIT"
        assert "X-Response-Time" in second.headers
        assert first.json()["catalog"]["show_prices"] is True

    async def test_unknown_or_inactive_store(self, client, db):
        assert (await client.get("/api/v1/catalog/nao-existe")).status_code == 404

        closed = await make_company(db, slug="fechada", is_active=False)
        response = await client.get(f"/api/v1/catalog/{closed.slug}/products")
        assert response.status_code == 404

    async def test_only_visible_products_in_order(self, client, admin_headers, company):
        await _create_product(client, admin_headers, name="Adesivo")
        await _create_product(client, admin_headers, name="Banner", catalog_featured=True)
        await _create_product(client, admin_headers, name="Oculto", catalog_visible=False)

        response = await client.get(f"/api/v1/catalog/{company.slug}/products")
        assert response.status_code == 200
        assert [p["name"] for p in response.json()["items"]] == ["Banner", "Adesivo"]

    async def test_listing_cache_invalidated_by_edit(self, client, admin_headers, company):
        product = await _create_product(client, admin_headers)
        url = f"/api/v1/catalog/{company.slug}/products"

        assert (await client.get(url)).headers["X-Cache"] == "MISS"
        assert (await client.get(url)).headers["X-Cache"] == "HIT"

        await client.put(
            f"/api/v1/products/{product['id']}", json={"catalog_price": "0.25"}, headers=admin_headers
        )
        response = await client.get(url)
        assert response.headers["X-Cache"] == "MISS"
        assert Decimal(response.json()["items"][0]["price"]) == Decimal("0.25")

    async def test_listing_expires_when_promotion_ends(self, client, admin_headers, company):
        ends_at = datetime.now(timezone.utc) + timedelta(seconds=2)
        await _create_product(
            client, admin_headers, promo_price="0.20", promo_end_at=ends_at.isoformat()
        )
        url = f"/api/v1/catalog/{company.slug}/products"

        first = (await client.get(url)).json()["items"][0]
        assert first["promotion_active"] is True
        assert Decimal(first["price"]) == Decimal("0.20")

        await asyncio.sleep(2.5)

        response = await client.get(url)
        second = response.json()["items"][0]
        assert response.headers["X-Cache"] == "MISS"
        assert second["promotion_active"] is False
        assert Decimal(second["price"]) == Decimal("0.30")

    async def test_product_detail_by_slug(self, client, admin_headers, company):
        await _create_product(client, admin_headers, catalog_min_order=100)
        response = await client.get(f"/api/v1/catalog/{company.slug}/products/cartao-de-visita")
        assert response.status_code == 200
        assert response.json()["min_order_quantity"] == 100

        missing = await client.get(f"/api/v1/catalog/{company.slug}/products/nada")
        assert missing.status_code == 404


class TestListingTtl:
    NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

    def _product(self, **fields):
        defaults = {"promo_price": Decimal("5.00"), "promo_start_at": None, "promo_end_at": None}
        defaults.update(fields)
        return SimpleNamespace(**defaults)

    def test_without_promotions(self):
        assert listing_ttl([self._product(promo_price=None)], now=self.NOW) == settings.CATALOG_CACHE_TTL

    def test_capped_at_next_boundary(self):
        products = [
            self._product(promo_start_at=self.NOW + timedelta(seconds=90)),
            self._product(promo_end_at=self.NOW + timedelta(seconds=45)),
            self._product(promo_end_at=self.NOW - timedelta(days=1)),
        ]
        assert listing_ttl(products, now=self.NOW) == 45

    def test_naive_boundary_is_utc(self):
        product = self._product(promo_end_at=datetime(2024, 6, 1, 12, 1))
        assert listing_ttl([product], now=self.NOW) == 60

    def test_imminent_boundary_skips_cache(self):
        product = self._product(promo_end_at=self.NOW + timedelta(milliseconds=300))
        assert listing_ttl([product], now=self.NOW) == 0


class TestCartApi:
    async def test_add_update_remove(self, client, company):
        url = f"/api/v1/catalog/{company.slug}/cart/visitante-1"
        line = {"product_id": "p1", "name": "Cartão", "unit_price": "0.25", "quantity": 100}

        response = await client.post(f"{url}/items", json=line)
        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 100
        assert Decimal(body["subtotal"]) == Decimal("25.00")
        assert body["meets_minimum"] is False

        response = await client.post(f"{url}/items", json={**line, "quantity": 150})
        assert response.json()["items"][0]["quantity"] == 250
        assert response.json()["meets_minimum"] is True

        response = await client.patch(f"{url}/items/p1", json={"quantity": 10})
        assert response.json()["count"] == 10

        response = await client.delete(f"{url}/items/p1")
        assert response.json()["items"] == []

    async def test_replace_and_clear(self, client, company):
        url = f"/api/v1/catalog/{company.slug}/cart/visitante-2"
        response = await client.put(url, json={"items": [
            {"product_id": "p1", "name": "Cartão", "unit_price": "1", "quantity": 2},
            {"product_id": "p2", "name": "", "unit_price": "1"},
        ]})
        assert [i["product_id"] for i in response.json()["items"]] == ["p1"]

        assert (await client.delete(url)).status_code == 204
        assert (await client.get(url)).json()["items"] == []

    async def test_writes_notify_visitor_listeners(self, client, company):
        listener = AsyncMock()
        CartRepository(get_cache(), owner_id="visitante-3").subscribe(listener)
        url = f"/api/v1/catalog/{company.slug}/cart/visitante-3"
        line = {"product_id": "p1", "name": "Cartão", "unit_price": "0.25", "quantity": 3}

        await client.post(f"{url}/items", json=line)
        await client.patch(f"{url}/items/p1", json={"quantity": 5})
        await client.delete(url)

        assert listener.await_count == 3
        listener.assert_awaited_with(PUBLIC_CART_UPDATED_EVENT, {"company_id": str(company.id)})

    async def test_invalid_line(self, client, company):
        response = await client.post(
            f"/api/v1/catalog/{company.slug}/cart/v/items",
            json={"product_id": "p1", "name": "  ", "unit_price": "1"},
        )
        assert response.status_code == 400
