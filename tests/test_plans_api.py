"""Tests for subscription plans."""

from graphpos.core.permissions import AppRole

from conftest import auth_headers, make_user


async def _root_headers(db):
    return auth_headers(await make_user(db, None, AppRole.SUPER_ADMIN.value))


async def test_plan_lifecycle(client, db):
    headers = await _root_headers(db)

    response = await client.post(
        "/api/v1/plans",
        json={"name": "Anual", "price": "990.00", "billing_period": "yearly", "features": ["catalogo"]},
        headers=headers,
    )
    assert response.status_code == 201
    plan = response.json()
    assert plan["period_days"] == 365

    await client.post("/api/v1/plans", json={"name": "Mensal", "price": "99.00"}, headers=headers)

    public = await client.get("/api/v1/plans")
    assert [p["name"] for p in public.json()] == ["Mensal", "Anual"]

    updated = await client.put(f"/api/v1/plans/{plan['id']}", json={"billing_period": "monthly"}, headers=headers)
    assert updated.json()["period_days"] == 30

    assert (await client.delete(f"/api/v1/plans/{plan['id']}", headers=headers)).status_code == 204
    public = await client.get("/api/v1/plans")
    assert [p["name"] for p in public.json()] == ["Mensal"]

    # deactivated plans stay readable by id
    assert (await client.get(f"/api/v1/plans/{plan['id']}")).json()["is_active"] is False


async def test_store_admin_cannot_write_plans(client, admin_headers):
    response = await client.post("/api/v1/plans", json={"name": "Grátis", "price": "0"}, headers=admin_headers)
    assert response.status_code == 403
