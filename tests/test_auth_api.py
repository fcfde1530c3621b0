"""Tests for authentication and tenant resolution over HTTP."""

from graphpos.core.permissions import AppRole

from conftest import TEST_PASSWORD, auth_headers, make_company, make_user


async def test_login_and_me(client, admin):
    response = await client.post("/api/v1/auth/login", json={"email": admin.email, "password": TEST_PASSWORD})
    assert response.status_code == 200
    tokens = response.json()
    assert tokens["token_type"] == "bearer"
    assert tokens["expires_in"] > 0

    me = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"})
    assert me.status_code == 200
    assert me.json()["email"] == admin.email
    assert me.json()["role"] == "admin"


async def test_login_wrong_password(client, admin):
    response = await client.post("/api/v1/auth/login", json={"email": admin.email, "password": "errada"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid email or password"


async def test_refresh(client, admin):
    login = await client.post("/api/v1/auth/login", json={"email": admin.email, "password": TEST_PASSWORD})
    response = await client.post("/api/v1/auth/refresh", json={"refresh_token": login.json()["refresh_token"]})
    assert response.status_code == 200

    # an access token is not a refresh token
    bad = await client.post("/api/v1/auth/refresh", json={"refresh_token": login.json()["access_token"]})
    assert bad.status_code == 401


async def test_invalid_token(client, db):
    response = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer nao-e-um-token"})
    assert response.status_code == 401


async def test_deactivated_user(client, db, company):
    user = await make_user(db, company, is_active=False)
    response = await client.get("/api/v1/auth/me", headers=auth_headers(user))
    assert response.status_code == 403


async def test_signup_creates_company_and_admin(client, db):
    payload = {
        "company_name": "Gráfica Rápida",
        "full_name": "Carla Lima",
        "email": "carla@graphpos.com.br",
        "password": "senha-forte-1",
    }
    response = await client.post("/api/v1/auth/signup", json=payload)
    assert response.status_code == 201

    token = response.json()["access_token"]
    company = await client.get("/api/v1/company", headers={"Authorization": f"Bearer {token}"})
    assert company.status_code == 200
    assert company.json()["slug"] == "grafica-rapida"

    duplicate = await client.post("/api/v1/auth/signup", json=payload)
    assert duplicate.status_code == 400


async def test_admin_creates_staff(client, admin_headers):
    response = await client.post(
        "/api/v1/auth/users",
        json={"email": "caixa@graphpos.com.br", "password": "12345678", "full_name": "Caixa", "role": "caixa"},
        headers=admin_headers,
    )
    assert response.status_code == 201
    assert response.json()["role"] == "caixa"

    users = await client.get("/api/v1/auth/users", headers=admin_headers)
    assert {u["email"] for u in users.json()} >= {"caixa@graphpos.com.br"}


async def test_staff_cannot_create_users(client, db, company):
    caixa = await make_user(db, company, AppRole.CAIXA.value)
    response = await client.post(
        "/api/v1/auth/users",
        json={"email": "x@graphpos.com.br", "password": "12345678", "full_name": "X"},
        headers=auth_headers(caixa),
    )
    assert response.status_code == 403


class TestTenantResolution:
    async def test_foreign_tenant_header_is_denied(self, client, db, admin_headers):
        other = await make_company(db, slug="concorrente")
        response = await client.get(
            "/api/v1/orders", headers={**admin_headers, "X-Tenant-ID": str(other.id)}
        )
        assert response.status_code == 403
        assert response.json()["detail"] == "Acesso negado a esta empresa"

    async def test_super_admin_may_pick_any_tenant(self, client, db):
        other = await make_company(db, slug="qualquer")
        root = await make_user(db, None, AppRole.SUPER_ADMIN.value)
        response = await client.get(
            "/api/v1/orders", headers={**auth_headers(root), "X-Tenant-Slug": "qualquer"}
        )
        assert response.status_code == 200
        assert response.json() == []

    async def test_super_admin_without_tenant(self, client, db):
        root = await make_user(db, None, AppRole.SUPER_ADMIN.value)
        response = await client.get("/api/v1/orders", headers=auth_headers(root))
        assert response.status_code == 400

    async def test_unknown_tenant(self, client, admin_headers):
        response = await client.get(
            "/api/v1/orders", headers={**admin_headers, "X-Tenant-Slug": "nao-existe"}
        )
        assert response.status_code == 404

    async def test_inactive_company(self, client, db, company, admin_headers):
        company.is_active = False
        await db.commit()
        response = await client.get("/api/v1/orders", headers=admin_headers)
        assert response.status_code == 403
        assert response.json()["detail"] == "Empresa inativa"
