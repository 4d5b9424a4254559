import pytest

import settings
from conftest import make_admin
from security import create_admin_token, hash_password, verify_password
from seed import ensure_bootstrap_admin


def test_password_hashing():
    hashed = hash_password("secret123")
    assert hashed.startswith("pbkdf2_sha256$")
    assert hashed != hash_password("secret123")
    assert verify_password("secret123", hashed)
    assert not verify_password("secret124", hashed)
    assert not verify_password("secret123", "not-a-hash")
    assert not verify_password("secret123", "pbkdf2_sha256$many$salt$digest")


def test_login(client, admin):
    res = client.post("/api/admin/login", json={"email": "Admin@Store.com", "password": "secret123"})
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["admin"] == {"id": str(admin["_id"]), "email": "admin@store.com", "role": "superadmin"}

    me = client.get("/api/admin/me", headers={"Authorization": f"Bearer {data['token']}"})
    assert me.json()["data"]["email"] == "admin@store.com"


@pytest.mark.parametrize("email,password", [("admin@store.com", "wrong"), ("nobody@store.com", "secret123")])
def test_login_rejects_bad_credentials(client, admin, email, password):
    res = client.post("/api/admin/login", json={"email": email, "password": password})
    assert res.status_code == 401
    assert res.json()["message"] == "Invalid credentials"


def test_first_admin_can_be_created_without_token(client, mongo):
    res = client.post("/api/admin/create", json={"email": "first@store.com", "password": "secret123", "role": "superadmin"})
    assert res.status_code == 201
    assert res.json()["data"]["role"] == "superadmin"
    stored = mongo["admin"].find_one({"email": "first@store.com"})
    assert "password" not in stored
    assert verify_password("secret123", stored["passwordHash"])


def test_later_admins_need_a_superadmin(client, mongo, admin, admin_headers):
    body = {"email": "staff@store.com", "password": "secret123"}
    assert client.post("/api/admin/create", json=body).status_code == 401

    staff = make_admin(mongo, "plain@store.com", role="admin")
    staff_headers = {"Authorization": f"Bearer {create_admin_token(str(staff['_id']), 'admin')}"}
    res = client.post("/api/admin/create", json=body, headers=staff_headers)
    assert res.status_code == 403
    assert res.json()["message"] == "Superadmin only"

    res = client.post("/api/admin/create", json=body, headers=admin_headers)
    assert res.status_code == 201
    assert res.json()["data"]["role"] == "admin"

    assert client.post("/api/admin/create", json=body, headers=admin_headers).status_code == 400


def test_create_admin_validates_password(client):
    res = client.post("/api/admin/create", json={"email": "first@store.com", "password": "123"})
    assert res.status_code == 400


def test_user_token_is_not_an_admin_session(client, user_headers):
    res = client.get("/api/admin/me", headers=user_headers)
    assert res.status_code == 401
    assert res.json()["message"] == "Invalid token payload"


def test_stats(client, mongo, admin_headers, user):
    res = client.get("/api/admin/stats", headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["data"] == {"users": 1, "stores": 0, "medicines": 0, "orders": 0, "pendingOrders": 0}


def test_seed_is_idempotent(client, mongo, admin_headers):
    first = client.post("/api/admin/seed", headers=admin_headers).json()["data"]
    assert first["store"]["name"] == settings.DEFAULT_STORE_NAME
    assert first["categoriesCreated"] == 5

    second = client.post("/api/admin/seed", headers=admin_headers).json()["data"]
    assert second["store"]["id"] == first["store"]["id"]
    assert second["categoriesCreated"] == 0
    assert mongo["store"].count_documents({}) == 1
    assert mongo["category"].count_documents({}) == 5


def test_bootstrap_admin(mongo, monkeypatch):
    monkeypatch.setattr(settings, "BOOTSTRAP_ADMIN_EMAIL", "Owner@Store.com")
    monkeypatch.setattr(settings, "BOOTSTRAP_ADMIN_PASSWORD", "secret123")
    assert ensure_bootstrap_admin(mongo) is True
    assert mongo["admin"].find_one({"email": "owner@store.com"})["role"] == "superadmin"
    assert ensure_bootstrap_admin(mongo) is False
    assert mongo["admin"].count_documents({}) == 1
