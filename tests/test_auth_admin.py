"""Staff login, tokens, password reset and the admin tenant / user / blacklist routes."""

from datetime import datetime, timedelta

from talent_portal.core.auth import create_access_token, hash_password, verify_password
from talent_portal.services.mongo_service import UserService


def test_password_hashing():
    hashed = hash_password("password123")
    assert hashed != "password123"
    assert verify_password("password123", hashed)
    assert not verify_password("wrong", hashed)


def test_login_and_me(client, make_user):
    user, _ = make_user("recruiter", holding_id="h1")

    response = client.post("/api/auth/login", json={"email": "recruiter@example.com", "password": "password123"})
    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["user_id"] == user["user_id"]
    assert body["role"] == "recruiter"

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"}).json()
    assert me["email"] == "recruiter@example.com"
    assert me["holdingId"] == "h1"
    assert me["assignedStores"] == []
    assert "passwordHash" not in me


def test_login_failures(client, make_user):
    user, _ = make_user("recruiter")

    wrong = client.post("/api/auth/login", json={"email": "recruiter@example.com", "password": "nope"})
    assert wrong.status_code == 401
    assert wrong.json() == {"success": False, "error": "Invalid email or password", "type": "HTTPException"}

    unknown = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "password123"})
    assert unknown.status_code == 401

    UserService().update(user["user_id"], {"isActive": False})
    inactive = client.post("/api/auth/login", json={"email": "recruiter@example.com", "password": "password123"})
    assert inactive.status_code == 403


def test_invalid_and_expired_tokens(client, make_user):
    user, _ = make_user("recruiter")

    assert client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"}).status_code == 401

    expired = create_access_token({"sub": user["user_id"]}, expires_delta=timedelta(minutes=-5))
    assert client.get("/api/auth/me", headers={"Authorization": f"Bearer {expired}"}).status_code == 401

    orphan = create_access_token({"sub": "64b7f0c2a1b2c3d4e5f60718"})
    assert client.get("/api/auth/me", headers={"Authorization": f"Bearer {orphan}"}).status_code == 401


def test_deactivated_user_token_is_refused(client, make_user):
    user, headers = make_user("recruiter")
    UserService().update(user["user_id"], {"isActive": False})
    assert client.get("/api/auth/me", headers=headers).status_code == 403


def test_reset_password(client, make_user, mongo_db):
    user, _ = make_user("recruiter")

    unknown = client.post("/api/auth/reset-password", json={"email": "ghost@example.com"})
    known = client.post("/api/auth/reset-password", json={"email": "recruiter@example.com"})

    assert unknown.status_code == known.status_code == 200
    assert unknown.json() == known.json()
    assert UserService().get(user["user_id"])["resetToken"]
    assert mongo_db["email_log"].count_documents({"template": "password_reset"}) == 1


def test_reset_password_confirm(client, make_user, mongo_db):
    user, _ = make_user("recruiter")
    client.post("/api/auth/reset-password", json={"email": "recruiter@example.com"})
    token = UserService().get(user["user_id"])["resetToken"]

    assert client.post("/api/auth/reset-password/confirm",
                       json={"token": token, "password": "short"}).status_code == 422

    response = client.post("/api/auth/reset-password/confirm", json={"token": token, "password": "newpassword1"})
    assert response.status_code == 200

    stored = UserService().get(user["user_id"])
    assert "resetToken" not in stored
    assert verify_password("newpassword1", stored["passwordHash"])
    assert client.post("/api/auth/login", json={"email": "recruiter@example.com",
                                                 "password": "newpassword1"}).status_code == 200

    reused = client.post("/api/auth/reset-password/confirm", json={"token": token, "password": "another123"})
    assert reused.status_code == 400


def test_reset_password_confirm_expired(client, make_user, mongo_db):
    user, _ = make_user("recruiter")
    UserService().update(user["user_id"], {"resetToken": "old-token",
                                           "resetTokenExpiry": datetime.utcnow() - timedelta(minutes=1)})

    response = client.post("/api/auth/reset-password/confirm", json={"token": "old-token", "password": "newpassword1"})

    assert response.status_code == 400
    assert response.json()["expired"] is True
    assert verify_password("password123", UserService().get(user["user_id"])["passwordHash"])
    assert "resetToken" not in UserService().get(user["user_id"])


# ============================================================
# ADMIN
# ============================================================

def test_tenant_crud(client, make_user):
    _, headers = make_user("admin")

    holding = client.post("/api/admin/holdings", headers=headers, json={"nombre": "Grupo Norte"})
    assert holding.status_code == 201
    holding_id = holding.json()["id"]

    assert client.get("/api/admin/holdings/grupo-norte", headers=headers).json()["id"] == holding_id
    assert client.post("/api/admin/holdings", headers=headers,
                       json={"nombre": "Otro", "slug": "grupo-norte"}).status_code == 400

    marca_id = client.post("/api/admin/marcas", headers=headers,
                           json={"holdingId": holding_id, "nombre": "Chinawok", "code": "CHW"}).json()["id"]
    tienda_id = client.post("/api/admin/tiendas", headers=headers, json={
        "marcaId": marca_id, "nombre": "Chinawok Jockey", "distrito": "Surco",
        "coordinates": {"lat": -12.08, "lng": -76.97}
    }).json()["id"]

    marcas = client.get("/api/admin/marcas", headers=headers, params={"holdingId": holding_id}).json()["marcas"]
    assert [m["slug"] for m in marcas] == ["chinawok"]

    tiendas = client.get("/api/admin/tiendas", headers=headers, params={"marcaId": marca_id}).json()["tiendas"]
    assert tiendas[0]["id"] == tienda_id
    assert tiendas[0]["holdingId"] == holding_id
    assert tiendas[0]["coordinates"] == {"lat": -12.08, "lng": -76.97}

    assert client.post("/api/admin/marcas", headers=headers,
                       json={"holdingId": "64b7f0c2a1b2c3d4e5f60718", "nombre": "X"}).status_code == 404


def test_admin_routes_require_admin(client, make_user):
    _, headers = make_user("recruiter")
    assert client.get("/api/admin/holdings", headers=headers).status_code == 403


def test_user_management_is_scoped(client, make_user):
    _, admin_headers = make_user("admin", holding_id="h1")
    make_user("recruiter", email="other@example.com", holding_id="h2")

    created = client.post("/api/admin/users", headers=admin_headers, json={
        "email": "sm@example.com", "password": "password123", "role": "store_manager",
        "assignedStore": {"tiendaId": "t1", "tiendaNombre": "Larco"}
    })
    assert created.status_code == 201
    new_id = created.json()["id"]

    stored = UserService().get(new_id)
    assert stored["holdingId"] == "h1"
    assert stored["displayName"] == "sm"
    assert verify_password("password123", stored["passwordHash"])

    listed = client.get("/api/admin/users", headers=admin_headers, params={"holdingId": "h2"}).json()["users"]
    assert sorted(u["email"] for u in listed) == ["admin@example.com", "sm@example.com"]
    assert all("passwordHash" not in u for u in listed)

    assert client.post("/api/admin/users", headers=admin_headers, json={
        "email": "sm@example.com", "password": "password123", "role": "store_manager"
    }).status_code == 400
    assert client.post("/api/admin/users", headers=admin_headers, json={
        "email": "x@example.com", "password": "short", "role": "recruiter"
    }).status_code == 422

    assert client.delete(f"/api/admin/users/{new_id}", headers=admin_headers).status_code == 200
    assert client.delete(f"/api/admin/users/{new_id}", headers=admin_headers).status_code == 404


def test_holding_admin_cannot_escalate_or_cross_holdings(client, make_user):
    _, admin_headers = make_user("admin", holding_id="h1")
    _, super_headers = make_user("super_admin")
    other, _ = make_user("recruiter", email="other@example.com", holding_id="h2")
    root, _ = make_user("super_admin", email="root@example.com", holding_id="h1")

    escalate = client.post("/api/admin/users", headers=admin_headers, json={
        "email": "boss@example.com", "password": "password123", "role": "super_admin", "holdingId": "h2"
    })
    assert escalate.status_code == 403
    assert escalate.json()["type"] == "ForbiddenException"

    assert client.post("/api/admin/users", headers=admin_headers, json={
        "email": "boss@example.com", "password": "password123", "role": "super_admin"
    }).status_code == 403
    assert client.post("/api/admin/users", headers=admin_headers, json={
        "email": "rec@example.com", "password": "password123", "role": "recruiter", "holdingId": "h2"
    }).status_code == 403
    assert UserService().find_by_email("boss@example.com") is None

    assert client.delete(f"/api/admin/users/{other['user_id']}", headers=admin_headers).status_code == 403
    assert client.delete(f"/api/admin/users/{root['user_id']}", headers=admin_headers).status_code == 403
    assert UserService().get(other["user_id"])

    assert client.post("/api/admin/users", headers=super_headers, json={
        "email": "boss@example.com", "password": "password123", "role": "super_admin", "holdingId": "h2"
    }).status_code == 201
    assert client.delete(f"/api/admin/users/{other['user_id']}", headers=super_headers).status_code == 200


def test_blacklist(client, make_user):
    _, headers = make_user("admin", holding_id="h1")

    assert client.post("/api/admin/blacklist", headers=headers,
                       json={"dni": "70123456", "nombre": "Ana", "motivo": "Abandono"}).status_code == 201

    entries = client.get("/api/admin/blacklist", headers=headers).json()["entries"]
    assert entries[0]["dni"] == "70123456"
    assert entries[0]["holdingId"] == "h1"

    assert client.delete("/api/admin/blacklist/70123456", headers=headers).status_code == 200
    assert client.delete("/api/admin/blacklist/70123456", headers=headers).status_code == 404
