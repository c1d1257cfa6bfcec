from sqlalchemy import select

from app.models.audit_log import AuditLog
from app.models.enums import UserType
from app.schemas.users import UserCreate
from app.services import auth_service

LOGIN = "/api/v1/auth/login"


def _user(db, email="client@example.com", password="s3cret-pass", user_type=UserType.Client, is_active=True):
    return auth_service.create_user(
        db,
        payload=UserCreate(
            name="Client One", email=email, password=password, user_type=user_type, is_active=is_active
        ),
    )


def test_login_and_me(client, db):
    _user(db)

    r = client.post(LOGIN, json={"email": "Client@Example.com", "password": "s3cret-pass"})
    assert r.status_code == 200, r.text
    token = r.json()["access_token"]

    me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["userType"] == "Client"
    assert me.json()["email"] == "client@example.com"

    row = db.execute(select(AuditLog).where(AuditLog.action == "LOGIN")).scalar_one()
    assert row.user_name == "Client One"


def test_bad_password_is_401_and_audited(client, db):
    _user(db)

    r = client.post(LOGIN, json={"email": "client@example.com", "password": "wrong"})

    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid credentials."
    row = db.execute(select(AuditLog).where(AuditLog.action == "LOGIN_FAILED")).scalar_one()
    assert row.metadata_json == {"attempted_email": "client@example.com"}


def test_unknown_email_is_401(client, db):
    r = client.post(LOGIN, json={"email": "nobody@example.com", "password": "whatever"})
    assert r.status_code == 401


def test_inactive_account_is_403(client, db):
    _user(db, is_active=False)

    r = client.post(LOGIN, json={"email": "client@example.com", "password": "s3cret-pass"})

    assert r.status_code == 403
    assert "deactivated" in r.json()["detail"]


def test_user_admin_endpoints(client, db, auth_headers):
    headers = auth_headers("Admin")

    created = client.post(
        "/api/v1/admin/users",
        json={"name": "Field One", "email": "field@example.com", "password": "password123", "user_type": "User"},
        headers=headers,
    )
    assert created.status_code == 201, created.text
    user_id = created.json()["id"]
    assert created.json()["isActive"] is True

    dup = client.post(
        "/api/v1/admin/users",
        json={"name": "Again", "email": "FIELD@example.com", "password": "password123", "user_type": "User"},
        headers=headers,
    )
    assert dup.status_code == 409

    toggled = client.patch(f"/api/v1/admin/users/{user_id}/toggle-status", headers=headers)
    assert toggled.status_code == 200
    assert toggled.json()["isActive"] is False

    listed = client.get("/api/v1/admin/users", params={"user_type": "User"}, headers=headers)
    assert [u["email"] for u in listed.json()] == ["field@example.com"]

    assert client.get("/api/v1/admin/users", headers=auth_headers("Client")).status_code == 403
    assert client.patch("/api/v1/admin/users/nope/toggle-status", headers=headers).status_code == 404


def test_admin_cannot_deactivate_self(client, db, auth_headers):
    admin = _user(db, email="admin@example.com", user_type=UserType.Admin)

    r = client.patch(
        f"/api/v1/admin/users/{admin.id}/toggle-status",
        headers=auth_headers("Admin", user_id=str(admin.id)),
    )

    assert r.status_code == 422
