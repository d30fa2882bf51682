"""
API tests for register / login / logout / me and the device lock.
"""

from sqlalchemy.exc import OperationalError

from conftest import PASSWORD, auth_header, login, register
from database import get_db
from main import app
from models.user import User


# ============================================================
# POST /auth/register
# ============================================================

def test_register_success(client):
    response = register(client)

    assert response.status_code == 201
    user = response.json()["user"]
    assert user["email"] == "alice@example.com"
    assert user["role"] == "normal"
    assert user["is_logged_in"] is False
    assert "password" not in response.text
    assert "password_hash" not in user


def test_register_stores_hash_not_plaintext(client, db):
    register(client)
    stored = db.query(User).filter(User.email == "alice@example.com").one()
    assert stored.password_hash != PASSWORD
    assert PASSWORD not in stored.password_hash


def test_register_duplicate_email(client):
    register(client)
    response = register(client, username="alice2")

    assert response.status_code == 409
    assert response.json()["error"] == "state_conflict"


def test_register_weak_password(client):
    response = register(client, password="weak")

    assert response.status_code == 400
    assert response.json()["error"] == "validation_failure"


def test_register_invalid_email(client):
    response = register(client, email="not-an-email")

    assert response.status_code == 422
    assert response.json()["error"] == "validation_failure"
    assert PASSWORD not in response.text


def test_register_short_username(client):
    response = register(client, username="al")
    assert response.status_code == 422


# ============================================================
# POST /auth/login
# ============================================================

def test_login_success(client):
    register(client)
    response = login(client, device_id="d1")

    assert response.status_code == 200
    body = response.json()
    assert body["requires_two_factor"] is False
    assert body["token_type"] == "bearer"
    assert body["user"]["device_id"] == "d1"
    assert body["user"]["is_logged_in"] is True


def test_login_wrong_password_and_unknown_email_look_the_same(client):
    register(client)
    wrong_password = login(client, password="Wrong1234")
    unknown_email = login(client, email="nobody@example.com")

    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json()
    assert wrong_password.json()["error"] == "authentication_failure"


def test_login_requires_device_id(client):
    register(client)
    response = client.post("/auth/login", json={"email": "alice@example.com", "password": PASSWORD})
    assert response.status_code == 422


def test_login_email_is_case_insensitive(client):
    register(client)
    assert login(client, email="Alice@Example.com").status_code == 200


# ============================================================
# GET /auth/me
# ============================================================

def test_me_without_token(client):
    response = client.get("/auth/me")

    assert response.status_code == 401
    assert response.json()["error"] == "authentication_failure"


def test_me_with_garbage_token(client):
    response = client.get("/auth/me", headers=auth_header("garbage"))
    assert response.status_code == 401


def test_me_with_valid_token(client):
    register(client)
    token = login(client).json()["token"]

    response = client.get("/auth/me", headers=auth_header(token))

    assert response.status_code == 200
    assert response.json()["email"] == "alice@example.com"
    assert "totp_secret" not in response.json()


def test_token_for_deleted_account_rejected(client, db):
    register(client)
    token = login(client).json()["token"]
    db.query(User).delete()
    db.commit()

    assert client.get("/auth/me", headers=auth_header(token)).status_code == 401


# ============================================================
# Device lock – end-to-end
# ============================================================

def test_second_device_login_displaces_first(client):
    """register → login d1 → T1 works → login d2 → T1 device_mismatch, T2 works."""
    assert register(client).status_code == 201

    t1 = login(client, device_id="d1").json()["token"]
    assert client.get("/auth/me", headers=auth_header(t1)).status_code == 200

    second = login(client, device_id="d2")
    assert second.status_code == 200
    assert second.json()["user"]["device_id"] == "d2"
    t2 = second.json()["token"]

    stale = client.get("/auth/me", headers=auth_header(t1))
    assert stale.status_code == 403
    assert stale.json()["error"] == "device_mismatch"

    assert client.get("/auth/me", headers=auth_header(t2)).status_code == 200


def test_logout_then_rebind_from_other_device(client, db):
    register(client)
    t1 = login(client, device_id="A").json()["token"]

    response = client.post("/auth/logout", headers=auth_header(t1))
    assert response.status_code == 200

    stored = db.query(User).one()
    db.refresh(stored)
    assert stored.device_id is None
    assert stored.is_logged_in is False

    # the logged-out credential no longer opens a session
    assert client.get("/auth/me", headers=auth_header(t1)).status_code == 401

    t2 = login(client, device_id="B").json()["token"]
    me = client.get("/auth/me", headers=auth_header(t2))
    assert me.status_code == 200
    assert me.json()["device_id"] == "B"


def test_logout_from_displaced_device_is_rejected(client, db):
    register(client)
    t1 = login(client, device_id="A").json()["token"]
    login(client, device_id="B")

    response = client.post("/auth/logout", headers=auth_header(t1))

    assert response.status_code == 403
    stored = db.query(User).one()
    db.refresh(stored)
    assert stored.device_id == "B"


def test_logout_requires_token(client):
    assert client.post("/auth/logout").status_code == 401


# ============================================================
# Misc
# ============================================================

def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


class _UnavailableSession:
    """Session stand-in whose every query hits a statement timeout."""

    def query(self, *args, **kwargs):
        raise OperationalError(
            "SELECT users.id FROM users",
            {},
            Exception("canceling statement due to statement timeout"),
        )

    def close(self):
        pass


def test_database_timeout_is_external_service_failure(client):
    def _get_db():
        yield _UnavailableSession()

    app.dependency_overrides[get_db] = _get_db

    response = login(client)

    assert response.status_code == 503
    assert response.json()["error"] == "external_service_failure"
    assert "statement" not in response.text
