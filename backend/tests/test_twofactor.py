"""
Two-factor state machine: service-level transitions and the HTTP flow,
including the partial credential handed out by login.
"""

from datetime import datetime, timedelta, timezone

import pyotp
import pytest

from conftest import auth_header, current_code, login, register
from core import totp
from core.config import settings
from core.errors import AuthenticationFailure, StateConflict, ValidationFailure
from core.security import SESSION_SCOPE, TWO_FACTOR_SCOPE
from models.user import User
from twofactor import service


def logged_in(db, codec, user, device_id="d1"):
    user.device_id = device_id
    user.is_logged_in = True
    db.commit()
    return codec.verify(codec.issue(user.id, device_id))


# --- TOTP primitives ---

def test_enrollment_material_shape():
    secret = totp.new_secret()
    material = totp.enrollment_material(secret, "alice@example.com", "Prep360")

    assert material.secret_uri.startswith("otpauth://totp/")
    assert "issuer=Prep360" in material.secret_uri
    assert f"secret={secret}" in material.secret_uri
    assert material.qr_data_url.startswith("data:image/png;base64,")


def test_verify_code_accepts_one_step_of_skew():
    secret = totp.new_secret()
    now = datetime.now(timezone.utc)
    previous_step = pyotp.TOTP(secret).at(now - timedelta(seconds=30))
    two_steps_back = pyotp.TOTP(secret).at(now - timedelta(seconds=90))

    assert totp.verify_code(secret, previous_step, at=now) is True
    assert totp.verify_code(secret, two_steps_back, at=now) is False


@pytest.mark.parametrize("code", ["", "abcdef", "12 34", None])
def test_verify_code_rejects_malformed(code):
    assert totp.verify_code(totp.new_secret(), code) is False


# --- Service transitions ---

def test_verify_before_setup_fails_with_no_secret(db, codec, make_user):
    user = make_user()
    claims = logged_in(db, codec, user)

    with pytest.raises(ValidationFailure) as exc:
        service.verify(db, codec, claims, "123456")
    assert exc.value.message == "No secret set"


def test_setup_moves_to_pending(db, make_user):
    user = make_user()
    assert user.two_factor_state == "uninitialized"

    material = service.setup(db, user)

    db.refresh(user)
    assert user.two_factor_state == "pending"
    assert user.totp_enabled is False
    assert user.totp_secret in material.secret_uri


def test_setup_again_while_pending_replaces_secret(db, make_user):
    user = make_user()
    service.setup(db, user)
    first_secret = user.totp_secret

    service.setup(db, user)

    db.refresh(user)
    assert user.totp_secret != first_secret
    assert user.two_factor_state == "pending"


def test_wrong_code_leaves_state_unchanged(db, codec, make_user):
    user = make_user()
    claims = logged_in(db, codec, user)
    service.setup(db, user)
    good = current_code(user.totp_secret)
    wrong = "000000" if good != "000000" else "111111"

    with pytest.raises(AuthenticationFailure):
        service.verify(db, codec, claims, wrong)

    db.refresh(user)
    assert user.two_factor_state == "pending"
    assert user.totp_enabled is False
    assert user.is_verified is False


def test_correct_code_verifies_exactly_once(db, codec, make_user):
    user = make_user()
    claims = logged_in(db, codec, user)
    service.setup(db, user)
    code = current_code(user.totp_secret)

    result = service.verify(db, codec, claims, code)

    assert result.token is None
    db.refresh(user)
    assert user.totp_enabled is True
    assert user.is_verified is True

    with pytest.raises(StateConflict):
        service.verify(db, codec, claims, code)


def test_setup_after_verified_is_conflict(db, codec, make_user):
    user = make_user()
    claims = logged_in(db, codec, user)
    service.setup(db, user)
    service.verify(db, codec, claims, current_code(user.totp_secret))

    with pytest.raises(StateConflict):
        service.setup(db, user)


# --- HTTP flow ---

def test_setup_requires_full_session(client):
    assert client.post("/auth/2fa/setup").status_code == 401


def test_setup_and_verify_over_http(client, db):
    register(client)
    token = login(client).json()["token"]

    setup = client.post("/auth/2fa/setup", headers=auth_header(token))
    assert setup.status_code == 200
    assert setup.json()["qr_data_url"].startswith("data:image/png;base64,")

    secret = db.query(User).one().totp_secret
    assert secret not in setup.json()["qr_data_url"]

    verify = client.post("/auth/2fa/verify", headers=auth_header(token), json={"code": current_code(secret)})
    assert verify.status_code == 200
    assert "token" not in verify.json()


def test_verify_without_secret_over_http(client):
    register(client)
    token = login(client).json()["token"]

    response = client.post("/auth/2fa/verify", headers=auth_header(token), json={"code": "123456"})

    assert response.status_code == 400
    assert response.json()["detail"] == "No secret set"


def test_pending_enrollment_login_gets_partial_credential(client, db, codec):
    register(client)
    token = login(client, device_id="d1").json()["token"]
    client.post("/auth/2fa/setup", headers=auth_header(token))
    client.post("/auth/logout", headers=auth_header(token))

    response = login(client, device_id="d9")

    body = response.json()
    assert response.status_code == 200
    assert body["requires_two_factor"] is True
    assert body["enrollment_material"]["secret_uri"].startswith("otpauth://")
    assert "user" not in body
    assert codec.verify(body["token"]).scope == TWO_FACTOR_SCOPE

    # no binding yet, and the partial credential opens nothing else
    stored = db.query(User).one()
    assert stored.device_id is None
    assert stored.is_logged_in is False
    assert client.get("/auth/me", headers=auth_header(body["token"])).status_code == 401
    assert client.post("/auth/2fa/setup", headers=auth_header(body["token"])).status_code == 401


def test_partial_credential_verify_completes_login(client, db, codec):
    register(client)
    token = login(client, device_id="d1").json()["token"]
    client.post("/auth/2fa/setup", headers=auth_header(token))
    client.post("/auth/logout", headers=auth_header(token))
    partial = login(client, device_id="d9").json()["token"]
    secret = db.query(User).one().totp_secret

    response = client.post("/auth/2fa/verify", headers=auth_header(partial), json={"code": current_code(secret)})

    assert response.status_code == 200
    body = response.json()
    assert body["user"]["device_id"] == "d9"
    assert body["user"]["is_logged_in"] is True
    assert codec.verify(body["token"]).scope == SESSION_SCOPE
    assert client.get("/auth/me", headers=auth_header(body["token"])).status_code == 200

    # verified accounts log in normally afterwards
    again = login(client, device_id="d9")
    assert again.json()["requires_two_factor"] is False


def test_partial_credential_with_wrong_code(client, db):
    register(client)
    token = login(client).json()["token"]
    client.post("/auth/2fa/setup", headers=auth_header(token))
    client.post("/auth/logout", headers=auth_header(token))
    partial = login(client).json()["token"]

    response = client.post("/auth/2fa/verify", headers=auth_header(partial), json={"code": "abcdef"})

    assert response.status_code == 401
    stored = db.query(User).one()
    assert stored.is_verified is False
    assert stored.device_id is None


def test_short_code_is_an_invalid_code_not_a_schema_error(client, db):
    register(client)
    token = login(client).json()["token"]
    client.post("/auth/2fa/setup", headers=auth_header(token))

    response = client.post("/auth/2fa/verify", headers=auth_header(token), json={"code": "12"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid code"
    assert db.query(User).one().two_factor_state == "pending"


def test_enforced_enrollment_generates_secret_at_login(client, db, monkeypatch):
    monkeypatch.setattr(settings, "enforce_two_factor_enrollment", True)
    register(client)

    response = login(client)

    assert response.json()["requires_two_factor"] is True
    assert db.query(User).one().totp_secret is not None
