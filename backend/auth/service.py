# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Registration, login and logout.

Device binding
--------------
Login is the only writer of ``users.device_id``; logout is the only thing
that clears it.  Both are one ``UPDATE ... WHERE id = ?`` statement so two
concurrent logins cannot interleave a read and a write: the database keeps
exactly one binding, and only the credential carrying that device id passes
``enforce_device_lock`` afterwards.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core import totp
from core.config import settings
from core.errors import AuthenticationFailure, StateConflict, ValidationFailure
from core.logger import logger
from core.security import (
    TWO_FACTOR_SCOPE,
    SessionTokenCodec,
    hash_password,
    password_policy_error,
    verify_password,
)
from models.audit_log import AuditLog
from models.user import User

# Generic message used for both "no such email" and "wrong password"
_LOGIN_FAIL = "Invalid email or password"


@dataclass
class LoginResult:
    token: str
    user: User
    requires_two_factor: bool = False
    enrollment: Optional[totp.EnrollmentMaterial] = None


def register(
    db: Session,
    username: str,
    email: str,
    password: str,
    request_ip: Optional[str] = None,
) -> User:
    """Create a ``normal`` account.  Duplicate email → StateConflict."""
    err = password_policy_error(password)
    if err:
        raise ValidationFailure(err)

    email = email.strip().lower()
    if db.query(User).filter(User.email == email).first():
        raise StateConflict("Email already exists")

    user = User(
        username=username.strip(),
        email=email,
        password_hash=hash_password(password),
        role="normal",
        is_logged_in=False,
        totp_enabled=False,
        is_verified=False,
    )
    db.add(user)
    try:
        db.flush()  # get user.id before commit
    except IntegrityError:
        # lost a race against a concurrent registration of the same email
        db.rollback()
        raise StateConflict("Email already exists")
    db.add(AuditLog(actor_id=user.id, target_user_id=user.id, action="register", request_ip=request_ip))
    db.commit()
    db.refresh(user)

    logger.info("Account registered | user_id=%s", user.id)
    return user


def login(
    db: Session,
    codec: SessionTokenCodec,
    email: str,
    password: str,
    device_id: str,
    request_ip: Optional[str] = None,
) -> LoginResult:
    """
    Check the password, then either bind the device and issue a full
    session, or – while two-factor enrollment is pending – hand out a
    short-lived credential that can only call the 2FA verify endpoint.
    """
    user = db.query(User).filter(User.email == email.strip().lower()).first()

    # Unified failure path – no information leaks about whether the email exists
    if not user or not verify_password(password, user.password_hash):
        logger.info("Login failed | client=%s", request_ip or "unknown")
        raise AuthenticationFailure(_LOGIN_FAIL)

    if settings.enforce_two_factor_enrollment and not user.totp_secret:
        db.execute(
            update(User)
            .where(User.id == user.id, User.totp_secret.is_(None))
            .values(totp_secret=totp.new_secret(), totp_enabled=False, is_verified=False)
        )
        db.commit()
        db.refresh(user)

    if user.totp_secret and not user.is_verified:
        # Partial session: no binding is written until verification succeeds
        material = totp.enrollment_material(user.totp_secret, user.email, settings.totp_issuer)
        db.add(AuditLog(actor_id=user.id, target_user_id=user.id, action="login_2fa_pending", request_ip=request_ip))
        db.commit()
        logger.info("Login pending two-factor verification | user_id=%s", user.id)
        return LoginResult(
            token=codec.issue(user.id, device_id, scope=TWO_FACTOR_SCOPE),
            user=user,
            requires_two_factor=True,
            enrollment=material,
        )

    db.execute(
        update(User)
        .where(User.id == user.id)
        .values(device_id=device_id, is_logged_in=True, last_login=datetime.now(timezone.utc))
    )
    db.add(AuditLog(actor_id=user.id, target_user_id=user.id, action="login", request_ip=request_ip))
    db.commit()
    db.refresh(user)

    logger.info("Login successful | user_id=%s", user.id)
    return LoginResult(token=codec.issue(user.id, device_id), user=user)


def end_session(
    db: Session,
    user_id: int,
    actor_id: Optional[int] = None,
    request_ip: Optional[str] = None,
) -> bool:
    """
    Clear the device binding and the logged-in flag.  Used by logout
    (actor is the account itself) and by the admin force-logout.

    Returns False if the account does not exist.
    """
    result = db.execute(
        update(User)
        .where(User.id == user_id)
        .values(device_id=None, is_logged_in=False)
    )
    if result.rowcount != 1:
        db.rollback()
        return False

    action = "logout" if actor_id in (None, user_id) else "force_logout"
    db.add(AuditLog(actor_id=actor_id or user_id, target_user_id=user_id, action=action, request_ip=request_ip))
    db.commit()
    logger.info("Session ended | user_id=%s action=%s", user_id, action)
    return True
