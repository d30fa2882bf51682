# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Two-factor enrollment state machine.

    uninitialized ──setup──▶ pending ──verify(code)──▶ verified
                               ▲  │
                               └──┘ setup again: new secret, old QR is void

``verify`` flips ``totp_enabled`` and ``is_verified`` in one conditional
UPDATE (``WHERE is_verified = false AND totp_secret = <the secret checked>``),
so a code can move an account to *verified* at most once, and a wrong code
changes nothing.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from core import totp
from core.config import settings
from core.errors import AuthenticationFailure, StateConflict, ValidationFailure
from core.guards import enforce_device_lock
from core.logger import logger
from core.security import SESSION_SCOPE, TWO_FACTOR_SCOPE, SessionClaims, SessionTokenCodec
from models.audit_log import AuditLog
from models.user import User

_ALREADY_ENABLED = "Two-factor authentication is already enabled"


@dataclass
class VerifyResult:
    user: User
    # Set when verification completed a pending login
    token: Optional[str] = None


def setup(db: Session, user: User, request_ip: Optional[str] = None) -> totp.EnrollmentMaterial:
    """Generate (or regenerate) the secret and return the enrollment material."""
    if user.two_factor_state == "verified":
        raise StateConflict(_ALREADY_ENABLED)

    secret = totp.new_secret()
    db.execute(
        update(User)
        .where(User.id == user.id)
        .values(totp_secret=secret, totp_enabled=False, is_verified=False)
    )
    db.add(AuditLog(actor_id=user.id, target_user_id=user.id, action="2fa_setup", request_ip=request_ip))
    db.commit()
    db.refresh(user)

    logger.info("Two-factor secret generated | user_id=%s", user.id)
    return totp.enrollment_material(secret, user.email, settings.totp_issuer)


def verify(
    db: Session,
    codec: SessionTokenCodec,
    claims: SessionClaims,
    code: str,
    request_ip: Optional[str] = None,
    at: Optional[datetime] = None,
) -> VerifyResult:
    """
    Check *code* against the stored secret and enable two-factor.

    *claims* may be a full session (enabling 2FA from account settings) or
    the partial credential from a pending login; in the latter case the
    same UPDATE binds the device and marks the account logged in, and a
    full session token is returned.
    """
    user = db.get(User, claims.account_id)
    if user is None:
        raise AuthenticationFailure("User not found")

    completing_login = claims.scope == TWO_FACTOR_SCOPE
    if claims.scope == SESSION_SCOPE:
        enforce_device_lock(claims, user)
        if not user.is_logged_in:
            raise AuthenticationFailure("Session has ended, please log in again")

    secret = user.totp_secret
    if not secret:
        raise ValidationFailure("No secret set")
    if user.two_factor_state == "verified":
        raise StateConflict(_ALREADY_ENABLED)

    if not totp.verify_code(secret, code, at=at):
        logger.warning("Two-factor verification failed | user_id=%s", user.id)
        raise AuthenticationFailure("Invalid code")

    values = {"totp_enabled": True, "is_verified": True}
    if completing_login:
        values.update(device_id=claims.device_id, is_logged_in=True, last_login=datetime.now(timezone.utc))

    result = db.execute(
        update(User)
        .where(
            User.id == user.id,
            User.totp_secret == secret,
            User.is_verified == False,  # noqa: E712
        )
        .values(**values)
    )
    if result.rowcount != 1:
        # setup() ran again, or another request verified first
        db.rollback()
        raise StateConflict("Two-factor state changed, please retry")

    db.add(AuditLog(actor_id=user.id, target_user_id=user.id, action="2fa_enabled", request_ip=request_ip))
    db.commit()
    db.refresh(user)

    logger.info("Two-factor enabled | user_id=%s", user.id)
    token = codec.issue(user.id, claims.device_id) if completing_login else None
    return VerifyResult(user=user, token=token)
