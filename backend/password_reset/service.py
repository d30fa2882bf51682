# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Password-reset token lifecycle.

request ──▶ pending ──complete──▶ used
              │
              └── expires_at passed: can never authorise a change

* A new request deletes the account's other pending tokens, so only the
  latest link works.
* ``complete`` claims the token with ``UPDATE ... SET status='used' WHERE
  id=? AND status='pending'`` and changes the password hash in the same
  transaction: either both happen or neither does.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from core.config import settings
from core.errors import AuthenticationFailure, NotFound, StateConflict, ValidationFailure
from core.logger import logger
from core.recaptcha import RecaptchaVerifier
from core.security import hash_password, password_policy_error
from models.audit_log import AuditLog
from models.password_reset import PasswordReset
from models.user import User

# 32 bytes of entropy → 64 hex characters
TOKEN_BYTES = 32


def _utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def request_reset(
    db: Session,
    verifier: RecaptchaVerifier,
    email: str,
    bot_check_proof: str,
    request_ip: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Optional[PasswordReset]:
    """
    Gate on the bot check, then create a pending reset record.

    Returns the new record, or ``None`` for an unknown email when
    ``reset_uniform_response`` is on (the caller answers identically).
    """
    if not bot_check_proof:
        raise ValidationFailure("Bot-check token is required")

    check = verifier.verify(bot_check_proof, remote_ip=request_ip)
    if not check.passes(settings.recaptcha_min_score):
        logger.warning(
            "Password reset bot check rejected | client=%s score=%.2f",
            request_ip or "unknown",
            check.score,
        )
        raise AuthenticationFailure("Bot verification failed")

    user = db.query(User).filter(User.email == email.strip().lower()).first()
    if not user:
        logger.info("Password reset requested for unknown email | client=%s", request_ip or "unknown")
        if settings.reset_uniform_response:
            return None
        raise NotFound("User not found")

    now = now or datetime.now(timezone.utc)
    db.query(PasswordReset).filter(
        PasswordReset.user_id == user.id,
        PasswordReset.status == "pending",
    ).delete(synchronize_session=False)

    record = PasswordReset(
        user_id=user.id,
        email=user.email,
        token=secrets.token_hex(TOKEN_BYTES),
        expires_at=now + timedelta(minutes=settings.reset_token_expire_minutes),
        status="pending",
    )
    db.add(record)
    db.add(AuditLog(actor_id=None, target_user_id=user.id, action="password_reset_requested", request_ip=request_ip))
    db.commit()
    db.refresh(record)

    logger.info("Password reset token issued | user_id=%s", user.id)
    return record


def latest_token(db: Session, email: str, now: Optional[datetime] = None) -> str:
    """Most recent usable token for *email* (development lookup)."""
    now = now or datetime.now(timezone.utc)
    record = (
        db.query(PasswordReset)
        .filter(PasswordReset.email == email.strip().lower(), PasswordReset.status == "pending")
        .order_by(PasswordReset.id.desc())
        .first()
    )
    if not record:
        raise NotFound("No token found for this email")
    if _utc(record.expires_at) <= now:
        raise ValidationFailure("Token expired")
    return record.token


def complete_reset(
    db: Session,
    token: str,
    new_password: str,
    request_ip: Optional[str] = None,
    now: Optional[datetime] = None,
) -> None:
    """
    Consume *token* and set the new password.

    Failure order: unknown token → NotFound, expired → ValidationFailure,
    already used → StateConflict.  On success every session of the account
    ends (device binding cleared).
    """
    if not token or not new_password:
        raise ValidationFailure("Token & password required")

    err = password_policy_error(new_password)
    if err:
        raise ValidationFailure(err)

    now = now or datetime.now(timezone.utc)
    record = (
        db.query(PasswordReset)
        .filter(PasswordReset.token == token)
        .with_for_update()
        .first()
    )
    if not record:
        raise NotFound("Invalid token")
    if _utc(record.expires_at) <= now:
        raise ValidationFailure("Token expired")
    if record.status == "used":
        raise StateConflict("Token has already been used")

    # Hash before touching any row so a hashing failure leaves the token usable
    new_hash = hash_password(new_password)

    claimed = db.execute(
        update(PasswordReset)
        .where(PasswordReset.id == record.id, PasswordReset.status == "pending")
        .values(status="used", used_at=now)
    )
    if claimed.rowcount != 1:
        db.rollback()
        raise StateConflict("Token has already been used")

    db.execute(
        update(User)
        .where(User.id == record.user_id)
        .values(password_hash=new_hash, device_id=None, is_logged_in=False)
    )
    db.add(AuditLog(actor_id=record.user_id, target_user_id=record.user_id, action="password_reset_completed", request_ip=request_ip))
    db.commit()

    logger.info("Password reset completed | user_id=%s", record.user_id)
