# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Central security module.  All cryptographic primitives and auth guards live
here.  No other module should touch raw crypto directly.

Responsibilities
----------------
1. Password hashing / verification          (passlib pbkdf2_sha256)
2. Session tokens: issue / verify           (PyJWT / HS256)
3. FastAPI dependency guards                (get_current_user, require_admin)
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional

import jwt as _jwt        # PyJWT
from passlib.hash import pbkdf2_sha256 as _pbkdf2  # pure Python, no binary deps
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from core.config import settings
from core.errors import AuthenticationFailure
from core.guards import enforce_device_lock, enforce_role
from database import get_db

# ---------------------------------------------------------------------------
# 1.  pbkdf2_sha256 – password hashing
# ---------------------------------------------------------------------------
# The round count is the adaptive work factor; the salt is generated per hash
# and embedded in the returned string.
# ---------------------------------------------------------------------------


def hash_password(plain: str, rounds: Optional[int] = None) -> str:
    """Hash a plaintext password with PBKDF2-SHA256 at the configured rounds."""
    return _pbkdf2.using(rounds=rounds or settings.password_hash_rounds).hash(plain)


def verify_password(plain: str, stored_hash: str) -> bool:
    """
    Constant-time verification of a plaintext password against a hash
    produced by :func:`hash_password`.  A wrong password, or a stored value
    that is not a pbkdf2 hash at all, is simply ``False``.
    """
    try:
        return _pbkdf2.verify(plain, stored_hash)
    except ValueError:
        return False


def password_policy_error(pw: str) -> str | None:
    """
    Return an error string if the password does not meet the minimum policy,
    or None if it is acceptable.

    Policy: >= 8 chars, at least one uppercase, one lowercase, one digit.
    """
    if len(pw) < 8:
        return "Password must be at least 8 characters"
    if not re.search(r"[A-Z]", pw):
        return "Password must contain at least one uppercase letter"
    if not re.search(r"[a-z]", pw):
        return "Password must contain at least one lowercase letter"
    if not re.search(r"[0-9]", pw):
        return "Password must contain at least one digit"
    return None


# ---------------------------------------------------------------------------
# 2.  JWT – session credentials
# ---------------------------------------------------------------------------

# Full session vs. the short-lived credential that may only call /auth/2fa/verify
SESSION_SCOPE = "session"
TWO_FACTOR_SCOPE = "2fa"

_ALGORITHM = "HS256"


@dataclass(frozen=True)
class SessionClaims:
    account_id: int
    device_id: str
    scope: str
    issued_at: datetime
    expires_at: datetime


class SessionTokenCodec:
    """
    Signs and verifies session credentials with one HS256 key.

    The key is handed in by the caller and never read from ambient state;
    a codec built with a different key rejects every token of the old one.
    """

    def __init__(
        self,
        secret_key: str,
        session_ttl: timedelta = timedelta(days=7),
        two_factor_ttl: timedelta = timedelta(minutes=10),
    ):
        if not secret_key:
            raise RuntimeError("SECRET_KEY must be set")
        self._key = secret_key
        self._ttl = {SESSION_SCOPE: session_ttl, TWO_FACTOR_SCOPE: two_factor_ttl}

    def issue(
        self,
        account_id: int,
        device_id: str,
        *,
        scope: str = SESSION_SCOPE,
        now: Optional[datetime] = None,
    ) -> str:
        issued = now or datetime.now(timezone.utc)
        payload = {
            "sub": str(account_id),
            "device_id": device_id,
            "scope": scope,
            "iat": issued,
            "exp": issued + self._ttl[scope],
        }
        return _jwt.encode(payload, self._key, algorithm=_ALGORITHM)

    def verify(self, token: str, *, expected_scope: Optional[str] = None) -> SessionClaims:
        """
        Check signature and expiry, then decode.  Any failure raises
        :class:`AuthenticationFailure`; the payload of a token whose
        signature did not verify is never looked at.
        """
        if not token:
            raise AuthenticationFailure("No token provided")
        try:
            payload = _jwt.decode(
                token,
                self._key,
                algorithms=[_ALGORITHM],
                options={"require": ["sub", "exp", "iat"]},
            )
        except _jwt.ExpiredSignatureError:
            raise AuthenticationFailure("Token expired")
        except _jwt.InvalidTokenError:
            raise AuthenticationFailure("Invalid or expired token")

        try:
            claims = SessionClaims(
                account_id=int(payload["sub"]),
                device_id=str(payload["device_id"]),
                scope=payload.get("scope", SESSION_SCOPE),
                issued_at=datetime.fromtimestamp(payload["iat"], timezone.utc),
                expires_at=datetime.fromtimestamp(payload["exp"], timezone.utc),
            )
        except (KeyError, TypeError, ValueError):
            raise AuthenticationFailure("Malformed token")

        if expected_scope and claims.scope != expected_scope:
            raise AuthenticationFailure("Token not valid for this operation")
        return claims


@lru_cache
def get_token_codec() -> SessionTokenCodec:
    """Process-wide codec, built once from settings at first use."""
    return SessionTokenCodec(
        settings.secret_key,
        session_ttl=timedelta(minutes=settings.access_token_expire_minutes),
        two_factor_ttl=timedelta(minutes=settings.two_factor_token_expire_minutes),
    )


# ---------------------------------------------------------------------------
# 3.  FastAPI dependency guards
# ---------------------------------------------------------------------------

# auto_error=False: a missing header must surface as our own 401 body
bearer_scheme = HTTPBearer(auto_error=False)


def get_session_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    codec: SessionTokenCodec = Depends(get_token_codec),
) -> SessionClaims:
    """Dependency: verified claims of the bearer token, any scope."""
    if credentials is None:
        raise AuthenticationFailure("No token provided")
    return codec.verify(credentials.credentials)


def get_current_user(
    claims: SessionClaims = Depends(get_session_claims),
    db: Session = Depends(get_db),
):
    """
    Dependency: full session only.  Loads the User row, rejects sessions
    that were ended by logout, then applies the device lock.

    Raises 401 for token / account problems, 403 ``device_mismatch`` when
    the account is bound to another device.
    """
    if claims.scope != SESSION_SCOPE:
        raise AuthenticationFailure("Two-factor verification required")

    # Lazy import to avoid circular dependency at module load time
    from models.user import User  # noqa: E402

    user = db.get(User, claims.account_id)
    if user is None:
        raise AuthenticationFailure("User not found")
    enforce_device_lock(claims, user)
    if not user.is_logged_in:
        raise AuthenticationFailure("Session has ended, please log in again")
    return user


def require_admin(current_user=Depends(get_current_user)):
    """Dependency: :func:`get_current_user` plus ``role == 'admin'`` (403 otherwise)."""
    enforce_role(current_user, "admin")
    return current_user


# -- IP Address extraction ----------------------------------------------------


def get_client_ip(request: Request) -> str:
    """
    Extract the client IP address from the request.
    Checks X-Forwarded-For header first (for proxies), then falls back to client host.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # X-Forwarded-For can contain multiple IPs, take the first (original client)
        return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host

    return "unknown"
