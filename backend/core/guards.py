# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
The single device-lock check and the single role check.

Both are pure functions of (verified claims, account row) → None or raise.
The FastAPI dependencies in ``core.security`` are thin wrappers around them;
nothing else in the code base compares device ids or roles.
"""

from core.errors import AuthorizationFailure, DeviceMismatch


def enforce_device_lock(claims, account) -> None:
    """
    At most one live device per account.

    No binding on file → nothing to compare (first login sets it).
    Binding differs from the credential's device → ``DeviceMismatch``.
    """
    bound = account.device_id
    if bound is None:
        return
    if claims.device_id != bound:
        raise DeviceMismatch()


def enforce_role(account, *roles: str) -> None:
    if account.role not in roles:
        raise AuthorizationFailure("Admin access required" if roles == ("admin",) else None)
