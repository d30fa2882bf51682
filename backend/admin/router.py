# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Admin endpoints – account overview, force-logout, audit trail.

Every endpoint in this router is guarded by ``require_admin``.  A request
that carries a valid token but belongs to a ``normal`` account receives
403 before any business logic runs.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session, aliased

from admin.schemas import AuditLogListResponse, AuditLogRow, UserListResponse, UserRow
from auth import service as auth_service
from auth.schemas import MessageResponse
from core.errors import NotFound
from core.security import get_client_ip, require_admin
from database import get_db
from models.audit_log import AuditLog
from models.user import User

router = APIRouter(prefix="/admin", tags=["admin"])


# ---------------------------------------------------------------------------
# GET /admin/users  – list all users
# ---------------------------------------------------------------------------


@router.get("/users", response_model=UserListResponse)
def list_users(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Return every user row (no password or TOTP data – handled by the schema)."""
    users = db.query(User).order_by(User.id).all()
    return UserListResponse(users=[UserRow.model_validate(u) for u in users])


# ---------------------------------------------------------------------------
# POST /admin/users/{id}/force-logout  – clear another account's binding
# ---------------------------------------------------------------------------


@router.post("/users/{user_id}/force-logout", response_model=MessageResponse)
def force_logout(
    user_id: int,
    request: Request,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    End the target's session wherever it is.  Their current token stops
    working and the next login may come from any device.
    """
    if not auth_service.end_session(db, user_id, actor_id=admin.id, request_ip=get_client_ip(request)):
        raise NotFound("User not found")
    return MessageResponse(message="User logged out")


# ---------------------------------------------------------------------------
# GET /admin/audit-logs  – audit trail with optional filters
# ---------------------------------------------------------------------------


@router.get("/audit-logs", response_model=AuditLogListResponse)
def list_audit_logs(
    emails: list[str] | None = Query(None, description="Filter by exact email(s) – repeated param"),
    action: str | None = Query(None, description="Filter by action, e.g. login"),
    since: datetime | None = Query(None, description="ISO-8601 start of time window"),
    until: datetime | None = Query(None, description="ISO-8601 end of time window"),
    limit: int = Query(200, ge=1, le=1000),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Return audit log rows newest-first.  Supports optional filters:

    * ``emails`` – match rows where *either* the actor or the target
                   belongs to one of the given addresses.
    * ``action`` – exact action name.
    * ``since`` / ``until`` – ISO-8601 bounds on ``created_at``.
    * ``limit`` – max rows returned (default 200, cap 1000).
    """
    Actor  = aliased(User)
    Target = aliased(User)

    q = (
        db.query(AuditLog, Actor.email, Target.email)
        .outerjoin(Actor,  AuditLog.actor_id       == Actor.id)
        .outerjoin(Target, AuditLog.target_user_id == Target.id)
    )

    if emails:
        q = q.filter(Actor.email.in_(emails) | Target.email.in_(emails))
    if action:
        q = q.filter(AuditLog.action == action)
    if since:
        q = q.filter(AuditLog.created_at >= since)
    if until:
        q = q.filter(AuditLog.created_at <= until)

    rows = q.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit).all()

    return AuditLogListResponse(logs=[
        AuditLogRow(
            id=log.id,
            actor_email=actor_email,
            target_email=target_email,
            action=log.action,
            detail=log.detail,
            request_ip=log.request_ip,
            created_at=log.created_at,
        )
        for log, actor_email, target_email in rows
    ])
