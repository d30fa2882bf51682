# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""Pydantic response models for the admin endpoints."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class UserRow(BaseModel):
    id: int
    username: str
    email: str
    role: str
    is_verified: bool
    is_logged_in: bool
    totp_enabled: bool
    last_login: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class UserListResponse(BaseModel):
    users: List[UserRow]


# -- Audit log responses ---------------------------------------------------


class AuditLogRow(BaseModel):
    id: int
    actor_email: Optional[str] = None       # resolved from actor_id join
    target_email: Optional[str] = None      # resolved from target_user_id join
    action: str
    detail: Optional[str] = None
    request_ip: Optional[str] = None
    created_at: datetime


class AuditLogListResponse(BaseModel):
    logs: List[AuditLogRow]
