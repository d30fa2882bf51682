# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""AuditLog ORM model – security events (logins, 2FA, password resets)."""

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.sql import func

from database import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # Who acted: the account itself, an admin, or NULL for anonymous flows
    actor_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    # Whose account was affected
    target_user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    action = Column(String(64), nullable=False, index=True)   # e.g. "login"
    detail = Column(Text, nullable=True)                      # never holds secrets
    request_ip = Column(String(45), nullable=True)            # supports IPv6
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
