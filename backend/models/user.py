# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""User ORM model – the credential store row for one account."""

from sqlalchemy import Column, Integer, String, Boolean, Enum, DateTime
from sqlalchemy.sql import func

from database import Base

ROLES = ("normal", "admin")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(30), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    # passlib hash string; the salt is embedded in it
    password_hash = Column(String(255), nullable=False)
    role = Column(Enum(*ROLES, name="user_role"), nullable=False, default="normal")

    # The single device currently allowed to hold a live session
    device_id = Column(String(255), nullable=True)
    is_logged_in = Column(Boolean, nullable=False, default=False)

    # Two-factor enrollment: base32 secret, flipped to enabled + verified together
    totp_secret = Column(String(64), nullable=True)
    totp_enabled = Column(Boolean, nullable=False, default=False)
    is_verified = Column(Boolean, nullable=False, default=False)

    last_login = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    @property
    def two_factor_state(self) -> str:
        """``uninitialized`` → ``pending`` → ``verified``."""
        if not self.totp_secret:
            return "uninitialized"
        if self.totp_enabled and self.is_verified:
            return "verified"
        return "pending"
