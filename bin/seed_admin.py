# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Bootstrap script – creates the first admin account.

Run once after the initial migration:
    python bin/seed_admin.py

Reads FIRST_ADMIN_EMAIL, FIRST_ADMIN_USERNAME and FIRST_ADMIN_PASSWORD from
etc/app.conf.  After the row is inserted those values are no longer used by
the application.  The admin starts logged out with no device binding; the
first login binds it like any other account.
"""

import os
import sys

# bin/seed_admin.py  →  ../backend
_PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
_BACKEND_DIR  = os.path.join(_PROJECT_ROOT, "backend")
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)

from core.config import settings                             # noqa: E402
from core.logger import logger                               # noqa: E402
from core.security import hash_password, password_policy_error  # noqa: E402
from database import SessionLocal                            # noqa: E402
from models.user import User                                 # noqa: E402


def seed() -> int:
    email = settings.first_admin_email.strip().lower()
    if not email or not settings.first_admin_password:
        print("[seed_admin] FIRST_ADMIN_EMAIL or FIRST_ADMIN_PASSWORD not set in etc/app.conf – nothing to do.")
        return 0

    err = password_policy_error(settings.first_admin_password)
    if err:
        print(f"[seed_admin] FIRST_ADMIN_PASSWORD rejected: {err}")
        return 1

    db = SessionLocal()
    try:
        if db.query(User).filter(User.email == email).first():
            print(f"[seed_admin] Admin '{email}' already exists – skipping.")
            return 0

        admin = User(
            username=settings.first_admin_username,
            email=email,
            password_hash=hash_password(settings.first_admin_password),
            role="admin",
            is_logged_in=False,
        )
        db.add(admin)
        db.commit()
        logger.info("Admin account seeded | user_id=%s", admin.id)
        print(f"[seed_admin] Admin '{email}' created successfully.")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(seed())
