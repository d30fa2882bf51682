# Import every model so Base.metadata knows all tables (and their foreign
# keys) before create_all / Alembic autogenerate runs.

from models.user import User  # noqa: F401  – must precede the FK holders
from models.password_reset import PasswordReset  # noqa: F401
from models.audit_log import AuditLog  # noqa: F401
