"""Create all tables and the first admin account. Run on app startup.

The admin password is random and printed once; change it after first login.
"""
import logging
import secrets

from quickmed.core.config import settings
from quickmed.core.security import get_password_hash
from quickmed.db.base import Base
from quickmed.db.session import engine, SessionLocal
import quickmed.models  # noqa: F401 - register models
from quickmed.models.user import User

logger = logging.getLogger(__name__)


def init_db(bind=None, session_factory=None) -> bool:
    """Returns True when the admin account was created on this run."""
    Base.metadata.create_all(bind=bind or engine)

    db = (session_factory or SessionLocal)()
    try:
        if db.query(User).filter(User.role == "admin").count() > 0:
            return False

        default_password = secrets.token_urlsafe(16)
        admin = User(
            name="Administrator",
            email=settings.ADMIN_SEED_EMAIL.lower(),
            hashed_password=get_password_hash(default_password),
            role="admin",
            status="active",
        )
        db.add(admin)
        db.commit()
        logger.warning(f"Default admin created: {admin.email}")

        # Printed rather than logged so the password stays out of log files
        print("\n" + "=" * 70)
        print("DEFAULT ADMIN USER CREATED")
        print("=" * 70)
        print(f"Email:    {admin.email}")
        print(f"Password: {default_password}")
        print("\nChange this password immediately after first login!")
        print("=" * 70 + "\n")
        return True
    finally:
        db.close()
