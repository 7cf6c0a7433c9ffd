"""FastAPI dependencies: DB session, current user from the Bearer JWT, role gates."""
from typing import Generator, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from quickmed.core.audit import AuditLog
from quickmed.core.exceptions import BusinessError
from quickmed.core.security import decode_access_token
from quickmed.db.session import SessionLocal
from quickmed.models.user import User

security = HTTPBearer(auto_error=False)


def get_db() -> Generator[Session, None, None]:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _user_from_credentials(db: Session, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[User]:
    if not credentials:
        return None
    sub = decode_access_token(credentials.credentials)
    if not sub:
        raise BusinessError.unauthorized("Invalid or expired token")
    try:
        user_id = int(sub)
    except ValueError:
        raise BusinessError.unauthorized("Token subject is not a user id")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise BusinessError.unauthorized(f"Token for missing user {user_id}")
    if user.status == "blocked":
        raise BusinessError.forbidden(f"Blocked user {user.id}")
    return user


def get_current_user(
    db: Session = Depends(get_db),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> User:
    """Load current user from DB. 401 without a valid token."""
    user = _user_from_credentials(db, credentials)
    if not user:
        raise BusinessError.unauthorized("Not authenticated")
    return user


def get_optional_user(
    db: Session = Depends(get_db),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[User]:
    """Current user when a token is sent, None for anonymous callers."""
    return _user_from_credentials(db, credentials)


def require_roles(*roles: str):
    """Dependency factory: 403 unless the current user has one of `roles`."""

    def checker(request: Request, user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            AuditLog.log_access_denied(
                action=request.method.lower(),
                resource_type=request.url.path,
                resource_id=None,
                user_id=user.id,
                reason=f"role '{user.role}' not in {list(roles)}",
            )
            raise BusinessError.forbidden(f"user {user.id} ({user.role}) on {request.url.path}")
        return user

    return checker


require_admin = require_roles("admin")
