"""Auth: register, login, current user.

Tokens are JWT Bearer tokens returned in the response body; the SPA keeps
them in local storage and sends them in the Authorization header.
"""
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from quickmed.api.deps import get_db, get_current_user
from quickmed.core.audit import AuditLog
from quickmed.core.exceptions import BusinessError
from quickmed.core.security import verify_password, get_password_hash, create_access_token
from quickmed.models.user import User
from quickmed.schemas.common import ok
from quickmed.schemas.user import UserRegister, UserLogin, UserOut, TokenOut

router = APIRouter()


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else ""


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(data: UserRegister, request: Request, db: Session = Depends(get_db)):
    if db.query(User).filter(User.email == data.email).first():
        AuditLog.log_authentication("register", data.email, _client_ip(request), False, reason="Email taken")
        raise BusinessError.conflict("Email already registered")

    user = User(
        name=data.name.strip(),
        email=data.email,
        hashed_password=get_password_hash(data.password),
        phone=data.phone,
        age=data.age,
        role=data.role,
        doctor_id=data.doctor_id if data.role == "doctor" else None,
        pharmacy_reg_number=data.pharmacy_reg_number if data.role == "pharmacy" else None,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    AuditLog.log_authentication("register", user.email, _client_ip(request), True)
    token = create_access_token(subject=str(user.id))
    return ok(TokenOut(token=token, user=UserOut.model_validate(user)))


@router.post("/login")
def login(data: UserLogin, request: Request, db: Session = Depends(get_db)):
    """Generic 401 for unknown email and wrong password alike."""
    user = db.query(User).filter(User.email == data.email).first()
    if not user or not verify_password(data.password, user.hashed_password):
        AuditLog.log_authentication("failed_login", data.email, _client_ip(request), False, reason="Bad credentials")
        raise BusinessError.unauthorized(f"login {data.email}")
    if user.status == "blocked":
        AuditLog.log_authentication("failed_login", data.email, _client_ip(request), False, reason="Blocked")
        raise BusinessError.forbidden(f"blocked user {user.id} tried to log in")

    AuditLog.log_authentication("login", user.email, _client_ip(request), True)
    token = create_access_token(subject=str(user.id))
    return ok(TokenOut(token=token, user=UserOut.model_validate(user)))


@router.get("/me")
def me(current_user: User = Depends(get_current_user)):
    """Get current authenticated user."""
    return ok(UserOut.model_validate(current_user))
