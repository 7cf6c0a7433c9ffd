"""Users: admin management plus the caller's own address book."""
import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from quickmed.api.deps import get_db, get_current_user, require_admin
from quickmed.core.audit import AuditLog
from quickmed.core.exceptions import BusinessError
from quickmed.models.user import Address, User
from quickmed.schemas.common import ok, ok_list
from quickmed.schemas.user import (
    AddressIn,
    AddressOut,
    AddressUpdate,
    RoleUpdate,
    StatusUpdate,
    UserAdminUpdate,
    UserOut,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ==============================================================================
# OWN ADDRESSES (declared before /{user_id} so "me" is not parsed as an id)
# ==============================================================================

def _get_address(db: Session, user: User, address_id: int) -> Address:
    address = db.query(Address).filter(Address.id == address_id, Address.user_id == user.id).first()
    if not address:
        raise BusinessError.not_found("Address")
    return address


def _make_default(db: Session, user: User, address: Address):
    db.query(Address).filter(Address.user_id == user.id, Address.id != address.id).update(
        {Address.is_default: False}, synchronize_session="fetch"
    )
    address.is_default = True


def _addresses(db: Session, user: User) -> dict:
    rows = db.query(Address).filter(Address.user_id == user.id).order_by(Address.id).all()
    return ok_list([AddressOut.model_validate(a) for a in rows])


@router.get("/me/addresses")
def list_addresses(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return _addresses(db, current_user)


@router.post("/me/addresses", status_code=201)
def add_address(
    data: AddressIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """The first address always becomes the default."""
    has_any = db.query(Address).filter(Address.user_id == current_user.id).count() > 0
    address = Address(user_id=current_user.id, label=data.label, address=data.address, is_default=False)
    db.add(address)
    db.flush()
    if data.is_default or not has_any:
        _make_default(db, current_user, address)
    db.commit()
    return _addresses(db, current_user)


@router.patch("/me/addresses/{address_id}")
def update_address(
    address_id: int,
    data: AddressUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    address = _get_address(db, current_user, address_id)
    if data.label is not None:
        address.label = data.label
    if data.address is not None:
        address.address = data.address
    if data.is_default:
        _make_default(db, current_user, address)
    db.commit()
    return _addresses(db, current_user)


@router.patch("/me/addresses/{address_id}/default")
def set_default_address(
    address_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    address = _get_address(db, current_user, address_id)
    _make_default(db, current_user, address)
    db.commit()
    return _addresses(db, current_user)


@router.delete("/me/addresses/{address_id}")
def delete_address(
    address_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Deleting the default promotes the first remaining address."""
    address = _get_address(db, current_user, address_id)
    was_default = address.is_default
    db.delete(address)
    db.flush()
    if was_default:
        first = (
            db.query(Address)
            .filter(Address.user_id == current_user.id)
            .order_by(Address.id)
            .first()
        )
        if first:
            first.is_default = True
    db.commit()
    return _addresses(db, current_user)


# ==============================================================================
# ADMIN
# ==============================================================================

def _get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise BusinessError.not_found("User")
    return user


@router.get("")
def list_users(
    role: str | None = Query(None),
    status: str | None = Query(None),
    search: str | None = Query(None),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    q = db.query(User)
    if role:
        q = q.filter(User.role == role)
    if status:
        q = q.filter(User.status == status)
    if search:
        q = q.filter(User.name.ilike(f"%{search}%") | User.email.ilike(f"%{search}%"))
    users = q.order_by(User.created_at.desc(), User.id.desc()).all()
    return ok_list([UserOut.model_validate(u) for u in users])


@router.get("/{user_id}")
def get_user(user_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    return ok(UserOut.model_validate(_get_user(db, user_id)))


@router.patch("/{user_id}")
def update_user(
    user_id: int,
    data: UserAdminUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    user = _get_user(db, user_id)
    changes = data.model_dump(exclude_unset=True)
    if "email" in changes and changes["email"] != user.email:
        if db.query(User).filter(User.email == changes["email"], User.id != user.id).first():
            raise BusinessError.conflict("Email already registered")
    for field, value in changes.items():
        setattr(user, field, value)
    db.commit()
    db.refresh(user)
    AuditLog.log_action("update", "user", user.id, admin, changes=changes)
    return ok(UserOut.model_validate(user))


@router.patch("/{user_id}/role")
def change_role(
    user_id: int,
    data: RoleUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    user = _get_user(db, user_id)
    if user.id == admin.id and data.role != "admin":
        raise BusinessError.bad_request("You cannot remove your own admin role")
    user.role = data.role
    db.commit()
    db.refresh(user)
    AuditLog.log_permission_change(user.id, admin.id, f"role:{data.role}", True)
    return ok(UserOut.model_validate(user))


@router.patch("/{user_id}/status")
def change_status(
    user_id: int,
    data: StatusUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    user = _get_user(db, user_id)
    if user.id == admin.id and data.status == "blocked":
        raise BusinessError.bad_request("You cannot block your own account")
    user.status = data.status
    db.commit()
    db.refresh(user)
    AuditLog.log_permission_change(user.id, admin.id, f"status:{data.status}", True)
    return ok(UserOut.model_validate(user))


@router.delete("/{user_id}")
def delete_user(user_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    """Orders, feedback and tickets keep their user id; nothing else is cascaded."""
    user = _get_user(db, user_id)
    if user.id == admin.id:
        raise BusinessError.bad_request("You cannot delete your own account")
    db.delete(user)
    db.commit()
    logger.info(f"User {user_id} deleted by admin {admin.id}")
    AuditLog.log_action("delete", "user", user_id, admin)
    return ok(None)
