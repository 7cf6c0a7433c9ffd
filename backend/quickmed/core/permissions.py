"""
Ownership checks for records that belong to a user.
Admins pass every check; everyone else only sees their own records.
"""
from quickmed.core.audit import AuditLog
from quickmed.core.exceptions import BusinessError
from quickmed.models.user import User


def can_access(user: User, owner_id) -> bool:
    return user.is_admin or (owner_id is not None and owner_id == user.id)


def ensure_owner_or_admin(user: User, owner_id, resource_type: str, resource_id: int, action: str = "read"):
    """Raise 403 (and audit it) unless `user` owns the record or is an admin."""
    if can_access(user, owner_id):
        return
    AuditLog.log_access_denied(action, resource_type, resource_id, user.id, f"Not {resource_type} owner")
    raise BusinessError.forbidden(f"user {user.id} on {resource_type} {resource_id}")
