"""
Audit logging for security-relevant and stock-affecting operations.

Every entry is one JSON line on the "audit" logger. Passwords and tokens
never appear in entries.
"""
import logging
import json
from datetime import datetime, timezone
from typing import Any, Optional, Dict

# Separate logger for audit events (can be shipped to centralized logging)
audit_logger = logging.getLogger("audit")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class AuditLog:
    """Central audit logging."""

    @staticmethod
    def log_authentication(
        action: str,  # "login", "register", "failed_login"
        email: str,
        ip_address: str,
        success: bool,
        reason: str = "",
    ):
        """
        Usage:
            AuditLog.log_authentication("login", "user@example.com", "192.168.1.1", True)
            AuditLog.log_authentication("failed_login", "user@example.com", "192.168.1.1", False, reason="Invalid password")
        """
        log_entry = {
            "timestamp": _now(),
            "event_type": f"auth.{action}",
            "email": email,
            "ip_address": ip_address,
            "success": success,
        }

        if reason and not success:
            log_entry["reason"] = reason

        audit_logger.info(json.dumps(log_entry))

    @staticmethod
    def log_action(
        action: str,  # "create", "update", "delete", "ship", "cancel"
        resource_type: str,  # "batch", "product", "order", "user", "supplier"
        resource_id: Optional[int],
        user,
        changes: Optional[Dict[str, Any]] = None,
    ):
        """
        Log a change to a business record: who, what, when.

        Usage:
            AuditLog.log_action("ship", "order", 42, current_user, changes={"batches": [3, 7]})
        """
        log_entry = {
            "timestamp": _now(),
            "event_type": f"{resource_type}.{action}",
            "user_id": user.id if user else None,
            "user_email": user.email if user else None,
            "resource_id": resource_id,
        }

        if changes:
            log_entry["changes"] = changes

        audit_logger.info(json.dumps(log_entry, default=str))

    @staticmethod
    def log_access_denied(
        action: str,
        resource_type: str,
        resource_id: Optional[int],
        user_id: int,
        reason: str,
    ):
        """
        Log denied access attempts, e.g. a customer reading someone else's order.

        Usage:
            AuditLog.log_access_denied("read", "order", 456, 1, "Not order owner")
        """
        log_entry = {
            "timestamp": _now(),
            "event_severity": "WARNING",
            "event_type": "access_denied",
            "action": action,
            "resource_type": resource_type,
            "resource_id": resource_id,
            "user_id": user_id,
            "reason": reason,
        }

        audit_logger.warning(json.dumps(log_entry))

    @staticmethod
    def log_permission_change(
        user_id: int,
        granted_by: int,
        permission: str,
        granted: bool,
    ):
        """
        Log role and account status changes made by an admin.

        Usage:
            AuditLog.log_permission_change(user_id=2, granted_by=1, permission="role:admin", granted=True)
        """
        log_entry = {
            "timestamp": _now(),
            "event_type": "permissions.changed",
            "user_id": user_id,
            "granted_by": granted_by,
            "permission": permission,
            "granted": granted,
        }

        audit_logger.info(json.dumps(log_entry))
