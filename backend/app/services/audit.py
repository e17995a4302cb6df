"""
Audit logging service for account security events.

Provides centralized logging for login monitoring and PIN recovery.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from backend.app.models.audit_log import AuditLog


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    USER_REGISTERED = "USER_REGISTERED"
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILED = "LOGIN_FAILED"
    LOGOUT = "LOGOUT"
    PIN_RESET = "PIN_RESET"
    PIN_RESET_FAILED = "PIN_RESET_FAILED"


async def log_auth_event(
    db: AsyncSession,
    action: str,
    user_id: Optional[str],
    phone_number: Optional[str],
    ip_address: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Log an authentication event (signup, login success/failure, logout, PIN reset).

    Args:
        db: Database session
        action: One of the AuditAction constants
        user_id: ID of the user the event concerns, if known
        phone_number: Phone number used in the attempt
        ip_address: IP address of the request
        metadata: Additional context (e.g., failure reason)

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=user_id,
        phone_number=phone_number,
        action=action,
        meta_data=metadata,
        ip_address=ip_address
    )

    db.add(audit_log)
    await db.commit()
    await db.refresh(audit_log)

    return audit_log
