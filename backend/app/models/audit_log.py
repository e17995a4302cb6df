"""
Audit Log Database Model.

Tracks security-relevant account events (signup, login, logout, PIN reset).
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from backend.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model for tracking account security events.

    Events logged:
    - USER_REGISTERED
    - LOGIN_SUCCESS / LOGIN_FAILED
    - LOGOUT
    - PIN_RESET / PIN_RESET_FAILED
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who the event concerns (None when the phone number is unknown)
    actor_id = Column(String(20), index=True, nullable=True)
    phone_number = Column(String(20), nullable=True)

    action = Column(String(100), nullable=False, index=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    ip_address = Column(String(50), nullable=True)

    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_id})>"
