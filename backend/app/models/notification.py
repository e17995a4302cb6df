"""
Notification Database Model.

In-app messages generated by ride events.
"""

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, JSON, Enum
from sqlalchemy.sql import func
from backend.app.db.session import Base
import enum


class NotificationType(str, enum.Enum):
    INFO = "INFO"
    RIDE_UPDATE = "RIDE_UPDATE"
    RESERVATION = "RESERVATION"


class Notification(Base):
    """
    In-App Notification.
    Stores messages for users.
    """
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Recipient
    user_id = Column(String(20), ForeignKey("users.id"), nullable=False, index=True)

    # Content
    type = Column(Enum(NotificationType), default=NotificationType.INFO, nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    ride_id = Column(String(36), nullable=True, index=True)
    metadata_payload = Column(JSON, nullable=True)

    # State
    is_read = Column(Boolean, default=False, nullable=False, index=True)
    read_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Notification(id={self.id}, user={self.user_id}, title='{self.title}')>"
