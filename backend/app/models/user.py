"""
User database model.

Users sign in with their phone number and a PIN; the phone number is the id.
"""

from sqlalchemy import Column, String, Boolean, DateTime, Enum
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.enums import UserRole


class User(Base):
    """
    User model for authentication and ride participation.

    Only hashes of the PIN and the security answer are stored.
    """
    __tablename__ = "users"

    id = Column(String(20), primary_key=True, index=True)
    phone_number = Column(String(20), unique=True, index=True, nullable=False)
    name = Column(String(100), nullable=False)
    hashed_pin = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # NULL until the user picks a side
    role = Column(Enum(UserRole), nullable=True)

    # PIN recovery
    security_question = Column(String(255), nullable=True)
    hashed_security_answer = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        role = self.role.value if self.role else None
        return f"<User(id={self.id}, name='{self.name}', role='{role}')>"
