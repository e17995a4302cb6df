"""
Authentication Pydantic schemas.

Defines request and response schemas for authentication endpoints.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from backend.app.models.enums import UserRole

PHONE_PATTERN = r"^\d{10}$"
PIN_PATTERN = r"^\d{4}$"


class UserRegister(BaseModel):
    """
    Schema for user registration.

    Used by POST /auth/register endpoint.
    The role may be chosen later through PATCH /auth/me/role.
    """
    phone_number: str = Field(..., pattern=PHONE_PATTERN, description="10-digit phone number, also the user id")
    name: str = Field(..., min_length=1, max_length=100, description="Display name")
    pin: str = Field(..., pattern=PIN_PATTERN, description="4-digit PIN")
    role: Optional[UserRole] = Field(default=None, description="passenger or driver")
    security_question: Optional[str] = Field(default=None, max_length=255)
    security_answer: Optional[str] = Field(default=None, min_length=1, max_length=255)


class UserLogin(BaseModel):
    """
    Schema for user login.

    Used by POST /auth/login endpoint.
    """
    phone_number: str = Field(..., description="Phone number")
    pin: str = Field(..., description="PIN")


class RoleSelection(BaseModel):
    role: UserRole


class TokenResponse(BaseModel):
    """
    Schema for JWT token response.

    Returned by successful login/register operations.
    """
    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    user_id: str = Field(..., description="User ID (phone number)")
    name: str = Field(..., description="Display name")
    role: Optional[UserRole] = Field(default=None, description="User role")


class UserResponse(BaseModel):
    """
    Schema for user information response.

    Used by GET /auth/me endpoint.
    """
    id: str
    phone_number: str
    name: str
    role: Optional[UserRole] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class OTPRequest(BaseModel):
    phone_number: str = Field(..., pattern=PHONE_PATTERN)


class OTPVerify(BaseModel):
    phone_number: str = Field(..., pattern=PHONE_PATTERN)
    code: str = Field(..., min_length=4, max_length=8)


class OTPResponse(BaseModel):
    sent: bool
    message: str


class SecurityQuestionResponse(BaseModel):
    phone_number: str
    security_question: str


class PinReset(BaseModel):
    phone_number: str = Field(..., pattern=PHONE_PATTERN)
    security_answer: str = Field(..., min_length=1)
    new_pin: str = Field(..., pattern=PIN_PATTERN)
