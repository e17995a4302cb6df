"""
Authentication API endpoints.

Phone + PIN registration and login, logout, OTP verification and PIN
recovery through a security question.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from backend.app.db.session import get_db
from backend.app.schemas.auth import (
    OTPRequest,
    OTPResponse,
    OTPVerify,
    PinReset,
    RoleSelection,
    SecurityQuestionResponse,
    TokenResponse,
    UserLogin,
    UserRegister,
    UserResponse,
)
from backend.app.core.exceptions import AuthenticationError
from backend.app.core.jwt import token_for_user
from backend.app.core.dependencies import get_current_user
from backend.app.core.redis_client import get_redis
from backend.app.core.token_revocation import revoke_token
from backend.app.services.audit import log_auth_event, AuditAction
from backend.app.services.identity import IdentityProvider, UserAlreadyExistsError
from backend.app.services import sms

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _client_ip(request: Request):
    return request.client.host if request.client else None


def _token_response(user) -> TokenResponse:
    return TokenResponse(
        access_token=token_for_user(user),
        token_type="bearer",
        user_id=user.id,
        name=user.name,
        role=user.role,
    )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserRegister,
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """
    Register a new user.

    The phone number becomes the user id and must be unused.
    """
    try:
        new_user = await IdentityProvider(db).register(
            phone_number=user_data.phone_number,
            name=user_data.name,
            pin=user_data.pin,
            role=user_data.role,
            security_question=user_data.security_question,
            security_answer=user_data.security_answer,
        )
    except UserAlreadyExistsError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Phone number already registered"
        )

    await log_auth_event(
        db=db,
        action=AuditAction.USER_REGISTERED,
        user_id=new_user.id,
        phone_number=new_user.phone_number,
        ip_address=_client_ip(request),
    )
    return _token_response(new_user)


@router.post("/login", response_model=TokenResponse)
async def login(
    credentials: UserLogin,
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """
    Login with phone number and PIN and return a JWT token.

    Logs successful and failed login attempts for security monitoring.
    """
    identity = IdentityProvider(db)
    user = await identity.authenticate(credentials.phone_number, credentials.pin)

    if not user:
        await log_auth_event(
            db=db,
            action=AuditAction.LOGIN_FAILED,
            user_id=None,
            phone_number=credentials.phone_number,
            ip_address=_client_ip(request),
            metadata={"reason": "Invalid phone number or PIN"}
        )
        raise AuthenticationError("Invalid phone number or PIN")

    if not user.is_active:
        await log_auth_event(
            db=db,
            action=AuditAction.LOGIN_FAILED,
            user_id=user.id,
            phone_number=user.phone_number,
            ip_address=_client_ip(request),
            metadata={"reason": "Account is inactive"}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user account"
        )

    await log_auth_event(
        db=db,
        action=AuditAction.LOGIN_SUCCESS,
        user_id=user.id,
        phone_number=user.phone_number,
        ip_address=_client_ip(request),
    )
    return _token_response(user)


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Get current authenticated user information."""
    user = await IdentityProvider(db).get_user(current_user["user_id"])
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return UserResponse.model_validate(user)


@router.patch("/me/role", response_model=TokenResponse)
async def choose_role(
    selection: RoleSelection,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Pick passenger or driver for an account registered without a role.

    A role cannot be changed once chosen. Returns a fresh token carrying it.
    """
    identity = IdentityProvider(db)
    user = await identity.get_user(current_user["user_id"])
    if user.role is not None and user.role != selection.role:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Role already set to {user.role.value}"
        )
    if user.role is None:
        user = await identity.set_role(user, selection.role)
    return _token_response(user)


@router.post("/logout")
async def logout(
    request: Request,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Revoke the bearer token used for this request."""
    revoked = await revoke_token(request.state.token, current_user["user_id"])
    await log_auth_event(
        db=db,
        action=AuditAction.LOGOUT,
        user_id=current_user["user_id"],
        phone_number=current_user.get("sub"),
        ip_address=_client_ip(request),
        metadata={"revoked": revoked}
    )
    return {"status": "success", "revoked": revoked}


@router.post("/otp", response_model=OTPResponse)
async def request_otp(body: OTPRequest, redis=Depends(get_redis)):
    """Send a one-time code by SMS. Delivery is not guaranteed."""
    sent = await sms.send_otp(redis, body.phone_number)
    return OTPResponse(
        sent=sent,
        message="Verification code sent" if sent else "Could not send verification code, try again later",
    )


@router.post("/otp/verify")
async def verify_otp(body: OTPVerify, redis=Depends(get_redis)):
    if not await sms.verify_otp(redis, body.phone_number, body.code):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired verification code"
        )
    return {"status": "success", "verified": True}


@router.get("/forgot-pin/question", response_model=SecurityQuestionResponse)
async def get_security_question(
    phone_number: str = Query(...),
    db: AsyncSession = Depends(get_db)
):
    question = await IdentityProvider(db).get_security_question(phone_number)
    if not question:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No security question on file for this phone number"
        )
    return SecurityQuestionResponse(phone_number=phone_number, security_question=question)


@router.post("/forgot-pin/reset")
async def reset_pin(
    body: PinReset,
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """Set a new PIN after answering the security question."""
    identity = IdentityProvider(db)
    if not await identity.reset_pin(body.phone_number, body.security_answer, body.new_pin):
        await log_auth_event(
            db=db,
            action=AuditAction.PIN_RESET_FAILED,
            user_id=None,
            phone_number=body.phone_number,
            ip_address=_client_ip(request),
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Security answer does not match"
        )

    await log_auth_event(
        db=db,
        action=AuditAction.PIN_RESET,
        user_id=body.phone_number,
        phone_number=body.phone_number,
        ip_address=_client_ip(request),
    )
    return {"status": "success"}
