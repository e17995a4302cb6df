"""
Identity Provider.

Signup, phone + PIN authentication, user lookup and PIN recovery through a
security question. The ride engine only ever sees users as `Actor`s.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.security import get_pin_hash, normalize_answer, verify_pin
from backend.app.domain.rides.records import Actor
from backend.app.models.enums import UserRole
from backend.app.models.user import User

logger = logging.getLogger(__name__)


class UserAlreadyExistsError(Exception):
    pass


class IdentityProvider:
    """User directory backed by the `users` table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_actor(self, user_id: str) -> Optional[Actor]:
        user = await self.get_user(user_id)
        return Actor.model_validate(user) if user else None

    async def register(
        self,
        phone_number: str,
        name: str,
        pin: str,
        role: Optional[UserRole] = None,
        security_question: Optional[str] = None,
        security_answer: Optional[str] = None,
    ) -> User:
        """
        Create a user whose id is their phone number.

        Raises:
            UserAlreadyExistsError: the phone number is taken
        """
        if await self.get_user(phone_number):
            raise UserAlreadyExistsError(phone_number)

        user = User(
            id=phone_number,
            phone_number=phone_number,
            name=name,
            hashed_pin=get_pin_hash(pin),
            role=role,
            security_question=security_question,
            hashed_security_answer=get_pin_hash(normalize_answer(security_answer)) if security_answer else None,
            is_active=True,
        )
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        logger.info("Registered user %s as %s", user.id, role.value if role else "no role")
        return user

    async def authenticate(self, phone_number: str, pin: str) -> Optional[User]:
        """The user if the PIN matches, None otherwise."""
        user = await self.get_user(phone_number)
        if user is None or not verify_pin(pin, user.hashed_pin):
            return None
        return user

    async def set_role(self, user: User, role: UserRole) -> User:
        user.role = role
        await self.db.commit()
        await self.db.refresh(user)
        logger.info("User %s is now a %s", user.id, role.value)
        return user

    async def get_security_question(self, phone_number: str) -> Optional[str]:
        user = await self.get_user(phone_number)
        return user.security_question if user else None

    async def reset_pin(self, phone_number: str, security_answer: str, new_pin: str) -> bool:
        """Replace the PIN if the security answer matches."""
        user = await self.get_user(phone_number)
        if user is None or not user.hashed_security_answer:
            return False
        if not verify_pin(normalize_answer(security_answer), user.hashed_security_answer):
            return False
        user.hashed_pin = get_pin_hash(new_pin)
        await self.db.commit()
        logger.info("PIN reset for user %s", user.id)
        return True
