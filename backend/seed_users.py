"""
Database seeding script for initial users.

Creates a test passenger and a test driver for development.
Run this script after database is set up but before first use.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from backend.app.db.session import AsyncSessionLocal, Base, engine
from backend.app.models.enums import UserRole
from backend.app.services.identity import IdentityProvider

# Import models to ensure they are registered with Base
from backend.app.models.user import User  # noqa: F401
from backend.app.models.ride import Ride  # noqa: F401
from backend.app.models.notification import Notification  # noqa: F401
from backend.app.models.audit_log import AuditLog  # noqa: F401

SEED_USERS = [
    {
        "phone_number": "1234567890",
        "name": "Test Passenger",
        "pin": "1234",
        "role": UserRole.PASSENGER,
        "security_question": "What is the name of your college?",
        "security_answer": "campus",
    },
    {
        "phone_number": "0987654321",
        "name": "Test Driver",
        "pin": "4321",
        "role": UserRole.DRIVER,
        "security_question": "What is the name of your college?",
        "security_answer": "campus",
    },
]


async def seed_users():
    """Seed one passenger and one driver, skipping any that already exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        identity = IdentityProvider(db)
        print("Starting user seeding...")

        for data in SEED_USERS:
            if await identity.get_user(data["phone_number"]):
                print(f"  {data['name']} ({data['phone_number']}) already exists, skipping")
                continue
            await identity.register(**data)
            print(f"  Created {data['role'].value}: {data['phone_number']} / PIN {data['pin']}")

        print("\nUser seeding completed.")


if __name__ == "__main__":
    asyncio.run(seed_users())
