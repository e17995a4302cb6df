"""
Security guards for role-based access control.

Ride operations enforce their own role and ownership rules; these guards
only keep users out of views that belong to the other role.
"""

from typing import List
from fastapi import Depends
from backend.app.models.enums import UserRole
from backend.app.core.dependencies import get_current_actor
from backend.app.core.exceptions import InsufficientPermissionsError
from backend.app.domain.rides.records import Actor


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.get("/driver/rides/upcoming")
        async def upcoming(actor: Actor = Depends(require_role([UserRole.DRIVER]))):
            ...

    Raises:
        InsufficientPermissionsError (403) if the user's role is not in allowed_roles
    """
    async def role_checker(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role is None:
            raise InsufficientPermissionsError("Choose a role before using this feature")

        if actor.role not in allowed_roles:
            raise InsufficientPermissionsError(
                f"Access denied. Required role: {', '.join([r.value for r in allowed_roles])}",
                details={"required_roles": [r.value for r in allowed_roles]}
            )

        return actor

    return role_checker


require_passenger = require_role([UserRole.PASSENGER])
require_driver = require_role([UserRole.DRIVER])
