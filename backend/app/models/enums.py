"""
User roles enumeration.

Defines the role types for the shared commute system.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        PASSENGER: Requests rides and reserves seats
        DRIVER: Posts rides, accepts requests and drives them

    A user may also have no role yet (stored as NULL).
    """
    PASSENGER = "passenger"
    DRIVER = "driver"
