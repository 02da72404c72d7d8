"""Auth-related enums."""

from enum import Enum


class Role(str, Enum):
    """
    Organization member roles.

    - USER: Fills in and submits forms
    - ANALYST: Reviews submissions
    - ADMIN: Builds form templates and reviews submissions
    """

    USER = "user"
    ANALYST = "analyst"
    ADMIN = "admin"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_
