"""Enumerations shared across Staccato contracts."""

from enum import Enum


class UserPermissionLevel(str, Enum):
    """Role of a user within their family, from most to least privileged."""
    PRIMARY = "primary"
    ADULT = "adult"
    CHILD = "child"

    @classmethod
    def from_string(cls, value: str) -> "UserPermissionLevel":
        """Case-insensitive lookup by value."""
        try:
            return cls(value.lower())
        except ValueError:
            valid = ", ".join(level.value for level in cls)
            raise ValueError(
                f"Invalid permission level: {value}. Valid values are: {valid}"
            ) from None

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            for level in cls:
                if level.value == value.lower():
                    return level
        return None

    @property
    def is_admin(self) -> bool:
        return self is UserPermissionLevel.PRIMARY

    @property
    def is_adult(self) -> bool:
        return self in (UserPermissionLevel.PRIMARY, UserPermissionLevel.ADULT)

    @property
    def can_manage_users(self) -> bool:
        return self is UserPermissionLevel.PRIMARY

    @property
    def can_modify_family_settings(self) -> bool:
        return self is UserPermissionLevel.PRIMARY

    def has_authority_over(self, other: "UserPermissionLevel") -> bool:
        """True when this level is at least as privileged as ``other``."""
        order = list(UserPermissionLevel)
        return order.index(self) <= order.index(other)
