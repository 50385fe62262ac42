"""Families and their settings.

Stored at: ``/families/{family_id}``; members are the ``/users`` documents
whose ``familyId`` points here.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import Field, computed_field

from staccato.contracts.common import FirestoreModel
from staccato.contracts.enums import UserPermissionLevel
from staccato.contracts.user import User

MAX_FAMILY_NAME_LENGTH = 100


class FamilySettings(FirestoreModel):
    """Family-wide preferences. Every field has a default."""

    timezone: str = "UTC"
    allow_child_registration: bool = True
    require_task_approval: bool = False
    enable_notifications: bool = True
    allow_guest_access: bool = False
    max_family_members: int = Field(default=10, ge=1, le=50)
    default_child_permissions: list[str] = Field(default_factory=list)
    enable_location_sharing: bool = False
    require_parental_approval: bool = True


class Family(FirestoreModel):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    primary_user_id: str = Field(..., min_length=1)
    settings: FamilySettings = Field(default_factory=FamilySettings)
    created_at: datetime
    updated_at: datetime | None = None


def _validate_name(name: str) -> list[str]:
    stripped = name.strip()
    if not stripped:
        return ["Family name cannot be empty"]
    if len(stripped) > MAX_FAMILY_NAME_LENGTH:
        return [f"Family name cannot exceed {MAX_FAMILY_NAME_LENGTH} characters"]
    return []


class FamilyCreateRequest(FirestoreModel):
    """Payload of ``POST /api/families``."""

    name: str
    settings: FamilySettings | None = None

    def validate_request(self) -> list[str]:
        return _validate_name(self.name)


class FamilyUpdateRequest(FirestoreModel):
    """Payload of ``PUT /api/families/{id}``; omitted fields are left unchanged."""

    name: str | None = None
    settings: FamilySettings | None = None

    @property
    def has_updates(self) -> bool:
        return self.name is not None or self.settings is not None

    def validate_request(self) -> list[str]:
        if not self.has_updates:
            return ["At least one field must be provided for update"]
        if self.name is not None:
            return _validate_name(self.name)
        return []

    def apply_to(self, family: Family) -> Family:
        """Return a copy of ``family`` with this request's changes applied."""
        changes: dict = {"updated_at": datetime.now(timezone.utc)}
        if self.name is not None:
            changes["name"] = self.name.strip()
        if self.settings is not None:
            changes["settings"] = self.settings
        return family.model_copy(update=changes)


class FamilyMemberSummary(FirestoreModel):
    """Public view of a family member."""

    id: str
    display_name: str
    permission_level: UserPermissionLevel
    profile_image_url: str | None = None

    @classmethod
    def from_user(cls, user: User) -> "FamilyMemberSummary":
        return cls(
            id=user.id,
            display_name=user.display_name,
            permission_level=user.permission_level,
            profile_image_url=user.profile_image_url,
        )


class FamilyWithMembersResponse(FirestoreModel):
    family: Family
    members: list[FamilyMemberSummary] = Field(default_factory=list)

    @computed_field(alias="memberCount")  # type: ignore[prop-decorator]
    @property
    def member_count(self) -> int:
        return len(self.members)

    @computed_field(alias="isAtMemberLimit")  # type: ignore[prop-decorator]
    @property
    def is_at_member_limit(self) -> bool:
        """True when no further member can join under the family settings."""
        return self.member_count >= self.family.settings.max_family_members

    def with_sorted_members(self) -> "FamilyWithMembersResponse":
        """Primary user first, then adults before children, then by name."""
        primary_id = self.family.primary_user_id

        def sort_key(member: FamilyMemberSummary):
            return (
                member.id != primary_id,
                not member.permission_level.is_adult,
                member.display_name.lower(),
            )

        return self.model_copy(update={"members": sorted(self.members, key=sort_key)})
