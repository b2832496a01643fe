"""
Identity References

Money in the ledger always concerns a specific person, who is either a
registered household member or an external contact, never both.

DESIGN DECISION: A person is a tagged value (kind + id) rather than two
independently nullable fields. There is one constructor per variant, and
the "both set" / "neither set" cases are rejected the moment a reference
is built from raw optional IDs. The kind is part of equality and hashing,
so a member and a contact can never collide as balance map keys.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PersonKind(str, Enum):
    """Which side of the union a reference lives on."""
    MEMBER = "member"
    CONTACT = "contact"


class PersonRef(BaseModel):
    """
    Reference to a household member or an external contact.

    Frozen (and therefore hashable) so it can key balance maps directly.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    kind: PersonKind
    id: str = Field(
        ...,
        min_length=1,
        description="User ID for members, contact ID for contacts"
    )

    @classmethod
    def member(cls, user_id: str) -> "PersonRef":
        return cls(kind=PersonKind.MEMBER, id=user_id)

    @classmethod
    def contact(cls, contact_id: str) -> "PersonRef":
        return cls(kind=PersonKind.CONTACT, id=contact_id)

    @classmethod
    def from_ids(
        cls,
        user_id: Optional[str],
        contact_id: Optional[str],
    ) -> "PersonRef":
        """
        Collapse an optional (user_id, contact_id) pair into a reference.

        Empty strings count as unset.

        Raises:
            ValueError: If both or neither ID is set.
        """
        has_user = bool(user_id)
        has_contact = bool(contact_id)
        if has_user and has_contact:
            raise ValueError("cannot reference both a member and a contact")
        if not has_user and not has_contact:
            raise ValueError("exactly one of user_id or contact_id is required")
        if has_user:
            return cls.member(user_id)
        return cls.contact(contact_id)

    @property
    def is_member(self) -> bool:
        return self.kind == PersonKind.MEMBER

    @property
    def user_id(self) -> Optional[str]:
        return self.id if self.kind == PersonKind.MEMBER else None

    @property
    def contact_id(self) -> Optional[str]:
        return self.id if self.kind == PersonKind.CONTACT else None

    def sort_key(self) -> tuple[str, str]:
        """Stable ordering key used to make outputs deterministic."""
        return (self.kind.value, self.id)

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"
