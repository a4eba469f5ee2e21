"""Schema definitions for user records.

Maps to the ``users`` table. Users are read-only from the alerting
core's perspective: they are only consumed to resolve notification
recipients and resolver attribution.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

UserRole = Literal["admin", "collector", "operator"]

VALID_ROLES: frozenset[str] = frozenset({
    "admin",
    "collector",
    "operator",
})


@dataclass
class User:
    """An operator account.

    Attributes:
        user_id: UUID4 identifier.
        email: Unique email address (email delivery target).
        full_name: Display name.
        phone: Optional phone number (SMS delivery target).
        role: admin, collector or operator.
        is_active: Inactive users never receive notifications.
    """

    email: str
    full_name: str
    role: str = "collector"
    user_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    phone: str | None = None
    is_active: bool = True
    created_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def __post_init__(self) -> None:
        if self.role not in VALID_ROLES:
            raise ValueError(
                f"Invalid role {self.role!r}. "
                f"Must be one of: {sorted(VALID_ROLES)}"
            )

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "id": self.user_id,
            "email": self.email,
            "full_name": self.full_name,
            "phone": self.phone,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat(),
        }
