from __future__ import annotations

from dataclasses import dataclass, field

from shield_portal.domain.value_objects.enums import Role


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller identity extracted from JWT."""

    role: Role
    subject_id: int
    scopes: list[str] = field(default_factory=list)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN or "admin" in self.scopes
