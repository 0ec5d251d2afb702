from __future__ import annotations

from typing import Any

from shield_portal.application.dto.principal import Principal
from shield_portal.domain.value_objects.enums import Role


def principal_from_claims(payload: dict[str, Any]) -> Principal:
    role_raw = payload.get("role", "user")
    role = Role(role_raw) if role_raw in Role.__members__.values() else Role.USER
    return Principal(
        role=role,
        subject_id=int(payload["sub"]),
        scopes=payload.get("scopes", []),
    )
