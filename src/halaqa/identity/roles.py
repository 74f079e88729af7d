"""Roles and the role x center capability checks.

The same checks gate the login flow, the server-side admin endpoints and
the client-side capability cache, so they live in one place.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional


class Role(str, Enum):
    SUPER_ADMIN = "super_admin"
    CENTER_ADMIN = "center_admin"
    TEACHER = "teacher"
    COMMUNICATION_OFFICER = "communication_officer"
    PARENT = "parent"
    STUDENT = "student"

    @property
    def is_global(self) -> bool:
        """Global roles carry no center and authorize every center."""
        return self in GLOBAL_ROLES


GLOBAL_ROLES = frozenset({Role.SUPER_ADMIN})


@dataclass(frozen=True)
class Grant:
    """One (role, center) membership, detached from the database row."""

    role: Role
    center_id: Optional[uuid.UUID] = None
    id: Optional[uuid.UUID] = None

    @property
    def is_global(self) -> bool:
        return self.role.is_global


def _as_uuid(value: uuid.UUID | str) -> uuid.UUID:
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))


def grants_access(grants: Iterable[Grant], center_id: uuid.UUID | str) -> bool:
    """True if any grant is global or scoped to ``center_id``."""
    target = _as_uuid(center_id)
    return any(g.is_global or g.center_id == target for g in grants)


class Capabilities:
    """Read-only view over an account's memberships."""

    def __init__(self, grants: Iterable[Grant] = ()):
        self._grants: tuple[Grant, ...] = tuple(grants)

    @property
    def grants(self) -> tuple[Grant, ...]:
        return self._grants

    @property
    def is_super_admin(self) -> bool:
        return any(g.is_global for g in self._grants)

    def has_role(self, role: Role | str) -> bool:
        try:
            wanted = Role(role)
        except ValueError:
            return False
        return any(g.role == wanted for g in self._grants)

    def can_access_center(self, center_id: uuid.UUID | str) -> bool:
        try:
            return grants_access(self._grants, center_id)
        except ValueError:
            return False

    def has_role_in(self, role: Role, center_id: uuid.UUID | str) -> bool:
        """Role held for this specific center (global roles do not count)."""
        try:
            target = _as_uuid(center_id)
        except ValueError:
            return False
        return any(g.role == role and g.center_id == target for g in self._grants)

    def centers(self) -> set[uuid.UUID]:
        return {g.center_id for g in self._grants if g.center_id is not None}

    def __bool__(self) -> bool:
        return bool(self._grants)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Capabilities):
            return NotImplemented
        return set(self._grants) == set(other._grants)

    def __repr__(self) -> str:
        return f"Capabilities({list(self._grants)!r})"
