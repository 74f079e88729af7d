"""Local capability cache — what the app knows about who is signed in.

Lifecycle:
    empty ──populate()──▶ signed in ──clear()──▶ empty

populate() runs after a successful sign-in and after the startup session
check; clear() on sign-out and when the server reports the session as
revoked. Only AuthClient calls them, under its lock; every other part of
the app only reads.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Iterable, Optional

from halaqa.identity.ports import Session
from halaqa.identity.roles import Capabilities, Grant, Role


@dataclass(frozen=True)
class Profile:
    id: uuid.UUID
    full_name: str
    email: Optional[str] = None
    phone: Optional[str] = None


class LocalCapabilityCache:
    def __init__(self):
        self._session: Optional[Session] = None
        self._profile: Optional[Profile] = None
        self._capabilities = Capabilities()
        self._selected_tenant_id: Optional[uuid.UUID] = None

    # ─── Writes (AuthClient only) ───────────────────────

    def populate(
        self,
        session: Session,
        profile: Profile,
        grants: Iterable[Grant],
        selected_tenant_id: Optional[uuid.UUID] = None,
    ) -> None:
        """Replace the whole state. Calling it twice with the same data is a no-op.

        A tenant selected under another account never carries over.
        """
        if self._session is not None and self._session.account_id != session.account_id:
            self._selected_tenant_id = None
        self._session = session
        self._profile = profile
        self._capabilities = Capabilities(grants)
        if selected_tenant_id is not None:
            self._selected_tenant_id = selected_tenant_id
        elif (
            self._selected_tenant_id is not None
            and not self._capabilities.can_access_center(self._selected_tenant_id)
        ):
            self._selected_tenant_id = None

    def select_tenant(self, tenant_id: Optional[uuid.UUID]) -> None:
        self._selected_tenant_id = tenant_id

    def clear(self) -> None:
        self._session = None
        self._profile = None
        self._capabilities = Capabilities()
        self._selected_tenant_id = None

    # ─── Reads ──────────────────────────────────────────

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def profile(self) -> Optional[Profile]:
        return self._profile

    @property
    def memberships(self) -> tuple[Grant, ...]:
        return self._capabilities.grants

    @property
    def selected_tenant_id(self) -> Optional[uuid.UUID]:
        return self._selected_tenant_id

    @property
    def is_signed_in(self) -> bool:
        return self._session is not None

    @property
    def is_super_admin(self) -> bool:
        return self._capabilities.is_super_admin

    def has_role(self, role: Role | str) -> bool:
        return self._capabilities.has_role(role)

    def can_access_tenant(self, tenant_id: uuid.UUID | str) -> bool:
        return self._capabilities.can_access_center(tenant_id)

    def snapshot(self) -> tuple:
        """Comparable view of the whole state."""
        return (
            self._session,
            self._profile,
            frozenset(self._capabilities.grants),
            self._selected_tenant_id,
        )
