"""
Collaborator interfaces consumed by the login pipeline.

Keep these small and storage-agnostic so tests can supply simple fakes.
The production implementations live in ``halaqa.services.directory``.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

from halaqa.identity.roles import Grant


@dataclass(frozen=True)
class AccountRecord:
    """What the pipeline knows about an account. Never carries the password hash."""

    id: uuid.UUID
    full_name: str
    login_handle: str
    email: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class Session:
    """Token pair minted for one account."""

    access_token: str
    refresh_token: str
    account_id: uuid.UUID
    center_id: Optional[uuid.UUID] = None


class BackendUnavailable(Exception):
    """A collaborator could not be reached or failed below the domain level.

    Implementations translate driver errors into this so the pipeline can
    report NetworkError without knowing the storage engine.
    """


class AccountDirectory(Protocol):
    """Account lookups by identifier, plus membership lookup by account id.

    Permissions:
        Read only. Implementations must never return the password hash.
    """

    async def find_by_email(self, email: str) -> Optional[AccountRecord]: ...

    async def find_by_login_handle(self, login_handle: str) -> Optional[AccountRecord]: ...

    async def find_by_display_name(self, name: str) -> list[AccountRecord]:
        """Every account whose trimmed name equals ``name``, oldest first."""
        ...

    async def memberships_for(self, account_id: uuid.UUID) -> list[Grant]: ...


class PasswordVerifier(Protocol):
    """Password check keyed by canonical login handle.

    Returns the account id on success and None for any failure: unknown
    handle, wrong password and deactivated account all look the same.
    """

    async def verify_password(self, login_handle: str, password: str) -> Optional[uuid.UUID]: ...


class TokenIssuer(Protocol):
    async def issue_tokens(
        self, account_id: uuid.UUID, center_id: Optional[uuid.UUID] = None
    ) -> Session: ...


__all__ = [
    "AccountDirectory",
    "AccountRecord",
    "BackendUnavailable",
    "PasswordVerifier",
    "Session",
    "TokenIssuer",
]
