"""Pydantic schemas for the login flow.

The mobile client speaks camelCase (``tenantId``, ``accessToken``), so
every model here uses a camelCase alias generator; snake_case names are
accepted on input as well.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class LoginRequest(CamelModel):
    # Blank values are answered by the flow (NotFound / InvalidCredentials).
    identifier: str = Field(..., max_length=255)
    password: str
    # Parsed by the login flow; an id that is not a UUID names no center.
    tenant_id: Optional[str] = None


class SessionRead(CamelModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class AccountRead(CamelModel):
    id: uuid.UUID
    full_name: str
    email: Optional[str] = None


class LoginResponse(CamelModel):
    session: SessionRead
    account: AccountRead


class LoginError(CamelModel):
    error_kind: str
    message: str


class RefreshRequest(CamelModel):
    refresh_token: str


class MembershipRead(CamelModel):
    id: uuid.UUID
    role: str
    center_id: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None


class ProfileRead(AccountRead):
    phone: Optional[str] = None
    is_active: bool = True


class MeResponse(CamelModel):
    """Everything the client needs to (re)build its capability cache."""
    account: ProfileRead
    memberships: list[MembershipRead] = []
    center_id: Optional[uuid.UUID] = None


class PasswordChange(CamelModel):
    current_password: str
    new_password: str = Field(..., min_length=6)
