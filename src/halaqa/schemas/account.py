"""Pydantic schemas for center and account administration."""

import uuid
from datetime import datetime
from typing import Literal, Optional

from pydantic import Field, model_validator

from halaqa.identity.roles import Role
from halaqa.schemas.auth import CamelModel, MembershipRead


# ─── Centers ────────────────────────────────────────────

class CenterCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    location: Optional[str] = Field(None, max_length=200)
    requires_approval: bool = False


class CenterRead(CamelModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    location: Optional[str] = None
    is_active: bool
    requires_approval: bool
    created_at: Optional[datetime] = None


# ─── Accounts ───────────────────────────────────────────

class MembershipCreate(CamelModel):
    role: Role
    center_id: Optional[uuid.UUID] = None

    @model_validator(mode="after")
    def center_matches_role(self):
        if self.role.is_global and self.center_id is not None:
            raise ValueError(f"{self.role.value} is not scoped to a center")
        if not self.role.is_global and self.center_id is None:
            raise ValueError(f"{self.role.value} requires a center")
        return self


class AccountCreate(MembershipCreate):
    full_name: str = Field(..., min_length=1, max_length=200)
    password: str = Field(..., min_length=6)
    email: Optional[str] = Field(
        None, max_length=255, pattern=r"^[^\s@]+@[^\s@]+\.[^\s@]+$"
    )
    username: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=50)


class AccountDetail(CamelModel):
    id: uuid.UUID
    full_name: str
    email: Optional[str] = None
    login_handle: str
    phone: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    memberships: list[MembershipRead] = []


class StatusChange(CamelModel):
    action: Literal["enable", "disable"]
