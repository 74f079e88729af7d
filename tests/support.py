"""Shared helpers for the test modules: seeding and logging in."""

import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from halaqa.auth.password import hash_password
from halaqa.db.models import Account, Center, Membership
from halaqa.identity.roles import Role

PASSWORD = "secret-pass"


class Seed:
    """Writes centers and accounts straight to the database."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def center(self, name: str = "Al-Noor Center", is_active: bool = True) -> Center:
        center = Center(name=name, is_active=is_active)
        self.db.add(center)
        await self.db.commit()
        return center

    async def account(
        self,
        full_name: str,
        password: str = PASSWORD,
        memberships: tuple = (),
        email: Optional[str] = None,
        login_handle: Optional[str] = None,
        is_active: bool = True,
    ) -> Account:
        """memberships: (Role, Center | None) pairs."""
        account = Account(
            full_name=full_name,
            email=email,
            login_handle=login_handle or email or f"{uuid.uuid4().hex}@quran.local",
            password_hash=hash_password(password, rounds=4),
            is_active=is_active,
        )
        self.db.add(account)
        await self.db.flush()
        for role, center in memberships:
            self.db.add(Membership(
                account_id=account.id,
                role=role.value,
                center_id=center.id if center is not None else None,
            ))
        await self.db.commit()
        return account

    async def super_admin(self, full_name: str = "Root Admin") -> Account:
        return await self.account(full_name, memberships=((Role.SUPER_ADMIN, None),))


async def login(client, identifier: str, password: str = PASSWORD, tenant_id=None):
    body = {"identifier": identifier, "password": password}
    if tenant_id is not None:
        body["tenantId"] = str(tenant_id)
    return await client.post("/api/v1/auth/login", json=body)


async def bearer(client, identifier: str, password: str = PASSWORD, tenant_id=None) -> dict:
    r = await login(client, identifier, password, tenant_id)
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['session']['accessToken']}"}
