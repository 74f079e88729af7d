"""Account service — centers, accounts and role grants.

Service layer separates business logic from HTTP routing: routes check
who may do what, this module does it. Accounts are never deleted, only
disabled; memberships are never edited, only granted or revoked.
"""

import re
import time
import uuid
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from halaqa.auth.password import hash_password
from halaqa.config import settings
from halaqa.db.models import Account, Center, Membership
from halaqa.identity.roles import Role

logger = structlog.get_logger()


class DuplicateAccount(Exception):
    """Email or login handle already belongs to another account."""


class DuplicateMembership(Exception):
    """The account already holds that role in that center."""


def generate_login_handle(name: str, now_ms: Optional[int] = None,
                          domain: Optional[str] = None) -> str:
    """Synthetic login handle for accounts created without an email.

    "Ahmed Ali" → "ahmed_ali_1760000000000@quran.local". Non-ASCII
    word characters are dropped, so an Arabic-only name becomes "user".
    """
    sanitized = re.sub(r"\s+", "_", name.strip().lower())
    sanitized = re.sub(r"[^\w]", "", sanitized, flags=re.ASCII).strip("_")
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{sanitized or 'user'}_{stamp}@{domain or settings.synthetic_email_domain}"


class AccountService:
    """Business logic for identity administration."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Centers ────────────────────────────────────────

    async def create_center(
        self,
        name: str,
        description: Optional[str] = None,
        location: Optional[str] = None,
        requires_approval: bool = False,
    ) -> Center:
        center = Center(
            name=name,
            description=description,
            location=location,
            requires_approval=requires_approval,
        )
        self.db.add(center)
        await self.db.flush()
        logger.info("halaqa.center.created", center_id=str(center.id))
        return center

    async def list_active_centers(self) -> list[Center]:
        result = await self.db.execute(
            select(Center).where(Center.is_active.is_(True)).order_by(Center.name)
        )
        return list(result.scalars().all())

    async def get_center(self, center_id: uuid.UUID) -> Center | None:
        return await self.db.get(Center, center_id)

    # ─── Accounts ───────────────────────────────────────

    async def get_account(self, account_id: uuid.UUID) -> Account | None:
        result = await self.db.execute(
            select(Account)
            .where(Account.id == account_id)
            .options(selectinload(Account.memberships))
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def _handle_taken(self, handle: str) -> bool:
        result = await self.db.execute(
            select(Account.id).where(Account.login_handle == handle)
        )
        return result.first() is not None

    async def _new_login_handle(self, name: str) -> str:
        stamp = int(time.time() * 1000)
        handle = generate_login_handle(name, stamp)
        while await self._handle_taken(handle):
            stamp += 1
            handle = generate_login_handle(name, stamp)
        return handle

    async def create_account(
        self,
        full_name: str,
        password: str,
        role: Role,
        center_id: Optional[uuid.UUID] = None,
        email: Optional[str] = None,
        username: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Account:
        """Create an account with its first role.

        With an email, the email is both the contact address and the
        login handle. Without one, the contact email stays empty and the
        login handle is synthetic.
        """
        full_name = full_name.strip()
        if email:
            if await self._handle_taken(email):
                raise DuplicateAccount(email)
            result = await self.db.execute(select(Account.id).where(Account.email == email))
            if result.first() is not None:
                raise DuplicateAccount(email)
            handle = email
        else:
            handle = await self._new_login_handle(username or full_name)

        account = Account(
            full_name=full_name,
            email=email or None,
            login_handle=handle,
            password_hash=hash_password(password),
            phone=phone,
        )
        self.db.add(account)
        await self.db.flush()

        self.db.add(Membership(
            account_id=account.id,
            role=role.value,
            center_id=None if role.is_global else center_id,
        ))
        await self.db.commit()

        logger.info(
            "halaqa.account.created",
            account_id=str(account.id),
            role=role.value,
            center_id=str(center_id) if center_id else None,
        )
        return await self.get_account(account.id)

    async def set_active(self, account_id: uuid.UUID, active: bool) -> Account | None:
        account = await self.get_account(account_id)
        if account is None:
            return None
        account.is_active = active
        await self.db.commit()
        logger.info(
            "halaqa.account.status_changed",
            account_id=str(account_id),
            is_active=active,
        )
        return await self.get_account(account_id)

    async def set_password(self, account_id: uuid.UUID, password: str) -> None:
        account = await self.db.get(Account, account_id)
        account.password_hash = hash_password(password)
        await self.db.commit()
        logger.info("halaqa.account.password_changed", account_id=str(account_id))

    # ─── Memberships ────────────────────────────────────

    async def grant(
        self, account_id: uuid.UUID, role: Role, center_id: Optional[uuid.UUID]
    ) -> Membership:
        center_id = None if role.is_global else center_id
        q = select(Membership).where(
            Membership.account_id == account_id,
            Membership.role == role.value,
            Membership.center_id.is_(None) if center_id is None
            else Membership.center_id == center_id,
        )
        result = await self.db.execute(q)
        if result.scalars().first():
            raise DuplicateMembership(role.value)

        membership = Membership(account_id=account_id, role=role.value, center_id=center_id)
        self.db.add(membership)
        await self.db.commit()
        logger.info(
            "halaqa.membership.granted",
            account_id=str(account_id),
            role=role.value,
            center_id=str(center_id) if center_id else None,
        )
        return membership

    async def get_membership(
        self, account_id: uuid.UUID, membership_id: uuid.UUID
    ) -> Membership | None:
        membership = await self.db.get(Membership, membership_id)
        if membership is None or membership.account_id != account_id:
            return None
        return membership

    async def revoke(self, membership: Membership) -> None:
        await self.db.delete(membership)
        await self.db.commit()
        logger.info(
            "halaqa.membership.revoked",
            account_id=str(membership.account_id),
            role=membership.role,
        )
