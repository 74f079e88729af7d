"""SQL-backed collaborators for the login pipeline.

SqlAccountDirectory answers the account / membership lookups and the
password check; JwtTokenIssuer mints the session tokens. Driver errors
are translated to BackendUnavailable so the pipeline can report a
NetworkError without importing SQLAlchemy.
"""

import asyncio
import uuid
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from sqlalchemy import exc as sa_exc
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from halaqa.auth.jwt import create_access_token, create_refresh_token
from halaqa.auth.password import DUMMY_HASH, verify_password
from halaqa.db.models import Account, Membership
from halaqa.identity.ports import AccountRecord, BackendUnavailable, Session
from halaqa.identity.roles import Grant

logger = structlog.get_logger()


def to_record(account: Account) -> AccountRecord:
    return AccountRecord(
        id=account.id,
        full_name=account.full_name,
        login_handle=account.login_handle,
        email=account.email,
        is_active=account.is_active,
        created_at=account.created_at,
    )


@asynccontextmanager
async def _backend_errors(operation: str):
    try:
        yield
    except (
        sa_exc.DBAPIError,
        sa_exc.DisconnectionError,
        sa_exc.TimeoutError,
        OSError,
    ) as e:
        logger.warning("halaqa.directory.unavailable", operation=operation, error=str(e))
        raise BackendUnavailable(operation) from e


class SqlAccountDirectory:
    """Account directory and password primitive over the accounts tables."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _one(self, query) -> Optional[AccountRecord]:
        result = await self.db.execute(query)
        account = result.scalars().first()
        return to_record(account) if account else None

    async def find_by_email(self, email: str) -> Optional[AccountRecord]:
        async with _backend_errors("find_by_email"):
            return await self._one(select(Account).where(Account.email == email))

    async def find_by_login_handle(self, login_handle: str) -> Optional[AccountRecord]:
        async with _backend_errors("find_by_login_handle"):
            return await self._one(
                select(Account).where(Account.login_handle == login_handle)
            )

    async def find_by_display_name(self, name: str) -> list[AccountRecord]:
        q = (
            select(Account)
            .where(func.trim(Account.full_name) == name.strip())
            .order_by(Account.created_at, Account.id)
        )
        async with _backend_errors("find_by_display_name"):
            result = await self.db.execute(q)
            return [to_record(a) for a in result.scalars().all()]

    async def memberships_for(self, account_id: uuid.UUID) -> list[Grant]:
        q = (
            select(Membership)
            .where(Membership.account_id == account_id)
            .order_by(Membership.created_at, Membership.id)
        )
        async with _backend_errors("memberships_for"):
            result = await self.db.execute(q)
            return [m.to_grant() for m in result.scalars().all()]

    async def verify_password(self, login_handle: str, password: str) -> Optional[uuid.UUID]:
        async with _backend_errors("verify_password"):
            result = await self.db.execute(
                select(Account.id, Account.password_hash, Account.is_active).where(
                    Account.login_handle == login_handle
                )
            )
            row = result.first()

        # bcrypt runs even for unknown handles so a miss costs the same.
        password_hash = row.password_hash if row else DUMMY_HASH
        matches = await asyncio.to_thread(verify_password, password, password_hash)
        if row is None or not matches or not row.is_active:
            return None
        return row.id


class JwtTokenIssuer:
    """Token primitive: a signed access/refresh pair, no server-side state."""

    async def issue_tokens(
        self, account_id: uuid.UUID, center_id: Optional[uuid.UUID] = None
    ) -> Session:
        center = str(center_id) if center_id else None
        return Session(
            access_token=create_access_token(str(account_id), center_id=center),
            refresh_token=create_refresh_token(str(account_id), center_id=center),
            account_id=account_id,
            center_id=center_id,
        )
