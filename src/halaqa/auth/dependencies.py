"""FastAPI auth dependencies.

Used as Depends() in route handlers to turn the Bearer access token into
the signed-in account plus its capabilities. A token for an account that
has since been deactivated or removed is treated as revoked (401), which
is what the client listens for to tear down its local state.
"""

import uuid
from typing import Optional

from fastapi import Depends, HTTPException, Header
from sqlalchemy.ext.asyncio import AsyncSession

from halaqa.auth.jwt import TokenError, verify_token
from halaqa.db.engine import get_db
from halaqa.db.models import Account
from halaqa.identity.roles import Capabilities, Role
from halaqa.services.directory import SqlAccountDirectory


class CurrentAccount:
    """The authenticated account making the request.

    All downstream code uses ``capabilities`` to decide what the caller
    may see or change.
    """

    def __init__(
        self,
        account: Account,
        capabilities: Capabilities,
        center_id: Optional[uuid.UUID] = None,
    ):
        self.account = account
        self.capabilities = capabilities
        self.center_id = center_id

    @property
    def id(self) -> uuid.UUID:
        return self.account.id

    def is_admin_of(self, center_id: Optional[uuid.UUID]) -> bool:
        """super_admin anywhere, or center_admin of ``center_id``."""
        if self.capabilities.is_super_admin:
            return True
        if center_id is None:
            return False
        return self.capabilities.has_role_in(Role.CENTER_ADMIN, center_id)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_account(
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> CurrentAccount:
    """Extract the signed-in account (required — 401 if no valid session)."""
    if not authorization or not authorization.startswith("Bearer "):
        raise _unauthorized("Authentication required")

    try:
        payload = verify_token(authorization[7:], expected_type="access")
        account_id = uuid.UUID(payload["sub"])
        center_id = uuid.UUID(payload["center_id"]) if payload.get("center_id") else None
    except TokenError as e:
        raise _unauthorized(str(e))
    except (KeyError, ValueError):
        raise _unauthorized("Invalid token subject")

    account = await db.get(Account, account_id)
    if account is None or not account.is_active:
        raise _unauthorized("Session revoked")

    grants = await SqlAccountDirectory(db).memberships_for(account.id)
    return CurrentAccount(account, Capabilities(grants), center_id)


async def require_super_admin(
    current: CurrentAccount = Depends(get_current_account),
) -> CurrentAccount:
    if not current.capabilities.is_super_admin:
        raise HTTPException(status_code=403, detail="Super admin role required")
    return current
