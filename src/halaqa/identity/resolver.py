"""Identifier resolution — free text on the login screen to one account.

People sign in with their display name far more often than with an
email, and display names repeat (two students called "Ahmed" in
different centers is normal). Resolution therefore never picks an
arbitrary match:

- email-shaped identifier: exact match on the contact email, then on
  the canonical login handle. Both are unique, so at most one hit.
- anything else: every account whose trimmed name equals the trimmed
  identifier. One hit wins. Several hits need a center hint; without
  one the answer is AmbiguousIdentifier.
"""

from __future__ import annotations

import re
import uuid
from typing import Optional

import structlog

from halaqa.identity.errors import ErrorKind, Outcome, fail
from halaqa.identity.ports import AccountDirectory, AccountRecord
from halaqa.identity.roles import grants_access

logger = structlog.get_logger()

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def looks_like_email(identifier: str) -> bool:
    return bool(EMAIL_RE.match(identifier))


class IdentifierResolver:
    """Maps (identifier, optional center) to exactly one account. Read only."""

    def __init__(self, directory: AccountDirectory):
        self.directory = directory

    async def resolve(
        self, identifier: str, center_id: Optional[uuid.UUID] = None
    ) -> Outcome[AccountRecord]:
        ident = (identifier or "").strip()
        if not ident:
            return fail(ErrorKind.NOT_FOUND)

        if looks_like_email(ident):
            return await self._resolve_email(ident)
        return await self._resolve_name(ident, center_id)

    async def _resolve_email(self, email: str) -> Outcome[AccountRecord]:
        account = await self.directory.find_by_email(email)
        if account is None:
            # Accounts created before contact emails were stored only have
            # the address as their login handle.
            account = await self.directory.find_by_login_handle(email)
        if account is None:
            return fail(ErrorKind.NOT_FOUND)
        return account

    async def _resolve_name(
        self, name: str, center_id: Optional[uuid.UUID]
    ) -> Outcome[AccountRecord]:
        candidates = await self.directory.find_by_display_name(name)
        if not candidates:
            return fail(ErrorKind.NOT_FOUND)
        if len(candidates) == 1:
            return candidates[0]

        if center_id is None:
            logger.info("halaqa.resolve.ambiguous", candidates=len(candidates))
            return fail(ErrorKind.AMBIGUOUS_IDENTIFIER)

        for candidate in candidates:
            grants = await self.directory.memberships_for(candidate.id)
            if grants_access(grants, center_id):
                logger.info(
                    "halaqa.resolve.disambiguated",
                    candidates=len(candidates),
                    account_id=str(candidate.id),
                    center_id=str(center_id),
                )
                return candidate

        return fail(ErrorKind.NO_ACCOUNT_IN_TENANT)
