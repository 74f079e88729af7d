"""Center membership check for a resolved account.

Runs before any password comparison, so a correct password for an
account outside the selected center never produces a session and the
caller only learns that the account/center pairing is invalid.
"""

from __future__ import annotations

import uuid
from typing import Optional

from halaqa.identity.errors import ErrorKind, Outcome, fail
from halaqa.identity.ports import AccountDirectory, AccountRecord
from halaqa.identity.roles import Grant


class TenantMembershipValidator:
    def __init__(self, directory: AccountDirectory):
        self.directory = directory

    async def validate(
        self, account: AccountRecord, center_id: Optional[uuid.UUID] = None
    ) -> Outcome[list[Grant]]:
        """Return the account's grants if it may sign in under ``center_id``.

        No center means the choice is deferred until after sign-in (the
        super admin screen), so the check passes without loading anything.
        """
        if center_id is None:
            return []

        grants = await self.directory.memberships_for(account.id)
        if not grants:
            return fail(ErrorKind.NO_MEMBERSHIP)
        if any(g.is_global for g in grants):
            return grants
        if any(g.center_id == center_id for g in grants):
            return grants
        return fail(ErrorKind.TENANT_MISMATCH)
