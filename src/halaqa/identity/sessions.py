"""Session issuance.

No session table is owned here: the issuer only brokers the token pair
the token collaborator mints for a verified account.
"""

from __future__ import annotations

import uuid
from typing import Optional

from halaqa.identity.credentials import VerifiedCredentials
from halaqa.identity.ports import Session, TokenIssuer


class SessionIssuer:
    def __init__(self, tokens: TokenIssuer):
        self.tokens = tokens

    async def issue(
        self, verified: VerifiedCredentials, center_id: Optional[uuid.UUID] = None
    ) -> Session:
        return await self.tokens.issue_tokens(verified.account_id, center_id)
