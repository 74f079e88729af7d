"""Password check against the resolved account's login handle."""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from halaqa.identity.errors import ErrorKind, Outcome, fail
from halaqa.identity.ports import PasswordVerifier


@dataclass(frozen=True)
class VerifiedCredentials:
    account_id: uuid.UUID


class CredentialVerifier:
    """Only ever sees the canonical login handle, never what the user typed.

    Unknown handle, wrong password and disabled account all come back as
    InvalidCredentials so a password attempt is not an enumeration oracle.
    """

    def __init__(self, passwords: PasswordVerifier):
        self.passwords = passwords

    async def verify(self, login_handle: str, password: str) -> Outcome[VerifiedCredentials]:
        if not password:
            return fail(ErrorKind.INVALID_CREDENTIALS)
        account_id = await self.passwords.verify_password(login_handle, password)
        if account_id is None:
            return fail(ErrorKind.INVALID_CREDENTIALS)
        return VerifiedCredentials(account_id=account_id)
