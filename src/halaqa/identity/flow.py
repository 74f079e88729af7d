"""The login pipeline: resolve → validate → verify → issue.

Each stage returns its value or a LoginFailure and the next stage only
runs on success. The order is the security property: the center check
happens before any password comparison, and the password comparison is
the only stage whose failure is opaque.

Every collaborator call is bounded by ``timeout`` seconds. A timeout or
an unreachable backend ends the attempt with NetworkError; the pipeline
holds no state between attempts, so the caller can simply retry.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass
from typing import Awaitable, Optional, TypeVar, Union

import structlog

from halaqa.config import settings
from halaqa.identity.credentials import CredentialVerifier
from halaqa.identity.errors import ErrorKind, LoginFailure, fail
from halaqa.identity.ports import (
    AccountDirectory,
    AccountRecord,
    BackendUnavailable,
    PasswordVerifier,
    Session,
    TokenIssuer,
)
from halaqa.identity.resolver import IdentifierResolver
from halaqa.identity.sessions import SessionIssuer
from halaqa.identity.validator import TenantMembershipValidator

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass(frozen=True)
class LoginSuccess:
    session: Session
    account: AccountRecord


LoginResult = Union[LoginSuccess, LoginFailure]

# No center is stored under the nil UUID. Unparseable tenant ids map to it.
NO_SUCH_CENTER = uuid.UUID(int=0)


def parse_center_id(value: Union[uuid.UUID, str, None]) -> Optional[uuid.UUID]:
    """Normalize a tenant id from the wire. Blank means no center."""
    if value is None or isinstance(value, uuid.UUID):
        return value
    value = value.strip()
    if not value:
        return None
    try:
        return uuid.UUID(value)
    except ValueError:
        return NO_SUCH_CENTER


class LoginFlow:
    def __init__(
        self,
        directory: AccountDirectory,
        passwords: PasswordVerifier,
        tokens: TokenIssuer,
        timeout: Optional[float] = None,
    ):
        self.resolver = IdentifierResolver(directory)
        self.validator = TenantMembershipValidator(directory)
        self.verifier = CredentialVerifier(passwords)
        self.issuer = SessionIssuer(tokens)
        self.timeout = settings.backend_timeout_seconds if timeout is None else timeout

    async def _bounded(self, step: Awaitable[T]) -> T:
        return await asyncio.wait_for(step, timeout=self.timeout)

    async def login(
        self,
        identifier: str,
        password: str,
        center_id: Union[uuid.UUID, str, None] = None,
    ) -> LoginResult:
        center_id = parse_center_id(center_id)
        try:
            result = await self._run(identifier, password, center_id)
        except (asyncio.TimeoutError, BackendUnavailable) as e:
            logger.warning(
                "halaqa.login.backend_unavailable",
                error=type(e).__name__,
                center_id=str(center_id) if center_id else None,
            )
            return fail(ErrorKind.NETWORK_ERROR)

        if isinstance(result, LoginFailure):
            logger.info(
                "halaqa.login.failed",
                error_kind=result.kind.value,
                center_id=str(center_id) if center_id else None,
            )
        else:
            logger.info(
                "halaqa.login.succeeded",
                account_id=str(result.account.id),
                center_id=str(center_id) if center_id else None,
            )
        return result

    async def _run(
        self, identifier: str, password: str, center_id: Optional[uuid.UUID]
    ) -> LoginResult:
        account = await self._bounded(self.resolver.resolve(identifier, center_id))
        if isinstance(account, LoginFailure):
            return account

        grants = await self._bounded(self.validator.validate(account, center_id))
        if isinstance(grants, LoginFailure):
            return grants

        verified = await self._bounded(
            self.verifier.verify(account.login_handle, password)
        )
        if isinstance(verified, LoginFailure):
            return verified

        session = await self._bounded(self.issuer.issue(verified, center_id))
        return LoginSuccess(session=session, account=account)
