"""AuthClient — drives sign-in/sign-out against the API and owns the cache.

Only this class writes to LocalCapabilityCache. Writes are serialized by
an asyncio.Lock and tagged with an attempt generation:

- every sign-in, restore, password change, sign-out and abandon()
  bumps the generation;
- network calls run outside the lock;
- a result is applied only if its generation is still current.

So a second sign-in started while one is in flight supersedes it, and
whatever the first one later receives is dropped instead of overwriting
the cache. A superseded or abandoned sign-in returns None.
"""

from __future__ import annotations

import asyncio
import os
import uuid
from enum import Enum
from typing import Any, Optional, Union

import httpx
import structlog

from halaqa.client.cache import LocalCapabilityCache, Profile
from halaqa.identity.errors import ErrorKind, LoginFailure, fail
from halaqa.identity.flow import parse_center_id
from halaqa.identity.ports import Session
from halaqa.identity.roles import Grant, Role

logger = structlog.get_logger()

DEFAULT_API_URL = "http://localhost:8000"
DEFAULT_TIMEOUT = 10.0
MIN_PASSWORD_LENGTH = 6


def api_url() -> str:
    return os.environ.get("HALAQA_API_URL", DEFAULT_API_URL).rstrip("/")


class SessionState(str, Enum):
    ACTIVE = "active"
    REVOKED = "revoked"
    SIGNED_OUT = "signed_out"
    UNREACHABLE = "unreachable"


class _Revoked(Exception):
    pass


def _failure_from(response: httpx.Response) -> LoginFailure:
    try:
        return fail(ErrorKind(response.json()["errorKind"]))
    except (ValueError, KeyError, TypeError):
        # 429, 5xx from a proxy, HTML error pages: nothing the user can fix
        return fail(ErrorKind.NETWORK_ERROR)


def _revoked(response: httpx.Response) -> bool:
    """A 401 that carries no errorKind is the token being refused."""
    if response.status_code != 401:
        return False
    try:
        return "errorKind" not in response.json()
    except ValueError:
        return True


def _grants_from(memberships: list[dict[str, Any]]) -> list[Grant]:
    grants = []
    for m in memberships:
        try:
            role = Role(m["role"])
        except ValueError:
            logger.warning("halaqa.client.unknown_role", role=m.get("role"))
            continue
        center = m.get("centerId")
        grants.append(Grant(
            role=role,
            center_id=uuid.UUID(center) if center else None,
            id=uuid.UUID(m["id"]) if m.get("id") else None,
        ))
    return grants


def _profile_from(account: dict[str, Any]) -> Profile:
    return Profile(
        id=uuid.UUID(account["id"]),
        full_name=account["fullName"],
        email=account.get("email"),
        phone=account.get("phone"),
    )


class AuthClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        cache: Optional[LocalCapabilityCache] = None,
        http: Optional[httpx.AsyncClient] = None,
    ):
        self.cache = cache if cache is not None else LocalCapabilityCache()
        self._http = http or httpx.AsyncClient(
            base_url=base_url or api_url(), timeout=timeout
        )
        self._lock = asyncio.Lock()
        self._generation = 0

    async def __aenter__(self) -> "AuthClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # ─── Attempt bookkeeping ────────────────────────────

    async def _begin(self) -> int:
        async with self._lock:
            self._generation += 1
            return self._generation

    def abandon(self) -> None:
        """Drop whatever in-flight calls come back with."""
        self._generation += 1

    # ─── Backend calls ──────────────────────────────────

    async def _me(self, session: Session) -> dict[str, Any]:
        r = await self._http.get(
            "/api/v1/auth/me",
            headers={"Authorization": f"Bearer {session.access_token}"},
        )
        if r.status_code == 401:
            raise _Revoked()
        r.raise_for_status()
        return r.json()

    async def _refresh(self, session: Session) -> Session:
        r = await self._http.post(
            "/api/v1/auth/refresh", json={"refreshToken": session.refresh_token}
        )
        if r.status_code == 401:
            raise _Revoked()
        r.raise_for_status()
        body = r.json()
        return Session(
            access_token=body["accessToken"],
            refresh_token=body["refreshToken"],
            account_id=session.account_id,
            center_id=session.center_id,
        )

    async def _post_password(self, session: Session, body: dict[str, str]) -> httpx.Response:
        return await self._http.post(
            "/api/v1/auth/password",
            json=body,
            headers={"Authorization": f"Bearer {session.access_token}"},
        )

    async def _load(self, session: Session) -> tuple[Session, dict[str, Any]]:
        """Profile for ``session``, refreshing the pair once if the access token lapsed."""
        try:
            return session, await self._me(session)
        except _Revoked:
            session = await self._refresh(session)
            return session, await self._me(session)

    async def _apply(
        self,
        attempt: int,
        session: Session,
        me: dict[str, Any],
        tenant_id: Optional[uuid.UUID] = None,
    ) -> bool:
        async with self._lock:
            if attempt != self._generation:
                logger.info("halaqa.client.result_discarded", attempt=attempt)
                return False
            self.cache.populate(
                session,
                _profile_from(me["account"]),
                _grants_from(me.get("memberships", [])),
                selected_tenant_id=tenant_id,
            )
            return True

    async def _teardown(self, attempt: int) -> None:
        async with self._lock:
            if attempt == self._generation:
                self.cache.clear()

    # ─── Public surface ─────────────────────────────────

    async def sign_in(
        self,
        identifier: str,
        password: str,
        tenant_id: Union[uuid.UUID, str, None] = None,
    ) -> Union[Profile, LoginFailure, None]:
        """Run the login flow and populate the cache.

        Returns the profile on success, a LoginFailure on failure, or
        None when this attempt was superseded before it finished.
        """
        if not identifier or not identifier.strip():
            return fail(ErrorKind.NOT_FOUND)
        if not password:
            return fail(ErrorKind.INVALID_CREDENTIALS)
        tenant_id = parse_center_id(tenant_id)

        attempt = await self._begin()
        body: dict[str, Any] = {"identifier": identifier.strip(), "password": password}
        if tenant_id is not None:
            body["tenantId"] = str(tenant_id)

        try:
            r = await self._http.post("/api/v1/auth/login", json=body)
            if r.status_code != 200:
                failure = _failure_from(r)
                logger.info("halaqa.client.sign_in_failed", error_kind=failure.kind.value)
                return failure if attempt == self._generation else None

            payload = r.json()
            session = Session(
                access_token=payload["session"]["accessToken"],
                refresh_token=payload["session"]["refreshToken"],
                account_id=uuid.UUID(payload["account"]["id"]),
                center_id=tenant_id,
            )
            session, me = await self._load(session)
        except (httpx.TimeoutException, httpx.TransportError, httpx.HTTPStatusError, _Revoked) as e:
            logger.warning("halaqa.client.unreachable", error=type(e).__name__)
            return fail(ErrorKind.NETWORK_ERROR) if attempt == self._generation else None

        if not await self._apply(attempt, session, me, tenant_id):
            return None
        return self.cache.profile

    async def restore(self, session: Session) -> SessionState:
        """Startup check: adopt a stored session if the server still honours it."""
        attempt = await self._begin()
        try:
            session, me = await self._load(session)
        except _Revoked:
            await self._teardown(attempt)
            return SessionState.REVOKED
        except (httpx.TimeoutException, httpx.TransportError, httpx.HTTPStatusError):
            return SessionState.UNREACHABLE

        applied = await self._apply(attempt, session, me, session.center_id)
        return SessionState.ACTIVE if applied else SessionState.SIGNED_OUT

    async def check_session(self) -> SessionState:
        """Re-validate the current session; tears the cache down if it was revoked."""
        session = self.cache.session
        if session is None:
            return SessionState.SIGNED_OUT
        attempt = self._generation
        try:
            session, me = await self._load(session)
        except _Revoked:
            logger.info("halaqa.client.session_revoked")
            await self._teardown(attempt)
            return SessionState.REVOKED
        except (httpx.TimeoutException, httpx.TransportError, httpx.HTTPStatusError):
            return SessionState.UNREACHABLE

        applied = await self._apply(attempt, session, me)
        return SessionState.ACTIVE if applied else SessionState.SIGNED_OUT

    async def change_password(
        self, current_password: str, new_password: str
    ) -> Union[Profile, LoginFailure, None]:
        """Change the signed-in account's password and adopt the new session.

        A wrong current password is InvalidCredentials and leaves the cache
        as it was. Returns None when signed out, when the session turns out
        to be revoked (the cache is torn down) or when superseded.
        """
        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"new password must be at least {MIN_PASSWORD_LENGTH} characters")
        session = self.cache.session
        if session is None:
            return None
        if not current_password:
            return fail(ErrorKind.INVALID_CREDENTIALS)

        attempt = await self._begin()
        body = {"currentPassword": current_password, "newPassword": new_password}
        try:
            r = await self._post_password(session, body)
            if _revoked(r):
                session = await self._refresh(session)
                r = await self._post_password(session, body)
                if _revoked(r):
                    raise _Revoked()
            if r.status_code != 200:
                failure = _failure_from(r)
                logger.info("halaqa.client.password_change_failed", error_kind=failure.kind.value)
                return failure if attempt == self._generation else None

            payload = r.json()
            session = Session(
                access_token=payload["accessToken"],
                refresh_token=payload["refreshToken"],
                account_id=session.account_id,
                center_id=session.center_id,
            )
            session, me = await self._load(session)
        except _Revoked:
            logger.info("halaqa.client.session_revoked")
            await self._teardown(attempt)
            return None
        except (httpx.TimeoutException, httpx.TransportError, httpx.HTTPStatusError) as e:
            logger.warning("halaqa.client.unreachable", error=type(e).__name__)
            return fail(ErrorKind.NETWORK_ERROR) if attempt == self._generation else None

        if not await self._apply(attempt, session, me):
            return None
        logger.info("halaqa.client.password_changed")
        return self.cache.profile

    async def select_tenant(self, tenant_id: uuid.UUID) -> bool:
        async with self._lock:
            if not self.cache.can_access_tenant(tenant_id):
                return False
            self.cache.select_tenant(tenant_id)
            return True

    async def sign_out(self) -> None:
        async with self._lock:
            self._generation += 1
            self.cache.clear()
        logger.info("halaqa.client.signed_out")
