"""AuthClient tests against the real app over ASGITransport.

Covers:
1. Sign-in populates the capability cache, sign-out empties it
2. Failures come back as LoginFailure with the server's error kind
3. A revoked session tears the cache down
4. Superseded / abandoned sign-ins change nothing
5. Transport trouble is a NetworkError
"""

import asyncio

import httpx
import pytest
from httpx import ASGITransport

from halaqa.client.cache import Profile
from halaqa.client.session import AuthClient, SessionState
from halaqa.identity.errors import ErrorKind, LoginFailure
from halaqa.identity.roles import Role
from halaqa.main import app
from support import PASSWORD


class GatedTransport(httpx.AsyncBaseTransport):
    """Holds every request until the gate opens, then lets them through one at a time."""

    def __init__(self):
        self.inner = ASGITransport(app=app)
        self.gate = asyncio.Event()
        self.waiting = 0
        self._serial = asyncio.Lock()

    async def handle_async_request(self, request):
        self.waiting += 1
        await self.gate.wait()
        # One AsyncSession backs the test app
        async with self._serial:
            return await self.inner.handle_async_request(request)

    async def until_waiting(self, count: int):
        while self.waiting < count:
            await asyncio.sleep(0.01)


def _client_over(transport) -> AuthClient:
    return AuthClient(http=httpx.AsyncClient(transport=transport, base_url="http://test"))


@pytest.mark.asyncio
async def test_sign_in_populates_cache(client, seed):
    """Sign-in fills profile, roles and the selected tenant."""
    center = await seed.center()
    account = await seed.account(
        "Aisha", memberships=((Role.TEACHER, center), (Role.PARENT, center))
    )
    auth = AuthClient(http=client)

    profile = await auth.sign_in("Aisha", PASSWORD, center.id)

    assert isinstance(profile, Profile)
    assert profile.id == account.id
    assert auth.cache.is_signed_in
    assert auth.cache.has_role(Role.TEACHER)
    assert auth.cache.has_role(Role.PARENT)
    assert not auth.cache.is_super_admin
    assert auth.cache.selected_tenant_id == center.id
    assert auth.cache.session.account_id == account.id


@pytest.mark.asyncio
async def test_sign_out_clears_everything(client, seed):
    """Sign-out leaves no profile, role or tenant behind."""
    center = await seed.center()
    await seed.account("Aisha", memberships=((Role.TEACHER, center),))
    auth = AuthClient(http=client)
    await auth.sign_in("Aisha", PASSWORD, center.id)

    await auth.sign_out()

    assert not auth.cache.is_signed_in
    assert auth.cache.profile is None
    assert auth.cache.memberships == ()
    assert auth.cache.selected_tenant_id is None
    assert await auth.check_session() is SessionState.SIGNED_OUT


@pytest.mark.asyncio
async def test_failed_sign_in_leaves_cache_empty(client, seed):
    """A failed sign-in writes nothing to the cache."""
    a = await seed.center("Center A")
    b = await seed.center("Center B")
    await seed.account("Zaid", memberships=((Role.TEACHER, a),))
    auth = AuthClient(http=client)

    result = await auth.sign_in("Zaid", PASSWORD, b.id)

    assert isinstance(result, LoginFailure)
    assert result.kind is ErrorKind.TENANT_MISMATCH
    assert not auth.cache.is_signed_in


@pytest.mark.asyncio
async def test_blank_input_fails_without_a_request(client):
    """Blank name or password fails locally."""
    auth = AuthClient(http=client)
    assert (await auth.sign_in("  ", PASSWORD)).kind is ErrorKind.NOT_FOUND
    assert (await auth.sign_in("Aisha", "")).kind is ErrorKind.INVALID_CREDENTIALS


@pytest.mark.asyncio
async def test_sign_in_accepts_tenant_id_as_text(client, seed):
    """Tenant ids typed as text are parsed, and junk is a center error."""
    center = await seed.center()
    await seed.account("Aisha", memberships=((Role.TEACHER, center),))
    auth = AuthClient(http=client)

    result = await auth.sign_in("Aisha", PASSWORD, "not-a-center")
    assert result.kind is ErrorKind.TENANT_MISMATCH
    assert not auth.cache.is_signed_in

    profile = await auth.sign_in("Aisha", PASSWORD, f" {center.id} ")
    assert isinstance(profile, Profile)
    assert auth.cache.selected_tenant_id == center.id


@pytest.mark.asyncio
async def test_select_tenant_only_within_memberships(client, seed):
    """Only tenants the account belongs to can be selected."""
    a = await seed.center("Center A")
    b = await seed.center("Center B")
    c = await seed.center("Center C")
    await seed.account("Hafsa", memberships=((Role.TEACHER, a), (Role.TEACHER, b)))
    auth = AuthClient(http=client)
    await auth.sign_in("Hafsa", PASSWORD)

    assert await auth.select_tenant(b.id)
    assert auth.cache.selected_tenant_id == b.id
    assert not await auth.select_tenant(c.id)
    assert auth.cache.selected_tenant_id == b.id


# ═══════════════════════════════════════════════════════════
# Session checks
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_check_session_after_disable_is_revoked(client, seed, db_session):
    """A disabled account's session check tears the cache down."""
    center = await seed.center()
    account = await seed.account("Bilal", memberships=((Role.STUDENT, center),))
    auth = AuthClient(http=client)
    await auth.sign_in("Bilal", PASSWORD, center.id)
    assert await auth.check_session() is SessionState.ACTIVE

    account.is_active = False
    await db_session.commit()

    assert await auth.check_session() is SessionState.REVOKED
    assert not auth.cache.is_signed_in
    assert not auth.cache.has_role(Role.STUDENT)


@pytest.mark.asyncio
async def test_restore_adopts_stored_session(client, seed):
    """A stored session restores the same cache state."""
    center = await seed.center()
    await seed.account("Bilal", memberships=((Role.STUDENT, center),))
    first = AuthClient(http=client)
    await first.sign_in("Bilal", PASSWORD, center.id)

    second = AuthClient(http=client)
    state = await second.restore(first.cache.session)

    assert state is SessionState.ACTIVE
    assert second.cache.profile == first.cache.profile
    assert second.cache.selected_tenant_id == center.id
    assert second.cache.has_role(Role.STUDENT)


# ═══════════════════════════════════════════════════════════
# Password change
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_change_password_adopts_new_session(client, seed):
    """After a password change the cache holds the new pair and the same tenant."""
    center = await seed.center()
    await seed.account("Aisha", memberships=((Role.TEACHER, center),))
    auth = AuthClient(http=client)
    await auth.sign_in("Aisha", PASSWORD, center.id)
    before = auth.cache.session

    profile = await auth.change_password(PASSWORD, "new-secret")

    assert isinstance(profile, Profile)
    assert auth.cache.session.access_token != before.access_token
    assert auth.cache.session.refresh_token != before.refresh_token
    assert auth.cache.session.center_id == center.id
    assert auth.cache.selected_tenant_id == center.id
    assert auth.cache.has_role(Role.TEACHER)
    assert await auth.check_session() is SessionState.ACTIVE

    again = AuthClient(http=client)
    old = await again.sign_in("Aisha", PASSWORD, center.id)
    assert old.kind is ErrorKind.INVALID_CREDENTIALS
    assert isinstance(await again.sign_in("Aisha", "new-secret", center.id), Profile)


@pytest.mark.asyncio
async def test_wrong_current_password_keeps_cache(client, seed):
    """A rejected password change leaves the cache untouched."""
    center = await seed.center()
    await seed.account("Aisha", memberships=((Role.TEACHER, center),))
    auth = AuthClient(http=client)
    await auth.sign_in("Aisha", PASSWORD, center.id)
    before = auth.cache.snapshot()

    result = await auth.change_password("guess", "new-secret")

    assert isinstance(result, LoginFailure)
    assert result.kind is ErrorKind.INVALID_CREDENTIALS
    assert auth.cache.snapshot() == before


@pytest.mark.asyncio
async def test_change_password_needs_a_session(client):
    """No session means nothing to change; short passwords raise."""
    auth = AuthClient(http=client)
    assert await auth.change_password(PASSWORD, "new-secret") is None
    with pytest.raises(ValueError):
        await auth.change_password(PASSWORD, "abc")


@pytest.mark.asyncio
async def test_change_password_on_revoked_session_signs_out(client, seed, db_session):
    """A revoked session found during a password change signs the client out."""
    center = await seed.center()
    account = await seed.account("Bilal", memberships=((Role.STUDENT, center),))
    auth = AuthClient(http=client)
    await auth.sign_in("Bilal", PASSWORD, center.id)

    account.is_active = False
    await db_session.commit()

    assert await auth.change_password(PASSWORD, "new-secret") is None
    assert not auth.cache.is_signed_in


@pytest.mark.asyncio
async def test_sign_out_during_password_change_wins(client, seed):
    """A password change finishing after sign-out does not sign back in."""
    center = await seed.center()
    await seed.account("Bilal", memberships=((Role.STUDENT, center),))
    signed_in = AuthClient(http=client)
    await signed_in.sign_in("Bilal", PASSWORD, center.id)
    transport = GatedTransport()
    auth = AuthClient(
        cache=signed_in.cache,
        http=httpx.AsyncClient(transport=transport, base_url="http://test"),
    )

    pending = asyncio.create_task(auth.change_password(PASSWORD, "new-secret"))
    await transport.until_waiting(1)
    await auth.sign_out()
    transport.gate.set()

    assert await pending is None
    assert not auth.cache.is_signed_in
    await auth.aclose()


# ═══════════════════════════════════════════════════════════
# Concurrency
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_abandoned_sign_in_is_discarded(client, seed):
    """An abandoned sign-in returns None and leaves the cache empty."""
    center = await seed.center()
    await seed.account("Bilal", memberships=((Role.STUDENT, center),))
    transport = GatedTransport()
    auth = _client_over(transport)

    pending = asyncio.create_task(auth.sign_in("Bilal", PASSWORD, center.id))
    await transport.until_waiting(1)
    auth.abandon()
    transport.gate.set()

    assert await pending is None
    assert not auth.cache.is_signed_in
    await auth.aclose()


@pytest.mark.asyncio
async def test_second_sign_in_supersedes_first(client, seed):
    """The later of two concurrent sign-ins is the one that sticks."""
    center = await seed.center()
    await seed.account("Bilal", memberships=((Role.STUDENT, center),))
    hafsa = await seed.account("Hafsa", memberships=((Role.TEACHER, center),))
    transport = GatedTransport()
    auth = _client_over(transport)

    first = asyncio.create_task(auth.sign_in("Bilal", PASSWORD, center.id))
    await transport.until_waiting(1)
    second = asyncio.create_task(auth.sign_in("Hafsa", PASSWORD, center.id))
    await transport.until_waiting(2)
    transport.gate.set()

    assert await first is None
    profile = await second
    assert profile.id == hafsa.id
    assert auth.cache.profile.id == hafsa.id
    assert auth.cache.has_role(Role.TEACHER)
    assert not auth.cache.has_role(Role.STUDENT)
    await auth.aclose()


@pytest.mark.asyncio
async def test_sign_out_during_sign_in_wins(client, seed):
    """A sign-in finishing after sign-out does not sign back in."""
    center = await seed.center()
    await seed.account("Bilal", memberships=((Role.STUDENT, center),))
    transport = GatedTransport()
    auth = _client_over(transport)

    pending = asyncio.create_task(auth.sign_in("Bilal", PASSWORD, center.id))
    await transport.until_waiting(1)
    await auth.sign_out()
    transport.gate.set()

    assert await pending is None
    assert not auth.cache.is_signed_in
    await auth.aclose()


# ═══════════════════════════════════════════════════════════
# Transport trouble
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_connection_refused_is_network_error():
    """A refused connection is a retryable NetworkError."""
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    auth = _client_over(httpx.MockTransport(refuse))
    result = await auth.sign_in("Bilal", PASSWORD)

    assert isinstance(result, LoginFailure)
    assert result.kind is ErrorKind.NETWORK_ERROR
    assert result.retryable
    assert not auth.cache.is_signed_in
    await auth.aclose()


@pytest.mark.asyncio
async def test_unparseable_error_body_is_network_error():
    """Non-JSON error pages are NetworkError."""
    def bad_gateway(request):
        return httpx.Response(502, text="<html>Bad Gateway</html>")

    auth = _client_over(httpx.MockTransport(bad_gateway))
    result = await auth.sign_in("Bilal", PASSWORD)

    assert result.kind is ErrorKind.NETWORK_ERROR
    await auth.aclose()


@pytest.mark.asyncio
async def test_unreachable_check_keeps_cache(client, seed):
    """An unreachable server does not sign the user out."""
    center = await seed.center()
    await seed.account("Bilal", memberships=((Role.STUDENT, center),))
    signed_in = AuthClient(http=client)
    await signed_in.sign_in("Bilal", PASSWORD, center.id)

    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    offline = AuthClient(
        cache=signed_in.cache,
        http=httpx.AsyncClient(transport=httpx.MockTransport(refuse), base_url="http://test"),
    )

    assert await offline.check_session() is SessionState.UNREACHABLE
    assert offline.cache.is_signed_in
    await offline.aclose()
