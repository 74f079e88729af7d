"""Halaqa CLI — sign in by name, inspect roles, administer accounts.

Usage:
    halaqa centers                               # Active centers (pick one for login)
    halaqa login "Ahmed" -c <center-id>          # Sign in (password is prompted)
    halaqa whoami                                # Profile + roles of the saved session
    halaqa passwd                                # Change password (prompted)
    halaqa logout                                # Forget the saved session
    halaqa create-account "Ahmed" -r student -c <center-id>
    halaqa set-status <account-id> disable
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
import uuid
from pathlib import Path
from typing import Optional

import click
import httpx

from halaqa.client.session import MIN_PASSWORD_LENGTH, AuthClient, SessionState, api_url
from halaqa.identity.errors import LoginFailure
from halaqa.identity.ports import Session
from halaqa.identity.roles import Role

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


def _session_file() -> Path:
    default = Path.home() / ".config" / "halaqa" / "session.json"
    return Path(os.environ.get("HALAQA_SESSION_FILE", default))


def _client() -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the Halaqa backend."""
    return httpx.AsyncClient(base_url=api_url(), timeout=30.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _save_session(session: Session) -> None:
    path = _session_file()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({
        "accessToken": session.access_token,
        "refreshToken": session.refresh_token,
        "accountId": str(session.account_id),
        "centerId": str(session.center_id) if session.center_id else None,
    }))
    path.chmod(0o600)


def _load_session() -> Optional[Session]:
    path = _session_file()
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text())
        return Session(
            access_token=data["accessToken"],
            refresh_token=data["refreshToken"],
            account_id=uuid.UUID(data["accountId"]),
            center_id=uuid.UUID(data["centerId"]) if data.get("centerId") else None,
        )
    except (ValueError, KeyError):
        return None


def _forget_session() -> None:
    _session_file().unlink(missing_ok=True)


def _require_session() -> Session:
    session = _load_session()
    if session is None:
        click.secho("Not signed in. Run: halaqa login <name>", fg="red", err=True)
        sys.exit(1)
    return session


def _fail(failure: LoginFailure) -> None:
    click.secho(f"{failure.kind.value}: {failure.message}", fg="red", err=True)
    sys.exit(1)


def _print_table(rows: list[dict], columns: list[tuple[str, str, int]]):
    """Print a simple ASCII table.

    columns: list of (header, dict_key, width)
    """
    header = "  ".join(h.ljust(w) for h, _, w in columns)
    click.secho(header, bold=True)
    click.echo("-" * len(header))
    for row in rows:
        line = "  ".join(str(row.get(k) or "—")[:w].ljust(w) for _, k, w in columns)
        click.echo(line)


def _http_error(r: httpx.Response) -> None:
    try:
        detail = r.json().get("detail", r.text)
    except ValueError:
        detail = r.text
    click.secho(f"Error {r.status_code}: {detail}", fg="red", err=True)
    sys.exit(1)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version="0.1.0", prog_name="halaqa")
def main():
    """Halaqa — sign in to a memorization center and manage accounts."""


# ---------------------------------------------------------------------------
# halaqa centers
# ---------------------------------------------------------------------------


@main.command()
def centers():
    """List active centers."""
    _run(_centers_impl())


async def _centers_impl():
    async with _client() as c:
        r = await c.get("/api/v1/centers")
        if r.status_code != 200:
            _http_error(r)
        rows = r.json()
    if not rows:
        click.echo("(no active centers)")
        return
    _print_table(rows, [("ID", "id", 36), ("Name", "name", 30), ("Location", "location", 20)])


# ---------------------------------------------------------------------------
# halaqa login / whoami / logout
# ---------------------------------------------------------------------------


@main.command()
@click.argument("identifier")
@click.option("--center", "-c", "center_id", type=click.UUID, help="Center to sign in under")
@click.password_option("--password", "-p", confirmation_prompt=False)
def login(identifier: str, center_id: Optional[uuid.UUID], password: str):
    """Sign in with a display name or email."""
    _run(_login_impl(identifier, password, center_id))


async def _login_impl(identifier: str, password: str, center_id: Optional[uuid.UUID]):
    async with AuthClient(base_url=api_url()) as client:
        result = await client.sign_in(identifier, password, center_id)
        if isinstance(result, LoginFailure):
            _fail(result)
        _save_session(client.cache.session)
        click.secho(f"Signed in as {result.full_name}", fg="green")
        _print_roles(client)


def _print_roles(client: AuthClient) -> None:
    for grant in client.cache.memberships:
        scope = "all centers" if grant.is_global else str(grant.center_id)
        click.echo(f"  {grant.role.value:22s} {scope}")


@main.command()
def whoami():
    """Show the signed-in account and its roles."""
    _run(_whoami_impl())


async def _restore_or_exit(client: AuthClient) -> None:
    state = await client.restore(_require_session())
    if state is SessionState.REVOKED:
        _forget_session()
        click.secho("Session revoked. Sign in again.", fg="red", err=True)
        sys.exit(1)
    if state is SessionState.UNREACHABLE:
        click.secho("Server unreachable.", fg="yellow", err=True)
        sys.exit(1)


async def _whoami_impl():
    async with AuthClient(base_url=api_url()) as client:
        await _restore_or_exit(client)
        _save_session(client.cache.session)
        profile = client.cache.profile
        click.secho(profile.full_name, bold=True)
        if profile.email:
            click.echo(f"  email: {profile.email}")
        if client.cache.selected_tenant_id:
            click.echo(f"  center: {client.cache.selected_tenant_id}")
        _print_roles(client)


@main.command()
@click.option("--current", "current_password", prompt="Current password", hide_input=True)
@click.password_option("--new", "new_password", prompt="New password")
def passwd(current_password: str, new_password: str):
    """Change the password of the signed-in account."""
    if len(new_password) < MIN_PASSWORD_LENGTH:
        raise click.BadParameter(
            f"must be at least {MIN_PASSWORD_LENGTH} characters", param_hint="--new"
        )
    _run(_passwd_impl(current_password, new_password))


async def _passwd_impl(current_password: str, new_password: str):
    async with AuthClient(base_url=api_url()) as client:
        await _restore_or_exit(client)
        result = await client.change_password(current_password, new_password)
        if isinstance(result, LoginFailure):
            _fail(result)
        if result is None:
            _forget_session()
            click.secho("Session revoked. Sign in again.", fg="red", err=True)
            sys.exit(1)
        _save_session(client.cache.session)
        click.secho("Password changed", fg="green")


@main.command()
def logout():
    """Forget the saved session."""
    _forget_session()
    click.echo("Signed out")


# ---------------------------------------------------------------------------
# halaqa create-account / set-status
# ---------------------------------------------------------------------------


@main.command("create-account")
@click.argument("full_name")
@click.option("--role", "-r", type=click.Choice([r.value for r in Role]), required=True)
@click.option("--center", "-c", "center_id", type=click.UUID, help="Required for every role but super_admin")
@click.option("--email", help="Contact email; also becomes the login handle")
@click.option("--username", help="Used for the generated login handle when there is no email")
@click.option("--phone")
@click.password_option("--password", "-p")
def create_account(full_name: str, role: str, center_id: Optional[uuid.UUID],
                   email: Optional[str], username: Optional[str],
                   phone: Optional[str], password: str):
    """Create an account with its first role."""
    body = {
        "fullName": full_name,
        "password": password,
        "role": role,
        "centerId": str(center_id) if center_id else None,
        "email": email,
        "username": username,
        "phone": phone,
    }
    _run(_admin_post("/api/v1/accounts", body, created="Account created"))


@main.command("set-status")
@click.argument("account_id", type=click.UUID)
@click.argument("action", type=click.Choice(["enable", "disable"]))
def set_status(account_id: uuid.UUID, action: str):
    """Enable or disable an account."""
    _run(_admin_post(
        f"/api/v1/accounts/{account_id}/status",
        {"action": action},
        created=f"Account {action}d",
    ))


async def _admin_post(path: str, body: dict, created: str):
    session = _require_session()
    async with _client() as c:
        r = await c.post(
            path,
            json={k: v for k, v in body.items() if v is not None},
            headers={"Authorization": f"Bearer {session.access_token}"},
        )
    if r.status_code not in (200, 201):
        _http_error(r)
    account = r.json()
    click.secho(f"{created}: {account['fullName']} ({account['id']})", fg="green")
    click.echo(f"  login handle: {account['loginHandle']}")


if __name__ == "__main__":
    main()
