#!/usr/bin/env python3
"""
Halaqa Quickstart — two students with the same name, two centers.

Creates two centers and an "Ahmed" in each, then shows how sign-in by
name behaves with and without a selected center, and what happens to a
signed-in client when its account is disabled.

Run with: python examples/quickstart.py
Requires: an existing super_admin (HALAQA_ADMIN_NAME / HALAQA_ADMIN_PASSWORD)
Backend must be running: http://localhost:8000
"""

import asyncio
import os
import sys
import uuid

import httpx

from halaqa.client import AuthClient, SessionState
from halaqa.identity.errors import LoginFailure

BASE = os.environ.get("HALAQA_API_URL", "http://localhost:8000")
ADMIN_NAME = os.environ.get("HALAQA_ADMIN_NAME", "Root Admin")
ADMIN_PASSWORD = os.environ.get("HALAQA_ADMIN_PASSWORD", "")
STUDENT_PASSWORD = "ahmed-demo-pass"


def show(label: str, result) -> None:
    if isinstance(result, LoginFailure):
        print(f"   {label}: {result.kind.value} ({result.message})")
    else:
        print(f"   {label}: signed in as {result.full_name} ({str(result.id)[:8]}...)")


async def main():
    run_id = uuid.uuid4().hex[:6]

    # ── Health check ──────────────────────────────────────────────
    print("Checking backend health...")
    try:
        health = httpx.get(f"{BASE}/api/v1/health", timeout=5).json()
    except httpx.ConnectError:
        print(f"Backend not reachable at {BASE}")
        sys.exit(1)
    print(f"  Database:   {health['database']}")
    print(f"  Rate limit: {health['rate_limit']}")

    # ── Admin session ─────────────────────────────────────────────
    print("\n1. Signing in as super admin...")
    admin = AuthClient(base_url=BASE)
    result = await admin.sign_in(ADMIN_NAME, ADMIN_PASSWORD)
    if not admin.cache.is_super_admin:
        show("admin", result)
        print("   Set HALAQA_ADMIN_NAME / HALAQA_ADMIN_PASSWORD to a super_admin account")
        sys.exit(1)
    http = httpx.AsyncClient(
        base_url=f"{BASE}/api/v1",
        timeout=10,
        headers={"Authorization": f"Bearer {admin.cache.session.access_token}"},
    )

    # ── Centers ───────────────────────────────────────────────────
    print("\n2. Creating two centers...")
    centers = []
    for name in (f"Al-Noor {run_id}", f"Al-Huda {run_id}"):
        resp = await http.post("/centers", json={"name": name})
        assert resp.status_code == 201, f"Failed: {resp.text}"
        centers.append(resp.json())
        print(f"   Center: {name} ({resp.json()['id'][:8]}...)")
    noor, huda = centers

    # ── Same name, two accounts ───────────────────────────────────
    student_name = f"Ahmed {run_id}"
    print(f"\n3. Creating '{student_name}' in both centers...")
    students = []
    for center in (huda, noor):
        resp = await http.post("/accounts", json={
            "fullName": student_name,
            "password": STUDENT_PASSWORD,
            "role": "student",
            "centerId": center["id"],
        })
        assert resp.status_code == 201, f"Failed: {resp.text}"
        students.append(resp.json())
        print(f"   Account: {resp.json()['id'][:8]}... handle {resp.json()['loginHandle']}")

    # ── Sign in by name ───────────────────────────────────────────
    print("\n4. Signing in by name...")
    async with AuthClient(base_url=BASE) as client:
        show("no center", await client.sign_in(student_name, STUDENT_PASSWORD))
        show("Al-Noor", await client.sign_in(student_name, STUDENT_PASSWORD, uuid.UUID(noor["id"])))
        print(f"   roles: {[g.role.value for g in client.cache.memberships]}")

        # ── Disable and re-check ──────────────────────────────────
        print("\n5. Disabling the Al-Noor account...")
        in_noor = students[1]
        resp = await http.post(f"/accounts/{in_noor['id']}/status", json={"action": "disable"})
        assert resp.status_code == 200, f"Failed: {resp.text}"

        state = await client.check_session()
        print(f"   session: {state.value}")
        assert state is SessionState.REVOKED
        print(f"   signed in: {client.cache.is_signed_in}")
        show("again", await client.sign_in(student_name, STUDENT_PASSWORD, uuid.UUID(noor["id"])))

    await http.aclose()
    await admin.aclose()
    print("\nDone.")


if __name__ == "__main__":
    asyncio.run(main())
