"""Account administration routes.

Who may do what:
- super_admin: anything, including granting super_admin
- center_admin: accounts and roles inside their own centers only

A center admin can never create or grant a global role, and can only
view, enable/disable or change the roles of accounts that already hold
at least one role in a center they administer and no global role.
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from halaqa.auth.dependencies import CurrentAccount, get_current_account
from halaqa.db.engine import get_db
from halaqa.db.models import Account
from halaqa.identity.roles import Role
from halaqa.schemas.account import (
    AccountCreate,
    AccountDetail,
    MembershipCreate,
    StatusChange,
)
from halaqa.schemas.auth import MembershipRead
from halaqa.services.account_service import (
    AccountService,
    DuplicateAccount,
    DuplicateMembership,
)

router = APIRouter()


def _svc(db: AsyncSession = Depends(get_db)) -> AccountService:
    return AccountService(db)


def _forbidden() -> HTTPException:
    return HTTPException(status_code=403, detail="Not allowed for this center")


async def _check_grant_allowed(
    svc: AccountService, current: CurrentAccount, role: Role, center_id: uuid.UUID | None
) -> None:
    if role.is_global:
        if not current.capabilities.is_super_admin:
            raise _forbidden()
        return
    if not current.is_admin_of(center_id):
        raise _forbidden()
    if await svc.get_center(center_id) is None:
        raise HTTPException(status_code=404, detail="Center not found")


def _check_manages(current: CurrentAccount, account: Account) -> None:
    if current.capabilities.is_super_admin:
        return
    grants = [m.to_grant() for m in account.memberships]
    if any(g.is_global for g in grants):
        raise _forbidden()
    if not any(current.is_admin_of(g.center_id) for g in grants):
        raise _forbidden()


@router.post("/accounts", response_model=AccountDetail, status_code=201)
async def create_account(
    body: AccountCreate,
    svc: AccountService = Depends(_svc),
    current: CurrentAccount = Depends(get_current_account),
):
    """Create an account together with its first role."""
    await _check_grant_allowed(svc, current, body.role, body.center_id)
    try:
        return await svc.create_account(
            full_name=body.full_name,
            password=body.password,
            role=body.role,
            center_id=body.center_id,
            email=body.email,
            username=body.username,
            phone=body.phone,
        )
    except DuplicateAccount:
        raise HTTPException(status_code=409, detail="Email already registered")


@router.get("/accounts/{account_id}", response_model=AccountDetail)
async def get_account(
    account_id: uuid.UUID,
    svc: AccountService = Depends(_svc),
    current: CurrentAccount = Depends(get_current_account),
):
    account = await svc.get_account(account_id)
    if not account:
        raise HTTPException(status_code=404, detail="Account not found")
    if account.id != current.id:
        _check_manages(current, account)
    return account


@router.post("/accounts/{account_id}/status", response_model=AccountDetail)
async def change_status(
    account_id: uuid.UUID,
    body: StatusChange,
    svc: AccountService = Depends(_svc),
    current: CurrentAccount = Depends(get_current_account),
):
    """Enable or disable an account. Disabled accounts cannot sign in."""
    account = await svc.get_account(account_id)
    if not account:
        raise HTTPException(status_code=404, detail="Account not found")
    if account.id == current.id:
        raise HTTPException(status_code=400, detail="Cannot change your own status")
    _check_manages(current, account)
    return await svc.set_active(account_id, body.action == "enable")


@router.post(
    "/accounts/{account_id}/memberships",
    response_model=MembershipRead,
    status_code=201,
)
async def grant_membership(
    account_id: uuid.UUID,
    body: MembershipCreate,
    svc: AccountService = Depends(_svc),
    current: CurrentAccount = Depends(get_current_account),
):
    account = await svc.get_account(account_id)
    if account is None:
        raise HTTPException(status_code=404, detail="Account not found")
    _check_manages(current, account)
    await _check_grant_allowed(svc, current, body.role, body.center_id)
    try:
        return await svc.grant(account_id, body.role, body.center_id)
    except DuplicateMembership:
        raise HTTPException(status_code=409, detail="Role already granted")


@router.delete("/accounts/{account_id}/memberships/{membership_id}")
async def revoke_membership(
    account_id: uuid.UUID,
    membership_id: uuid.UUID,
    svc: AccountService = Depends(_svc),
    current: CurrentAccount = Depends(get_current_account),
):
    account = await svc.get_account(account_id)
    membership = await svc.get_membership(account_id, membership_id)
    if account is None or membership is None:
        raise HTTPException(status_code=404, detail="Membership not found")
    _check_manages(current, account)
    grant = membership.to_grant()
    if grant.is_global:
        if not current.capabilities.is_super_admin:
            raise _forbidden()
    elif not current.is_admin_of(grant.center_id):
        raise _forbidden()

    await svc.revoke(membership)
    return {"deleted": True}
