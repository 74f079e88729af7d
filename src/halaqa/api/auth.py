"""Auth API — sign-in by name or email, token refresh, session check.

- POST /auth/login → {identifier, password, tenantId?} → session + account
- POST /auth/refresh → refresh token → new token pair
- GET /auth/me → profile + memberships of the session's account
- POST /auth/password → {currentPassword, newPassword} → new token pair

Login failures are not HTTPExceptions: they come back as
{errorKind, message} so the client can branch on the kind.
"""

import uuid

import structlog
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from halaqa.auth.dependencies import CurrentAccount, get_current_account
from halaqa.auth.jwt import TokenError, verify_token
from halaqa.db.engine import get_db
from halaqa.db.models import Account
from halaqa.identity.errors import ErrorKind, LoginFailure, fail
from halaqa.identity.flow import LoginFlow
from halaqa.identity.ports import BackendUnavailable
from halaqa.identity.validator import TenantMembershipValidator
from halaqa.schemas.auth import (
    AccountRead,
    LoginError,
    LoginRequest,
    LoginResponse,
    MembershipRead,
    MeResponse,
    PasswordChange,
    ProfileRead,
    RefreshRequest,
    SessionRead,
)
from halaqa.services.account_service import AccountService
from halaqa.services.directory import JwtTokenIssuer, SqlAccountDirectory, to_record

logger = structlog.get_logger()

router = APIRouter(prefix="/auth")

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.AMBIGUOUS_IDENTIFIER: 409,
    ErrorKind.NO_ACCOUNT_IN_TENANT: 403,
    ErrorKind.NO_MEMBERSHIP: 403,
    ErrorKind.TENANT_MISMATCH: 403,
    ErrorKind.INVALID_CREDENTIALS: 401,
    ErrorKind.NETWORK_ERROR: 503,
}


def _flow(db: AsyncSession = Depends(get_db)) -> LoginFlow:
    directory = SqlAccountDirectory(db)
    return LoginFlow(directory=directory, passwords=directory, tokens=JwtTokenIssuer())


def failure_response(failure: LoginFailure) -> JSONResponse:
    return JSONResponse(
        status_code=STATUS_BY_KIND[failure.kind],
        content=failure.to_dict(),
    )


# ─── Login ───────────────────────────────────────────────


@router.post(
    "/login",
    response_model=LoginResponse,
    responses={status: {"model": LoginError} for status in set(STATUS_BY_KIND.values())},
)
async def login(body: LoginRequest, flow: LoginFlow = Depends(_flow)):
    """Sign in with a display name or email, optionally under a center."""
    result = await flow.login(body.identifier, body.password, body.tenant_id)
    if isinstance(result, LoginFailure):
        return failure_response(result)

    return LoginResponse(
        session=SessionRead(
            access_token=result.session.access_token,
            refresh_token=result.session.refresh_token,
        ),
        account=AccountRead(
            id=result.account.id,
            full_name=result.account.full_name,
            email=result.account.email,
        ),
    )


# ─── Refresh ────────────────────────────────────────────


@router.post("/refresh", response_model=SessionRead)
async def refresh(body: RefreshRequest, db: AsyncSession = Depends(get_db)):
    """Exchange a refresh token for a new pair.

    The account must still be active and, for a center session, still
    belong to that center.
    """
    try:
        payload = verify_token(body.refresh_token, expected_type="refresh")
        account_id = uuid.UUID(payload["sub"])
        center_id = uuid.UUID(payload["center_id"]) if payload.get("center_id") else None
    except TokenError as e:
        raise HTTPException(status_code=401, detail=str(e))
    except (KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token subject")

    account = await db.get(Account, account_id)
    if account is None or not account.is_active:
        raise HTTPException(status_code=401, detail="Session revoked")

    if center_id is not None:
        validator = TenantMembershipValidator(SqlAccountDirectory(db))
        outcome = await validator.validate(to_record(account), center_id)
        if isinstance(outcome, LoginFailure):
            logger.info(
                "halaqa.refresh.denied",
                account_id=str(account_id),
                error_kind=outcome.kind.value,
            )
            raise HTTPException(status_code=401, detail="Session revoked")

    session = await JwtTokenIssuer().issue_tokens(account_id, center_id)
    return SessionRead(
        access_token=session.access_token,
        refresh_token=session.refresh_token,
    )


# ─── Password ───────────────────────────────────────────


@router.post(
    "/password",
    response_model=SessionRead,
    responses={401: {"model": LoginError}, 503: {"model": LoginError}},
)
async def change_password(
    body: PasswordChange,
    current: CurrentAccount = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    """Replace the password of the signed-in account.

    The current password is checked the same way sign-in checks it. The
    response is a fresh pair for the same center, so the caller can
    keep going without signing in again.
    """
    try:
        verified = await SqlAccountDirectory(db).verify_password(
            current.account.login_handle, body.current_password
        )
    except BackendUnavailable:
        return failure_response(fail(ErrorKind.NETWORK_ERROR))
    if verified != current.id:
        logger.info("halaqa.password.denied", account_id=str(current.id))
        return failure_response(fail(ErrorKind.INVALID_CREDENTIALS))

    await AccountService(db).set_password(current.id, body.new_password)
    session = await JwtTokenIssuer().issue_tokens(current.id, current.center_id)
    return SessionRead(
        access_token=session.access_token,
        refresh_token=session.refresh_token,
    )


# ─── Current account ────────────────────────────────────


@router.get("/me", response_model=MeResponse)
async def get_me(current: CurrentAccount = Depends(get_current_account)):
    """Profile and memberships of the signed-in account."""
    account = current.account
    return MeResponse(
        account=ProfileRead(
            id=account.id,
            full_name=account.full_name,
            email=account.email,
            phone=account.phone,
            is_active=account.is_active,
        ),
        memberships=[
            MembershipRead(id=g.id, role=g.role.value, center_id=g.center_id)
            for g in current.capabilities.grants
        ],
        center_id=current.center_id,
    )
