"""Center routes.

The active-center list is open: the app shows it on the center
selection screen before anyone has signed in.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from halaqa.auth.dependencies import CurrentAccount, require_super_admin
from halaqa.db.engine import get_db
from halaqa.schemas.account import CenterCreate, CenterRead
from halaqa.services.account_service import AccountService

router = APIRouter()


def _svc(db: AsyncSession = Depends(get_db)) -> AccountService:
    return AccountService(db)


@router.get("/centers", response_model=list[CenterRead])
async def list_centers(svc: AccountService = Depends(_svc)):
    return await svc.list_active_centers()


@router.post("/centers", response_model=CenterRead, status_code=201)
async def create_center(
    body: CenterCreate,
    svc: AccountService = Depends(_svc),
    _: CurrentAccount = Depends(require_super_admin),
):
    center = await svc.create_center(
        name=body.name,
        description=body.description,
        location=body.location,
        requires_approval=body.requires_approval,
    )
    await svc.db.commit()
    return center
