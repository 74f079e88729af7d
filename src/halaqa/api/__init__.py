"""API route aggregation.

All routers registered here get mounted in main.py. Health, login and
the center list are open; everything that changes accounts or centers
checks the caller inside the route, because the rule depends on which
center the change touches.
"""

from fastapi import APIRouter

from halaqa.api.accounts import router as accounts_router
from halaqa.api.auth import router as auth_router
from halaqa.api.centers import router as centers_router
from halaqa.api.health import router as health_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])
api_router.include_router(centers_router, tags=["centers"])
api_router.include_router(accounts_router, tags=["accounts"])
