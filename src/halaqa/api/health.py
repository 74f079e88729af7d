"""Health check endpoint.

Reports whether the account database answers. Redis only backs rate
limiting, so its absence degrades nothing and is reported but not
counted against health.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from halaqa import __version__
from halaqa.db.engine import get_db

router = APIRouter()


@router.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    checks = {"server": "ok", "version": __version__}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {e}"

    try:
        from halaqa.redis_pool import get_redis

        await get_redis().ping()
        checks["rate_limit"] = "ok"
    except Exception:
        checks["rate_limit"] = "disabled"

    status = "healthy" if checks["database"] == "ok" else "degraded"
    return {"status": status, **checks}
