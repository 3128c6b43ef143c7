import logging
import time

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from vintage_shop.api.dependencies.database import get_db
from vintage_shop.api.dependencies.settings import get_app_settings
from vintage_shop.core.config import Settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _check_database(db: AsyncSession) -> dict:
    try:
        start = time.monotonic()
        await db.execute(text("SELECT 1"))
        return {"status": "up", "latency_ms": round((time.monotonic() - start) * 1000)}
    except SQLAlchemyError:
        logger.exception("Database health check failed")
        return {"status": "down"}


@router.get("/health")
async def health_check(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    checks = {
        "database": await _check_database(db),
        "smtp": {"status": "configured" if settings.smtp_host else "not_configured"},
    }
    overall = "healthy" if checks["database"]["status"] == "up" else "unhealthy"
    return {"status": overall, "version": "1.0.0", "checks": checks}
