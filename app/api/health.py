"""Health check endpoint."""
import logging

from fastapi import APIRouter, Request
from sqlalchemy import text

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check(request: Request):
    """Health check endpoint. Reports degraded if the database can't be reached."""
    logger.debug(
        f"[HEALTH] Health check requested - Client: {request.client.host if request.client else 'unknown'}"
    )
    database = getattr(request.app.state, "database", None)
    if database is None:
        return {"status": "starting"}
    try:
        async with database.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"[HEALTH] Database check failed: {type(e).__name__}: {e}")
        return {"status": "degraded", "database": "unreachable"}
    return {"status": "healthy", "subscribers": request.app.state.notifier.subscriber_count}
