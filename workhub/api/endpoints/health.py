from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from workhub.core.logging import get_logger
from workhub.dependencies.database import SessionDep

logger = get_logger(__name__)

router = APIRouter()


@router.get("")
async def health_check(session: SessionDep):
    """
    Report API and database health.
    """
    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.error("Health check failed: database unreachable", exc_info=True)
        return JSONResponse(
            status_code=503, content={"status": "error", "database": "unreachable"}
        )
    return {"status": "ok", "database": "ok"}
