import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..dependencies import get_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", status_code=status.HTTP_200_OK)
async def healthcheck() -> dict[str, str]:
    """Liveness: the process is up and serving requests."""

    return {"status": "ok"}


@router.get("/ready")
async def readiness(request: Request, session: AsyncSession = Depends(get_session)) -> JSONResponse:
    """Readiness: the database answers and the payment gateway is configured."""

    try:
        await session.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError:
        logger.exception("Readiness probe could not reach the database")
        database = "unavailable"
    gateway = "ok" if getattr(request.app.state, "payment_gateway", None) is not None else "not_configured"
    ready = database == "ok" and gateway == "ok"
    return JSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ok" if ready else "degraded", "database": database, "payments": gateway},
    )
