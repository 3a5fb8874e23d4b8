"""
Health check endpoint.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime, timezone
import logging

from app.database import get_db, ping_database
from app.dependencies.services import get_gemini_client
from app.models.schemas import HealthCheckResponse
from app.services.gemini_client import GeminiClient

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=HealthCheckResponse)
async def health_check(
    db: AsyncSession = Depends(get_db),
    llm: GeminiClient = Depends(get_gemini_client),
):
    """
    Health check endpoint to verify system status.

    The model is reported as "ok" when an API key is configured; no
    request is sent to Gemini so polling costs no quota.

    Returns:
        HealthCheckResponse with status of database and Gemini
    """
    db_status = "ok" if await ping_database(db) else "error"

    gemini_status = "ok" if llm.is_configured else "not_configured"

    overall_status = "healthy" if db_status == "ok" and gemini_status == "ok" else "degraded"

    return HealthCheckResponse(
        status=overall_status,
        database=db_status,
        gemini=gemini_status,
        timestamp=datetime.now(timezone.utc),
    )
