# API Router for Health Checks
import logging

from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from member_trust_service.app.config import settings
from member_trust_service.infrastructure.database.connection import get_db

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/health", tags=["Monitoring"])
async def health_check(db: AsyncIOMotorDatabase = Depends(get_db)):
    mongodb_status = "connected"
    try:
        await db.command('ping')
    except Exception as e:
        logger.error(f"MongoDB health check ping failed: {e}")
        mongodb_status = "disconnected"
    return {
        "status": "ok" if mongodb_status == "connected" else "degraded",
        "components": {
            "mongodb": mongodb_status,
            "object_store": "configured" if settings.OBJECT_STORE_URL else "not_configured",
            "notifications": "configured" if settings.NOTIFICATION_SERVICE_URL else "not_configured",
        },
        "service_name": settings.SERVICE_NAME_API,
    }
