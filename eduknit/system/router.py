"""
HEALTH ROUTER
File: eduknit/system/router.py
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorDatabase

from eduknit import config
from eduknit.database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(tags=["System"])

STARTED_AT = datetime.utcnow()


def uptime_seconds() -> int:
    return int((datetime.utcnow() - STARTED_AT).total_seconds())


@router.get("/health")
async def health():
    return {
        "status": "UP",
        "service": "eduknit-learn",
        "version": config.VERSION,
        "environment": config.ENVIRONMENT,
        "uptime_seconds": uptime_seconds(),
        "timestamp": datetime.utcnow().isoformat(),
    }


@router.get("/health/ready")
async def readiness(db: AsyncIOMotorDatabase = Depends(get_db)):
    """Ready once the database answers a ping"""
    try:
        await db.command("ping")
    except Exception as e:
        logger.error("Readiness check failed: %s", e)
        return JSONResponse(
            status_code=503,
            content={"status": "DOWN", "database": "DOWN", "timestamp": datetime.utcnow().isoformat()},
        )
    return {"status": "UP", "database": "UP", "timestamp": datetime.utcnow().isoformat()}


@router.get("/health/live")
async def liveness():
    return {"status": "UP", "timestamp": datetime.utcnow().isoformat()}


@router.get("/version")
async def version():
    return {"version": config.VERSION, "api": "v1"}
