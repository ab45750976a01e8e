"""
INTEGRATIONS ROUTER
File: eduknit/integrations/router.py
"""

from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from eduknit.auth.dependencies import CurrentUser, get_current_user
from eduknit.database import get_db
from eduknit.errors import success
from eduknit.integrations import service
from eduknit.integrations.models import Platform, IntegrationUpsert, TestNotification

router = APIRouter(prefix="/api/integrations", tags=["Integrations"])


@router.get("")
async def list_integrations(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    integrations = await service.list_integrations(db, current_user.user_id)
    return success(integrations, "Integrations retrieved")


@router.post("")
async def save_integration(
    data: IntegrationUpsert,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Create or update; a new webhook must accept a test embed first"""
    integration = await service.upsert_integration(db, current_user.user_id, data)
    return success(integration, "Integration saved successfully")


@router.post("/notify")
async def send_test_notification(
    data: TestNotification,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    result = await service.send_test_notification(db, current_user.user_id, data)
    return success(result, "Notification sent")


@router.post("/{platform}/test")
async def test_integration(
    platform: Platform,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    result = await service.test_integration(db, current_user.user_id, platform.value)
    return success(result, "Integration test successful")


@router.delete("/{platform}")
async def delete_integration(
    platform: Platform,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await service.delete_integration(db, current_user.user_id, platform.value)
    return success(None, "Integration removed")
