"""
Integration management: one document per (user, platform)
"""

import logging
from datetime import datetime
from typing import List

from motor.motor_asyncio import AsyncIOMotorDatabase

from eduknit.database import generate_id
from eduknit.errors import NotFoundError, ValidationError
from eduknit.integrations.discord import (
    COLOR_INFO, COLOR_SUCCESS, DiscordDeliveryError, build_embed, mask_webhook_url, post_webhook
)
from eduknit.integrations.models import IntegrationUpsert, IntegrationPreferences, TestNotification

logger = logging.getLogger(__name__)


def public_integration(integration: dict) -> dict:
    doc = {k: v for k, v in integration.items() if k != "_id"}
    doc["webhook_url"] = mask_webhook_url(doc.get("webhook_url"))
    return doc


async def list_integrations(db: AsyncIOMotorDatabase, user_id: str) -> List[dict]:
    cursor = db.integrations.find({"user_id": user_id}).sort("created_at", 1)
    return [public_integration(i) async for i in cursor]


async def get_integration(db: AsyncIOMotorDatabase, user_id: str, platform: str) -> dict:
    integration = await db.integrations.find_one({"user_id": user_id, "platform": platform})
    if not integration:
        raise NotFoundError("Integration")
    return integration


async def verify_webhook(webhook_url: str):
    """Post a test embed; an unreachable webhook is a validation error"""
    embed = build_embed("✅ Integration Connected", "Your EduKnit Learn notifications will appear here.", COLOR_SUCCESS)
    try:
        await post_webhook(webhook_url, [embed])
    except DiscordDeliveryError as e:
        raise ValidationError("Discord webhook could not be reached", [{"field": "webhook_url", "message": str(e)}])


async def upsert_integration(db: AsyncIOMotorDatabase, user_id: str, data: IntegrationUpsert) -> dict:
    platform = data.platform.value
    existing = await db.integrations.find_one({"user_id": user_id, "platform": platform})
    now = datetime.utcnow()

    webhook_url = data.webhook_url or (existing or {}).get("webhook_url")
    if not webhook_url:
        raise ValidationError("A webhook URL is required")
    if not existing or webhook_url != existing.get("webhook_url"):
        await verify_webhook(webhook_url)

    fields = {
        "webhook_url": webhook_url,
        "is_active": data.enabled,
        "updated_at": now,
    }
    for key in ("server_id", "channel_id"):
        value = getattr(data, key)
        if value is not None:
            fields[key] = value
    if data.preferences is not None:
        fields["preferences"] = data.preferences.dict()

    if existing:
        await db.integrations.update_one({"integration_id": existing["integration_id"]}, {"$set": fields})
        logger.info("Integration %s updated for %s", platform, user_id)
    else:
        fields.setdefault("preferences", IntegrationPreferences().dict())
        fields.setdefault("server_id", None)
        fields.setdefault("channel_id", None)
        await db.integrations.insert_one({
            "integration_id": generate_id("INT"),
            "user_id": user_id,
            "platform": platform,
            **fields,
            "metadata": {"last_sync": now, "sync_count": 1, "error_count": 0, "last_error": None},
            "created_at": now,
        })
        logger.info("Integration %s connected for %s", platform, user_id)

    return public_integration(await db.integrations.find_one({"user_id": user_id, "platform": platform}))


async def test_integration(db: AsyncIOMotorDatabase, user_id: str, platform: str) -> dict:
    integration = await get_integration(db, user_id, platform)
    now = datetime.utcnow()
    embed = build_embed("🔔 Integration Test", "Your EduKnit Learn integration is working.", COLOR_SUCCESS)
    try:
        await post_webhook(integration["webhook_url"], [embed])
    except DiscordDeliveryError as e:
        await db.integrations.update_one(
            {"integration_id": integration["integration_id"]},
            {"$set": {"metadata.last_error": str(e), "metadata.last_error_at": now},
             "$inc": {"metadata.error_count": 1}}
        )
        raise ValidationError("Integration test failed", [{"field": "webhook_url", "message": str(e)}])

    await db.integrations.update_one(
        {"integration_id": integration["integration_id"]},
        {"$set": {"metadata.last_sync": now, "metadata.last_error": None}, "$inc": {"metadata.sync_count": 1}}
    )
    return {"platform": platform, "delivered": True, "tested_at": now}


async def delete_integration(db: AsyncIOMotorDatabase, user_id: str, platform: str):
    result = await db.integrations.delete_one({"user_id": user_id, "platform": platform})
    if result.deleted_count == 0:
        raise NotFoundError("Integration")
    logger.info("Integration %s removed for %s", platform, user_id)


async def send_test_notification(db: AsyncIOMotorDatabase, user_id: str, data: TestNotification) -> dict:
    integration = await get_integration(db, user_id, data.platform.value)
    if not integration.get("is_active"):
        raise ValidationError("Integration is disabled")

    embed = build_embed(data.title, data.message, COLOR_INFO)
    try:
        await post_webhook(integration["webhook_url"], [embed])
    except DiscordDeliveryError as e:
        raise ValidationError("Notification could not be delivered", [{"field": "webhook_url", "message": str(e)}])

    await db.integrations.update_one(
        {"integration_id": integration["integration_id"]},
        {"$set": {"metadata.last_sync": datetime.utcnow()}, "$inc": {"metadata.sync_count": 1}}
    )
    return {"platform": data.platform.value, "delivered": True}
