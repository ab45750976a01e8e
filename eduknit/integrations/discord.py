"""
Discord webhook notifications.
Domain events post embeds to the user's webhook when the integration and the
matching preference are enabled. Delivery failures are logged and recorded on
the integration; they never reach the caller.
"""

import logging
import re
from datetime import datetime
from typing import Optional, List

import httpx
from motor.motor_asyncio import AsyncIOMotorDatabase

from eduknit import config

logger = logging.getLogger(__name__)

DISCORD_PLATFORM = "discord"
WEBHOOK_PATTERN = re.compile(r"^https://(discord\.com|discordapp\.com|ptb\.discord\.com|canary\.discord\.com)/api/webhooks/\d+/[\w-]+$")

COLOR_INFO = 0x3B82F6
COLOR_SUCCESS = 0x22C55E
COLOR_ACHIEVEMENT = 0xF59E0B

PREFERENCE_KEYS = ("notifications", "announcements", "progress_updates", "achievement_sharing")


class DiscordDeliveryError(Exception):
    pass


def is_valid_webhook_url(url: str) -> bool:
    return bool(url and WEBHOOK_PATTERN.match(url.strip()))


def mask_webhook_url(url: Optional[str]) -> Optional[str]:
    """Hide the webhook token part when echoing integrations back"""
    if not url:
        return url
    head, _, token = url.rpartition("/")
    return f"{head}/{token[:4]}..." if token else url


def build_embed(title: str, description: str, color: int = COLOR_INFO, fields: List[dict] = None) -> dict:
    return {
        "title": title,
        "description": description,
        "color": color,
        "fields": fields or [],
        "timestamp": datetime.utcnow().isoformat(),
        "footer": {"text": "EduKnit Learn"},
    }


async def post_webhook(webhook_url: str, embeds: List[dict], username: str = "EduKnit Learn"):
    """POST embeds to a webhook; raises DiscordDeliveryError on any failure"""
    payload = {"username": username, "embeds": embeds}
    try:
        async with httpx.AsyncClient(timeout=config.DISCORD_TIMEOUT_SECONDS) as client:
            response = await client.post(webhook_url, json=payload)
    except httpx.HTTPError as e:
        raise DiscordDeliveryError(f"Webhook request failed: {e}")

    if response.status_code >= 400:
        raise DiscordDeliveryError(f"Webhook returned {response.status_code}")


# ==================== EVENT DELIVERY ====================

async def notify_user(db: AsyncIOMotorDatabase, user_id: str, preference: str, embed: dict) -> bool:
    """Deliver an embed if the user's Discord integration wants this kind of event"""
    try:
        integration = await db.integrations.find_one(
            {"user_id": user_id, "platform": DISCORD_PLATFORM, "is_active": True}
        )
    except Exception:
        logger.exception("Could not load Discord integration for %s", user_id)
        return False

    if not integration:
        return False

    preferences = integration.get("preferences", {})
    if not preferences.get("notifications", True) or not preferences.get(preference, True):
        return False

    now = datetime.utcnow()
    try:
        await post_webhook(integration["webhook_url"], [embed])
    except DiscordDeliveryError as e:
        logger.warning("Discord notification failed for %s: %s", user_id, e)
        await db.integrations.update_one(
            {"integration_id": integration["integration_id"]},
            {"$set": {"metadata.last_error": str(e), "metadata.last_error_at": now},
             "$inc": {"metadata.error_count": 1}}
        )
        return False

    await db.integrations.update_one(
        {"integration_id": integration["integration_id"]},
        {"$set": {"metadata.last_sync": now}, "$inc": {"metadata.sync_count": 1}}
    )
    return True


async def notify_enrollment(db: AsyncIOMotorDatabase, user_id: str, course: dict) -> bool:
    embed = build_embed(
        "📚 New Course Enrollment",
        f"Enrolled in **{course['title']}**",
        COLOR_INFO,
        [{"name": "Category", "value": course.get("category", "-"), "inline": True},
         {"name": "Level", "value": course.get("level", "-"), "inline": True}],
    )
    return await notify_user(db, user_id, "progress_updates", embed)


async def notify_course_completed(db: AsyncIOMotorDatabase, user_id: str, course: dict, certificate_id: Optional[str]) -> bool:
    fields = []
    if certificate_id:
        fields.append({"name": "Certificate", "value": certificate_id, "inline": False})
    embed = build_embed(
        "🎓 Course Completed",
        f"Completed **{course['title']}**",
        COLOR_SUCCESS,
        fields,
    )
    return await notify_user(db, user_id, "progress_updates", embed)


async def notify_badge_earned(db: AsyncIOMotorDatabase, user_id: str, badge: dict) -> bool:
    embed = build_embed(
        f"🏆 Badge Earned: {badge['name']}",
        badge.get("description", ""),
        COLOR_ACHIEVEMENT,
        [{"name": "Points", "value": str(badge.get("points", 0)), "inline": True}],
    )
    return await notify_user(db, user_id, "achievement_sharing", embed)
