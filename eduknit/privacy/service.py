"""
Privacy services: settings, consent, data export and account deletion.

User-initiated deletion requests stay PENDING with auto_process set and are
picked up by the scheduled job once the grace period has passed. An admin can
approve (now or at a later date) or reject any open request.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional, List, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING

from eduknit import config
from eduknit.admin.audit import log_audit
from eduknit.auth.dependencies import CurrentUser
from eduknit.auth.models import public_user
from eduknit.auth.security import verify_password
from eduknit.database import generate_id, to_mongo
from eduknit.errors import NotFoundError, ValidationError
from eduknit.integrations.discord import mask_webhook_url
from eduknit.privacy.models import (
    DeletionStatus, OPEN_DELETION_STATUSES, PrivacySettingsUpdate, ConsentUpdate,
    DeletionRequestCreate, DeletionReview, ReviewAction
)
from eduknit.students.database import get_or_create_profile, update_profile_fields
from eduknit.students.service import remove_photo_file

logger = logging.getLogger(__name__)


# ==================== SETTINGS ====================

async def get_privacy_settings(db: AsyncIOMotorDatabase, user_id: str) -> dict:
    profile = await get_or_create_profile(db, user_id)
    return profile["privacy"]


async def update_privacy_settings(db: AsyncIOMotorDatabase, user_id: str, data: PrivacySettingsUpdate) -> dict:
    await get_or_create_profile(db, user_id)
    updates = {
        f"privacy.{key}": to_mongo(value)
        for key, value in data.dict(exclude_unset=True).items()
        if value is not None
    }
    if not updates:
        raise ValidationError("No privacy settings to update")
    profile = await update_profile_fields(db, user_id, updates)
    return profile["privacy"]


async def update_consent(db: AsyncIOMotorDatabase, user_id: str, data: ConsentUpdate) -> dict:
    """Consent changes are timestamped; unchanged values keep their date"""
    profile = await get_or_create_profile(db, user_id)
    current = profile["privacy"]
    now = datetime.utcnow()

    updates = {}
    for key, value in data.dict(exclude_unset=True).items():
        if value is None:
            continue
        updates[f"privacy.{key}"] = value
        if current.get(key) != value:
            updates[f"privacy.{key}_date"] = now
    if not updates:
        raise ValidationError("No consent settings to update")

    profile = await update_profile_fields(db, user_id, updates)
    return profile["privacy"]


# ==================== EXPORT ====================

async def export_user_data(db: AsyncIOMotorDatabase, user_id: str) -> dict:
    user = await db.users.find_one({"user_id": user_id})
    if not user:
        raise NotFoundError("User")

    profile = await db.student_profiles.find_one({"user_id": user_id}, {"_id": 0})
    enrollments = await db.enrollments.find({"user_id": user_id}, {"_id": 0}).to_list(length=None)
    completions = await db.lesson_completions.find({"user_id": user_id}, {"_id": 0}).to_list(length=None)
    attempts = await db.quiz_attempts.find({"user_id": user_id}, {"_id": 0}).to_list(length=None)
    integrations = await db.integrations.find({"user_id": user_id}, {"_id": 0}).to_list(length=None)
    for integration in integrations:
        integration["webhook_url"] = mask_webhook_url(integration.get("webhook_url"))
    deletion_requests = await list_user_deletion_requests(db, user_id)
    audit_logs, _ = await user_audit_logs(db, user_id, limit=1000)

    now = datetime.utcnow()
    return {
        "filename": f"user_data_{user_id}_{now:%Y%m%d%H%M%S}.json",
        "data": {
            "user": public_user(user),
            "profile": profile,
            "enrollments": enrollments,
            "lesson_completions": completions,
            "quiz_attempts": attempts,
            "integrations": integrations,
            "deletion_requests": deletion_requests,
            "audit_logs": audit_logs,
            "exported_at": now,
        },
    }


# ==================== DELETION REQUESTS ====================

async def get_open_request(db: AsyncIOMotorDatabase, user_id: str) -> Optional[dict]:
    return await db.deletion_requests.find_one(
        {"user_id": user_id, "status": {"$in": OPEN_DELETION_STATUSES}}, {"_id": 0}
    )


async def request_account_deletion(db: AsyncIOMotorDatabase, user: dict, data: DeletionRequestCreate) -> dict:
    if not verify_password(data.password, user.get("password_hash") or ""):
        raise ValidationError("Invalid password")
    if await get_open_request(db, user["user_id"]):
        raise ValidationError("Account deletion is already scheduled")

    now = datetime.utcnow()
    scheduled_for = now + timedelta(days=config.DELETION_GRACE_DAYS)
    request = {
        "request_id": generate_id("DEL"),
        "user_id": user["user_id"],
        "requested_by": user["user_id"],
        "reason": data.reason,
        "status": DeletionStatus.PENDING.value,
        "auto_process": True,
        "scheduled_for": scheduled_for,
        "admin_notes": None,
        "processed_by": None,
        "processed_at": None,
        "completed_at": None,
        "created_at": now,
        "updated_at": now,
    }
    await db.deletion_requests.insert_one(request)
    await db.users.update_one(
        {"user_id": user["user_id"]},
        {"$set": {
            "deletion_requested_at": now,
            "deletion_scheduled_for": scheduled_for,
            "updated_at": now,
        }}
    )
    request.pop("_id", None)
    logger.info("Deletion requested by %s, scheduled for %s", user["user_id"], scheduled_for.date())
    return request


async def cancel_account_deletion(db: AsyncIOMotorDatabase, user_id: str, reason: Optional[str] = None) -> dict:
    request = await get_open_request(db, user_id)
    if not request:
        raise NotFoundError("Pending deletion request")

    now = datetime.utcnow()
    await db.deletion_requests.update_one(
        {"request_id": request["request_id"]},
        {"$set": {
            "status": DeletionStatus.CANCELLED.value,
            "admin_notes": reason or "Request cancelled by user",
            "processed_by": user_id,
            "processed_at": now,
            "updated_at": now,
        }}
    )
    await _clear_user_deletion_flags(db, user_id)
    request.update({"status": DeletionStatus.CANCELLED.value, "processed_at": now})
    return request


async def _clear_user_deletion_flags(db: AsyncIOMotorDatabase, user_id: str):
    await db.users.update_one(
        {"user_id": user_id},
        {"$set": {"deletion_requested_at": None, "deletion_scheduled_for": None, "updated_at": datetime.utcnow()}}
    )


async def deletion_status(db: AsyncIOMotorDatabase, user_id: str) -> dict:
    request = await get_open_request(db, user_id)
    if not request:
        return {"deletion_requested": False, "request": None, "days_remaining": None}

    days_remaining = None
    if request.get("scheduled_for"):
        days_remaining = max(0, (request["scheduled_for"] - datetime.utcnow()).days)
    return {"deletion_requested": True, "request": request, "days_remaining": days_remaining}


async def list_user_deletion_requests(db: AsyncIOMotorDatabase, user_id: str) -> List[dict]:
    cursor = db.deletion_requests.find({"user_id": user_id}, {"_id": 0}).sort("created_at", DESCENDING)
    return await cursor.to_list(length=None)


# ==================== ADMIN ====================

async def list_deletion_requests(
    db: AsyncIOMotorDatabase,
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 50
) -> Tuple[List[dict], int]:
    query = {"status": status} if status else {}
    total = await db.deletion_requests.count_documents(query)
    cursor = db.deletion_requests.find(query, {"_id": 0}).sort("created_at", DESCENDING).skip((page - 1) * limit).limit(limit)
    requests = await cursor.to_list(length=limit)

    user_ids = list({r["user_id"] for r in requests})
    users = {
        u["user_id"]: u
        async for u in db.users.find(
            {"user_id": {"$in": user_ids}},
            {"_id": 0, "user_id": 1, "username": 1, "email": 1, "first_name": 1, "last_name": 1}
        )
    }
    for request in requests:
        request["user"] = users.get(request["user_id"])
    return requests, total


async def review_deletion_request(
    db: AsyncIOMotorDatabase,
    request_id: str,
    review: DeletionReview,
    admin: CurrentUser
) -> dict:
    request = await db.deletion_requests.find_one({"request_id": request_id}, {"_id": 0})
    if not request:
        raise NotFoundError("Deletion request")
    if request["status"] not in OPEN_DELETION_STATUSES:
        raise ValidationError("Only pending or approved requests can be processed")

    now = datetime.utcnow()
    updates = {
        "processed_by": admin.user_id,
        "processed_at": now,
        "admin_notes": review.admin_notes,
        "updated_at": now,
    }

    if review.action == ReviewAction.REJECT:
        updates["status"] = DeletionStatus.REJECTED.value
        await db.deletion_requests.update_one({"request_id": request_id}, {"$set": updates})
        await _clear_user_deletion_flags(db, request["user_id"])
        await log_audit(db, admin, "reject_deletion", "deletion_request", request_id, {"user_id": request["user_id"]})
        request.update(updates)
        return request

    scheduled_for = review.scheduled_for or now
    updates.update({"status": DeletionStatus.APPROVED.value, "scheduled_for": scheduled_for})
    await db.deletion_requests.update_one({"request_id": request_id}, {"$set": updates})
    await db.users.update_one({"user_id": request["user_id"]}, {"$set": {"deletion_scheduled_for": scheduled_for}})
    await log_audit(
        db, admin, "approve_deletion", "deletion_request", request_id,
        {"user_id": request["user_id"], "scheduled_for": scheduled_for}
    )
    request.update(updates)

    if scheduled_for <= now:
        await complete_account_deletion(db, request, admin)
        request = await db.deletion_requests.find_one({"request_id": request_id}, {"_id": 0})
    return request


async def complete_account_deletion(db: AsyncIOMotorDatabase, request: dict, actor: Optional[CurrentUser] = None):
    """Anonymise the user and remove their personal records"""
    user_id = request["user_id"]
    now = datetime.utcnow()

    profile = await db.student_profiles.find_one({"user_id": user_id}, {"profile_photo": 1})
    photo = ((profile or {}).get("profile_photo") or {}).get("filename")
    if photo:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, remove_photo_file, photo)

    await db.users.update_one(
        {"user_id": user_id},
        {"$set": {
            "email": f"deleted_{user_id}@deleted.local".lower(),
            "username": f"deleted_{user_id}",
            "first_name": None,
            "last_name": None,
            "phone_number": None,
            "password_hash": None,
            "refresh_tokens": [],
            "email_verification_token": None,
            "password_reset_token": None,
            "enrollment_status": "inactive",
            "is_deleted": True,
            "deleted_at": now,
            "deletion_scheduled_for": None,
            "updated_at": now,
        }}
    )

    removed = {
        "profiles": (await db.student_profiles.delete_many({"user_id": user_id})).deleted_count,
        "lesson_completions": (await db.lesson_completions.delete_many({"user_id": user_id})).deleted_count,
        "quiz_attempts": (await db.quiz_attempts.delete_many({"user_id": user_id})).deleted_count,
        "enrollments": (await db.enrollments.delete_many({"user_id": user_id})).deleted_count,
        "integrations": (await db.integrations.delete_many({"user_id": user_id})).deleted_count,
    }

    await db.deletion_requests.update_one(
        {"request_id": request["request_id"]},
        {"$set": {"status": DeletionStatus.COMPLETED.value, "completed_at": now, "updated_at": now}}
    )
    await log_audit(db, actor, "process_deletion", "user", user_id, {"request_id": request["request_id"], "removed": removed})
    logger.info("Account %s anonymised (request %s)", user_id, request["request_id"])
    return removed


async def process_due_deletions(db: AsyncIOMotorDatabase, now: Optional[datetime] = None) -> int:
    """Complete approved or auto-processed requests whose date has passed"""
    now = now or datetime.utcnow()
    query = {
        "scheduled_for": {"$lte": now},
        "$or": [
            {"status": DeletionStatus.APPROVED.value},
            {"status": DeletionStatus.PENDING.value, "auto_process": True},
        ],
    }
    due = await db.deletion_requests.find(query, {"_id": 0}).to_list(length=None)

    processed = 0
    for request in due:
        try:
            await complete_account_deletion(db, request)
            processed += 1
        except Exception as e:
            logger.error("Deletion of %s failed: %s", request["user_id"], e)
    return processed


async def run_deletion_job(db: AsyncIOMotorDatabase):
    """
    Background worker that processes due deletion requests every interval.
    """
    while True:
        try:
            processed = await process_due_deletions(db)
            if processed:
                logger.info("Deletion job processed %d request(s)", processed)
        except Exception as e:
            logger.error("Deletion job run failed: %s", e)
        await asyncio.sleep(config.DELETION_JOB_INTERVAL_SECONDS)


# ==================== AUDIT ====================

async def user_audit_logs(db: AsyncIOMotorDatabase, user_id: str, limit: int = 50, skip: int = 0) -> Tuple[List[dict], int]:
    """Entries the user performed or that target their account"""
    query = {"$or": [
        {"actor_user_id": user_id},
        {"target_type": "user", "target_id": user_id},
        {"metadata.user_id": user_id},
    ]}
    total = await db.audit_logs.count_documents(query)
    cursor = db.audit_logs.find(query, {"_id": 0}).sort("timestamp", DESCENDING).skip(skip).limit(limit)
    return await cursor.to_list(length=limit), total
