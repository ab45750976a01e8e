"""
Admin user management and platform statistics
"""

import logging
import re
from datetime import datetime, timedelta
from typing import Optional, Tuple, List

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING

from eduknit.auth.models import public_user
from eduknit.auth.service import new_user_document, ensure_unique_identity
from eduknit.errors import ConflictError, NotFoundError, ValidationError
from eduknit.admin.models import AdminUserCreate

logger = logging.getLogger(__name__)


def month_start(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


# ==================== USERS ====================

async def list_users(
    db: AsyncIOMotorDatabase,
    role: Optional[str] = None,
    status: Optional[str] = None,
    search: Optional[str] = None,
    include_deleted: bool = False,
    page: int = 1,
    limit: int = 20,
) -> Tuple[List[dict], int]:
    query = {}
    if not include_deleted:
        query["is_deleted"] = {"$ne": True}
    if role:
        query["role"] = role
    if status:
        query["enrollment_status"] = status
    if search:
        pattern = {"$regex": re.escape(search.strip()), "$options": "i"}
        query["$or"] = [
            {"username": pattern}, {"email": pattern},
            {"first_name": pattern}, {"last_name": pattern},
        ]

    total = await db.users.count_documents(query)
    cursor = db.users.find(query).sort("created_at", DESCENDING).skip((page - 1) * limit).limit(limit)
    users = [public_user(u) for u in await cursor.to_list(length=limit)]
    return users, total


async def user_stats(db: AsyncIOMotorDatabase) -> dict:
    base = {"is_deleted": {"$ne": True}}
    by_role = {}
    async for row in db.users.aggregate([{"$match": base}, {"$group": {"_id": "$role", "count": {"$sum": 1}}}]):
        by_role[row["_id"]] = row["count"]
    by_status = {}
    async for row in db.users.aggregate([{"$match": base}, {"$group": {"_id": "$enrollment_status", "count": {"$sum": 1}}}]):
        by_status[row["_id"]] = row["count"]

    return {
        "total": sum(by_role.values()),
        "by_role": by_role,
        "by_status": by_status,
        "verified": await db.users.count_documents({**base, "is_email_verified": True}),
        "unverified": await db.users.count_documents({**base, "is_email_verified": {"$ne": True}}),
        "new_this_month": await db.users.count_documents({**base, "created_at": {"$gte": month_start(datetime.utcnow())}}),
        "deleted": await db.users.count_documents({"is_deleted": True}),
    }


async def create_user(db: AsyncIOMotorDatabase, data: AdminUserCreate) -> dict:
    await ensure_unique_identity(db, data.email, data.username)
    user = new_user_document(
        username=data.username,
        email=data.email,
        password=data.password,
        first_name=data.first_name,
        last_name=data.last_name,
        role=data.role.value,
        phone_number=data.phone_number,
        enrollment_status=data.enrollment_status.value,
        is_email_verified=data.is_email_verified,
    )
    await db.users.insert_one(user)
    logger.info("Admin created user %s (%s)", user["user_id"], user["role"])
    return public_user(user)


async def get_user_detail(db: AsyncIOMotorDatabase, user_id: str) -> dict:
    user = await db.users.find_one({"user_id": user_id})
    if not user:
        raise NotFoundError("User")
    profile = await db.student_profiles.find_one({"user_id": user_id}, {"_id": 0})
    enrollments = await db.enrollments.count_documents({"user_id": user_id})
    completed = await db.enrollments.count_documents({"user_id": user_id, "status": "COMPLETED"})
    return {
        "user": public_user(user),
        "profile": profile,
        "enrollments": {"total": enrollments, "completed": completed},
    }


async def update_user(db: AsyncIOMotorDatabase, user_id: str, updates: dict) -> dict:
    user = await db.users.find_one({"user_id": user_id, "is_deleted": {"$ne": True}})
    if not user:
        raise NotFoundError("User")

    if "email" in updates and updates["email"] != user["email"]:
        if await db.users.find_one({"email": updates["email"]}):
            raise ConflictError("Email already registered")
    if "username" in updates and updates["username"] != user["username"]:
        if await db.users.find_one({"username": updates["username"]}):
            raise ConflictError("Username already taken")

    updates["updated_at"] = datetime.utcnow()
    await db.users.update_one({"user_id": user_id}, {"$set": updates})
    return public_user(await db.users.find_one({"user_id": user_id}))


async def soft_delete_user(db: AsyncIOMotorDatabase, user_id: str, actor_id: str) -> dict:
    if user_id == actor_id:
        raise ValidationError("You cannot delete your own account")
    user = await db.users.find_one({"user_id": user_id, "is_deleted": {"$ne": True}})
    if not user:
        raise NotFoundError("User")

    now = datetime.utcnow()
    await db.users.update_one(
        {"user_id": user_id},
        {"$set": {
            "is_deleted": True,
            "deleted_at": now,
            "enrollment_status": "inactive",
            "refresh_tokens": [],
            "updated_at": now,
        }}
    )
    logger.info("User %s soft-deleted by %s", user_id, actor_id)
    return {"user_id": user_id, "is_deleted": True, "deleted_at": now}


async def change_account_status(db: AsyncIOMotorDatabase, user_id: str, status: str, actor_id: str) -> dict:
    if user_id == actor_id:
        raise ValidationError("You cannot change your own account status")
    user = await db.users.find_one({"user_id": user_id, "is_deleted": {"$ne": True}})
    if not user:
        raise NotFoundError("User")

    updates = {"enrollment_status": status, "updated_at": datetime.utcnow()}
    if status != "active":
        updates["refresh_tokens"] = []
    await db.users.update_one({"user_id": user_id}, {"$set": updates})
    return {"user_id": user_id, "previous_status": user.get("enrollment_status"), "enrollment_status": status}


# ==================== PLATFORM STATS ====================

async def dashboard_stats(db: AsyncIOMotorDatabase) -> dict:
    now = datetime.utcnow()
    active_users = {"is_deleted": {"$ne": True}}

    enrollments_by_status = {}
    progress_total = 0.0
    enrollment_total = 0
    async for row in db.enrollments.aggregate([
        {"$group": {"_id": "$status", "count": {"$sum": 1}, "avg_progress": {"$avg": "$progress.total_progress"}}}
    ]):
        enrollments_by_status[row["_id"]] = row["count"]
        enrollment_total += row["count"]
        progress_total += (row.get("avg_progress") or 0) * row["count"]

    return {
        "users": {
            "total": await db.users.count_documents(active_users),
            "students": await db.users.count_documents({**active_users, "role": "student"}),
            "active": await db.users.count_documents({**active_users, "enrollment_status": "active"}),
            "new_this_month": await db.users.count_documents({**active_users, "created_at": {"$gte": month_start(now)}}),
            "active_last_7_days": await db.users.count_documents({**active_users, "last_login_at": {"$gte": now - timedelta(days=7)}}),
        },
        "courses": {
            "total": await db.courses.count_documents({}),
            "active": await db.courses.count_documents({"is_active": True}),
            "lessons": await db.course_lessons.count_documents({"is_active": True}),
        },
        "enrollments": {
            "total": enrollment_total,
            "by_status": enrollments_by_status,
            "average_progress": round(progress_total / enrollment_total, 1) if enrollment_total else 0,
            "certificates_issued": await db.enrollments.count_documents({"certificate_issued": True}),
        },
        "learning": {
            "lesson_completions": await db.lesson_completions.count_documents({}),
            "quiz_attempts": await db.quiz_attempts.count_documents({"status": "COMPLETED"}),
            "quizzes_passed": await db.quiz_attempts.count_documents({"status": "COMPLETED", "is_passed": True}),
        },
        "privacy": {
            "pending_deletion_requests": await db.deletion_requests.count_documents({"status": "PENDING"}),
        },
    }


async def enrollment_statistics(db: AsyncIOMotorDatabase, months: int = 6) -> dict:
    pipeline = [
        {"$group": {
            "_id": "$course_id",
            "total": {"$sum": 1},
            "completed": {"$sum": {"$cond": [{"$eq": ["$status", "COMPLETED"]}, 1, 0]}},
            "active": {"$sum": {"$cond": [{"$eq": ["$status", "ACTIVE"]}, 1, 0]}},
            "avg_progress": {"$avg": "$progress.total_progress"},
        }},
        {"$lookup": {
            "from": "courses",
            "localField": "_id",
            "foreignField": "course_id",
            "as": "course"
        }},
        {"$unwind": "$course"},
        {"$project": {
            "_id": 0,
            "course_id": "$_id",
            "title": "$course.title",
            "category": "$course.category",
            "total": 1,
            "completed": 1,
            "active": 1,
            "avg_progress": 1,
        }},
        {"$sort": {"total": -1}},
    ]
    per_course = await db.enrollments.aggregate(pipeline).to_list(length=None)
    for row in per_course:
        row["avg_progress"] = round(row.get("avg_progress") or 0, 1)
        row["completion_rate"] = round(row["completed"] / row["total"] * 100, 1) if row["total"] else 0

    now = datetime.utcnow()
    since = month_start(now - timedelta(days=31 * (months - 1)))
    recent = await db.enrollments.find({"enrolled_at": {"$gte": since}}, {"_id": 0, "enrolled_at": 1}).to_list(length=None)
    per_month = {}
    for enrollment in recent:
        key = enrollment["enrolled_at"].strftime("%Y-%m")
        per_month[key] = per_month.get(key, 0) + 1

    return {
        "per_course": per_course,
        "per_month": [{"month": key, "enrollments": per_month[key]} for key in sorted(per_month)],
    }
