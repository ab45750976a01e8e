import secrets
import string
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING
from datetime import datetime
from typing import List, Optional

from eduknit.database import generate_id
from eduknit.enrollments.models import EnrollmentStatus, EnrollmentSource

BASE36_ALPHABET = string.digits + string.ascii_uppercase

# ==================== HELPERS ====================

def to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))

def generate_certificate_id(now: Optional[datetime] = None) -> str:
    """EDUKNIT-<base36 timestamp>-<4 random>"""
    now = now or datetime.utcnow()
    timestamp = int((now - datetime(1970, 1, 1)).total_seconds() * 1000)
    suffix = "".join(secrets.choice(BASE36_ALPHABET) for _ in range(4))
    return f"EDUKNIT-{to_base36(timestamp)}-{suffix}"

def is_enrollment_active(enrollment: dict, now: Optional[datetime] = None) -> bool:
    if enrollment.get("status") != EnrollmentStatus.ACTIVE.value:
        return False
    expiry = enrollment.get("expiry_date")
    return expiry is None or expiry > (now or datetime.utcnow())

def new_enrollment_document(user_id: str, course_id: str, source: str = EnrollmentSource.DIRECT.value) -> dict:
    now = datetime.utcnow()
    return {
        "enrollment_id": generate_id("ENR"),
        "user_id": user_id,
        "course_id": course_id,
        "enrolled_at": now,
        "status": EnrollmentStatus.ACTIVE.value,
        "progress": {
            "completed_lessons": [],
            "completed_modules": [],
            "total_progress": 0,
            "last_activity_date": now,
            "time_spent": 0,
        },
        "certificate_issued": False,
        "certificate_id": None,
        "completion_date": None,
        "expiry_date": None,
        "metadata": {"enrollment_source": source},
        "created_at": now,
        "updated_at": now,
    }

# ==================== ENROLLMENT CRUD ====================

async def enroll_user(db: AsyncIOMotorDatabase, user_id: str, course_id: str, source: str = EnrollmentSource.DIRECT.value) -> dict:
    enrollment = new_enrollment_document(user_id, course_id, source)
    await db.enrollments.insert_one(enrollment)
    enrollment.pop("_id", None)
    return enrollment

async def get_enrollment(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> Optional[dict]:
    return await db.enrollments.find_one({"user_id": user_id, "course_id": course_id}, {"_id": 0})

async def get_user_enrollments(db: AsyncIOMotorDatabase, user_id: str, status: Optional[str] = None) -> List[dict]:
    query = {"user_id": user_id}
    if status:
        query["status"] = status
    cursor = db.enrollments.find(query, {"_id": 0}).sort("enrolled_at", DESCENDING)
    return await cursor.to_list(length=None)

async def set_enrollment_status(db: AsyncIOMotorDatabase, enrollment_id: str, status: str, extra: dict = None) -> None:
    updates = {"status": status, "updated_at": datetime.utcnow()}
    if extra:
        updates.update(extra)
    await db.enrollments.update_one({"enrollment_id": enrollment_id}, {"$set": updates})

async def reactivate_enrollment(db: AsyncIOMotorDatabase, enrollment: dict, source: str) -> dict:
    """A dropped enrollment comes back ACTIVE with its progress kept"""
    now = datetime.utcnow()
    await db.enrollments.update_one(
        {"enrollment_id": enrollment["enrollment_id"]},
        {"$set": {
            "status": EnrollmentStatus.ACTIVE.value,
            "enrolled_at": now,
            "progress.last_activity_date": now,
            "metadata.enrollment_source": source,
            "updated_at": now,
        }}
    )
    return await get_enrollment(db, enrollment["user_id"], enrollment["course_id"])
