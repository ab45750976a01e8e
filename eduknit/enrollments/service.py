import logging
from motor.motor_asyncio import AsyncIOMotorDatabase
from datetime import datetime
from typing import List

from eduknit.analytics import metrics
from eduknit.analytics.service import sync_gamification
from eduknit.courses.database import get_course
from eduknit.enrollments.database import (
    enroll_user, get_enrollment, get_user_enrollments, reactivate_enrollment,
    set_enrollment_status, is_enrollment_active
)
from eduknit.enrollments.models import EnrollmentStatus
from eduknit.errors import ConflictError, NotFoundError, ValidationError
from eduknit.integrations.discord import notify_enrollment
from eduknit.progress.service import load_course_structure, completed_lesson_ids, build_course_outline

logger = logging.getLogger(__name__)

# allowed status transitions: action -> (from statuses, to status)
TRANSITIONS = {
    "pause": ({EnrollmentStatus.ACTIVE.value}, EnrollmentStatus.PAUSED.value),
    "resume": ({EnrollmentStatus.PAUSED.value}, EnrollmentStatus.ACTIVE.value),
    "drop": ({EnrollmentStatus.ACTIVE.value, EnrollmentStatus.PAUSED.value}, EnrollmentStatus.CANCELLED.value),
}


def course_summary(course: dict) -> dict:
    return {
        "course_id": course["course_id"],
        "title": course["title"],
        "slug": course.get("slug"),
        "description": course.get("description"),
        "category": course.get("category"),
        "level": course.get("level"),
        "instructor": course.get("instructor"),
        "image_url": course.get("image_url"),
        "duration": course.get("duration"),
        "total_modules": course.get("total_modules", 0),
        "total_lessons": course.get("total_lessons", 0),
    }


async def enroll(db: AsyncIOMotorDatabase, user_id: str, course_id: str, source: str) -> dict:
    course = await get_course(db, course_id)
    if not course:
        raise NotFoundError("Course")
    if not course.get("is_active", True):
        raise ValidationError("Course not available for enrollment")

    existing = await get_enrollment(db, user_id, course_id)
    if existing and existing["status"] != EnrollmentStatus.CANCELLED.value:
        raise ConflictError("Already enrolled in this course")

    if existing:
        enrollment = await reactivate_enrollment(db, existing, source)
    else:
        enrollment = await enroll_user(db, user_id, course_id, source)

    logger.info("User %s enrolled in %s", user_id, course_id)
    await notify_enrollment(db, user_id, course)
    new_badges = await sync_gamification(db, user_id)

    return {"enrollment": enrollment, "course": course_summary(course), "new_badges": new_badges}


async def my_courses(db: AsyncIOMotorDatabase, user_id: str, status: str = None) -> List[dict]:
    enrollments = await get_user_enrollments(db, user_id, status)
    result = []
    for enrollment in enrollments:
        if status is None and enrollment["status"] == EnrollmentStatus.CANCELLED.value:
            continue
        course = await get_course(db, enrollment["course_id"])
        if not course:
            continue
        progress = enrollment.get("progress", {})
        result.append({
            "enrollment_id": enrollment["enrollment_id"],
            "course": course_summary(course),
            "status": enrollment["status"],
            "is_active": is_enrollment_active(enrollment),
            "progress": progress.get("total_progress", 0),
            "progress_label": metrics.progress_label(progress.get("total_progress", 0)),
            "completed_lessons": len(progress.get("completed_lessons", [])),
            "time_spent": progress.get("time_spent", 0),
            "last_activity_date": progress.get("last_activity_date"),
            "enrolled_at": enrollment["enrolled_at"],
            "completion_date": enrollment.get("completion_date"),
            "certificate_issued": enrollment.get("certificate_issued", False),
            "certificate_id": enrollment.get("certificate_id"),
        })
    return result


async def enrolled_course_detail(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> dict:
    enrollment = await get_enrollment(db, user_id, course_id)
    if not enrollment or enrollment["status"] == EnrollmentStatus.CANCELLED.value:
        raise NotFoundError("Enrollment")
    course = await get_course(db, course_id)
    if not course:
        raise NotFoundError("Course")

    modules, lessons_by_module = await load_course_structure(db, course_id)
    completed = await completed_lesson_ids(db, user_id, course_id)
    outline = build_course_outline(modules, lessons_by_module, completed)

    return {
        "course": {**course_summary(course), "overview": course.get("overview"), "skills": course.get("skills", [])},
        "enrollment": enrollment,
        "progress_label": metrics.progress_label(enrollment["progress"].get("total_progress", 0)),
        "modules": outline["modules"],
        "next_lesson": outline["next_lesson"],
    }


async def change_status(db: AsyncIOMotorDatabase, user_id: str, course_id: str, action: str) -> dict:
    enrollment = await get_enrollment(db, user_id, course_id)
    if not enrollment:
        raise NotFoundError("Enrollment")

    allowed_from, target = TRANSITIONS[action]
    if enrollment["status"] not in allowed_from:
        raise ValidationError(f"Cannot {action} an enrollment that is {enrollment['status']}")

    now = datetime.utcnow()
    extra = {"progress.last_activity_date": now} if action == "resume" else None
    await set_enrollment_status(db, enrollment["enrollment_id"], target, extra)
    logger.info("Enrollment %s: %s -> %s", enrollment["enrollment_id"], enrollment["status"], target)

    if action == "drop":
        await sync_gamification(db, user_id)
    return await get_enrollment(db, user_id, course_id)
