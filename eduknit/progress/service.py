"""
Lesson progress tracking.

Course progress is always completed active lessons / total active lessons of
the course, recomputed from lesson_completions on every progress write.
"""

import logging
from datetime import datetime
from typing import Optional, List, Dict

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError

from eduknit.analytics import metrics
from eduknit.analytics.service import sync_gamification
from eduknit.courses.database import get_course, get_lesson, is_unlocked, list_modules
from eduknit.database import generate_id
from eduknit.enrollments.database import (
    get_enrollment, is_enrollment_active, generate_certificate_id
)
from eduknit.enrollments.models import EnrollmentStatus
from eduknit.errors import AuthorizationError, NotFoundError
from eduknit.integrations.discord import notify_course_completed

logger = logging.getLogger(__name__)


# ==================== ACCESS ====================

async def require_progress_enrollment(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> dict:
    """Enrollment that may record progress: ACTIVE (and not expired) or COMPLETED"""
    enrollment = await get_enrollment(db, user_id, course_id)
    if not enrollment:
        raise NotFoundError("Enrollment")

    status = enrollment.get("status")
    if status == EnrollmentStatus.COMPLETED.value or is_enrollment_active(enrollment):
        return enrollment

    raise AuthorizationError(f"Enrollment is {status.lower()}. Resume it to continue learning.")


# ==================== OUTLINE ====================

async def load_course_structure(db: AsyncIOMotorDatabase, course_id: str):
    """Active modules (ordered) and their active lessons (ordered)"""
    modules = await list_modules(db, course_id)
    lessons = await db.course_lessons.find(
        {"course_id": course_id, "is_active": True}, {"_id": 0, "content": 0}
    ).sort("order_index", ASCENDING).to_list(length=None)

    lessons_by_module: Dict[str, List[dict]] = {m["module_id"]: [] for m in modules}
    for lesson in lessons:
        if lesson["module_id"] in lessons_by_module:
            lessons_by_module[lesson["module_id"]].append(lesson)
    return modules, lessons_by_module


def build_course_outline(modules: List[dict], lessons_by_module: Dict[str, List[dict]], completed_ids: set) -> dict:
    """Per-module completion, lock state and the next lesson to take"""
    completed_modules = {
        m["module_id"] for m in modules
        if lessons_by_module[m["module_id"]]
        and all(lesson["lesson_id"] in completed_ids for lesson in lessons_by_module[m["module_id"]])
    }

    outline = []
    next_lesson = None
    for module in modules:
        module_lessons = lessons_by_module[module["module_id"]]
        module_unlocked = is_unlocked(module, completed_modules)
        lesson_rows = []
        for lesson in module_lessons:
            done = lesson["lesson_id"] in completed_ids
            unlocked = module_unlocked and is_unlocked(lesson, completed_ids)
            lesson_rows.append({
                "lesson_id": lesson["lesson_id"],
                "title": lesson["title"],
                "type": lesson.get("type"),
                "order_index": lesson.get("order_index", 0),
                "estimated_duration": lesson.get("estimated_duration", 0),
                "has_quiz": bool(lesson.get("quiz")),
                "is_completed": done,
                "is_unlocked": unlocked,
            })
            if next_lesson is None and unlocked and not done:
                next_lesson = {
                    "lesson_id": lesson["lesson_id"],
                    "title": lesson["title"],
                    "module_id": module["module_id"],
                    "module_title": module["title"],
                }

        done_count = len([row for row in lesson_rows if row["is_completed"]])
        outline.append({
            "module_id": module["module_id"],
            "title": module["title"],
            "order_index": module.get("order_index", 0),
            "is_unlocked": module_unlocked,
            "is_completed": module["module_id"] in completed_modules,
            "completed_lessons": done_count,
            "total_lessons": len(lesson_rows),
            "progress": metrics.progress_percentage(done_count, len(lesson_rows)),
            "lessons": lesson_rows,
        })

    return {
        "modules": outline,
        "completed_modules": sorted(completed_modules),
        "next_lesson": next_lesson,
    }


async def completed_lesson_ids(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> set:
    completions = await db.lesson_completions.find(
        {"user_id": user_id, "course_id": course_id}, {"_id": 0, "lesson_id": 1}
    ).to_list(length=None)
    return {c["lesson_id"] for c in completions}


# ==================== PROGRESS WRITES ====================

async def recompute_enrollment_progress(db: AsyncIOMotorDatabase, enrollment: dict, course: dict) -> dict:
    """
    Rebuild the enrollment's progress block from completion records.
    Completes the enrollment (and issues a certificate) when progress hits 100.
    """
    user_id = enrollment["user_id"]
    course_id = enrollment["course_id"]
    modules, lessons_by_module = await load_course_structure(db, course_id)
    active_lesson_ids = {lesson["lesson_id"] for items in lessons_by_module.values() for lesson in items}
    completed = (await completed_lesson_ids(db, user_id, course_id)) & active_lesson_ids
    outline = build_course_outline(modules, lessons_by_module, completed)

    total_progress = metrics.progress_percentage(len(completed), len(active_lesson_ids))
    now = datetime.utcnow()
    updates = {
        "progress.completed_lessons": sorted(completed),
        "progress.completed_modules": outline["completed_modules"],
        "progress.total_progress": total_progress,
        "updated_at": now,
    }

    newly_completed = False
    if total_progress >= 100 and enrollment.get("status") == EnrollmentStatus.ACTIVE.value:
        newly_completed = True
        updates["status"] = EnrollmentStatus.COMPLETED.value
        updates["completion_date"] = now
        if course.get("certificate_awarded", True) and not enrollment.get("certificate_issued"):
            updates["certificate_issued"] = True
            updates["certificate_id"] = generate_certificate_id(now)

    await db.enrollments.update_one({"enrollment_id": enrollment["enrollment_id"]}, {"$set": updates})
    enrollment = await get_enrollment(db, user_id, course_id)

    if newly_completed:
        logger.info("Enrollment %s completed (certificate=%s)", enrollment["enrollment_id"], enrollment.get("certificate_id"))
        await notify_course_completed(db, user_id, course, enrollment.get("certificate_id"))

    return {"enrollment": enrollment, "course_completed": newly_completed}


async def create_completion(
    db: AsyncIOMotorDatabase,
    user_id: str,
    lesson: dict,
    time_spent: int = 0,
    score: Optional[float] = None,
    notes: Optional[str] = None,
) -> bool:
    """Insert a completion once per (user, lesson). Returns True when newly created"""
    if await db.lesson_completions.find_one({"user_id": user_id, "lesson_id": lesson["lesson_id"]}):
        return False

    completion = {
        "completion_id": generate_id("CMP"),
        "user_id": user_id,
        "course_id": lesson["course_id"],
        "module_id": lesson["module_id"],
        "lesson_id": lesson["lesson_id"],
        "completed_at": datetime.utcnow(),
        "time_spent": time_spent,
        "score": score,
        "notes": notes,
    }
    try:
        await db.lesson_completions.insert_one(completion)
    except DuplicateKeyError:
        return False
    return True


async def record_activity(
    db: AsyncIOMotorDatabase,
    user_id: str,
    course_id: str,
    lesson_id: str,
    time_spent: int = 0,
    completed: bool = False,
    score: Optional[float] = None,
    notes: Optional[str] = None,
) -> dict:
    enrollment = await require_progress_enrollment(db, user_id, course_id)
    course = await get_course(db, course_id)
    if not course:
        raise NotFoundError("Course")

    lesson = await get_lesson(db, lesson_id)
    if not lesson or lesson["course_id"] != course_id or not lesson.get("is_active", True):
        raise NotFoundError("Lesson")

    now = datetime.utcnow()
    await db.enrollments.update_one(
        {"enrollment_id": enrollment["enrollment_id"]},
        {"$inc": {"progress.time_spent": max(time_spent, 0)},
         "$set": {"progress.last_activity_date": now}}
    )

    lesson_completed = False
    if completed:
        lesson_completed = await create_completion(db, user_id, lesson, max(time_spent, 0), score, notes)
        if lesson_completed:
            logger.info("Lesson %s completed by %s", lesson_id, user_id)

    result = await recompute_enrollment_progress(db, enrollment, course)
    new_badges = await sync_gamification(db, user_id)

    enrollment = result["enrollment"]
    return {
        "enrollment": enrollment,
        "lesson_id": lesson_id,
        "lesson_completed": lesson_completed,
        "already_completed": completed and not lesson_completed,
        "course_completed": result["course_completed"],
        "progress": enrollment["progress"]["total_progress"],
        "progress_label": metrics.progress_label(enrollment["progress"]["total_progress"]),
        "new_badges": new_badges,
    }


# ==================== PROGRESS READS ====================

async def course_progress(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> dict:
    enrollment = await get_enrollment(db, user_id, course_id)
    if not enrollment:
        raise NotFoundError("Enrollment")
    course = await get_course(db, course_id)
    if not course:
        raise NotFoundError("Course")

    modules, lessons_by_module = await load_course_structure(db, course_id)
    completed = await completed_lesson_ids(db, user_id, course_id)
    outline = build_course_outline(modules, lessons_by_module, completed)
    total_lessons = sum(len(items) for items in lessons_by_module.values())
    done = sum(m["completed_lessons"] for m in outline["modules"])
    progress = metrics.progress_percentage(done, total_lessons)

    return {
        "course_id": course_id,
        "title": course["title"],
        "status": enrollment["status"],
        "progress": progress,
        "progress_label": metrics.progress_label(progress),
        "completed_lessons": done,
        "total_lessons": total_lessons,
        "completed_modules": len(outline["completed_modules"]),
        "total_modules": len(modules),
        "time_spent": enrollment["progress"].get("time_spent", 0),
        "last_activity_date": enrollment["progress"].get("last_activity_date"),
        "modules": outline["modules"],
        "next_lesson": outline["next_lesson"],
        "certificate_id": enrollment.get("certificate_id"),
    }


def smart_progress_analysis(enrollment: dict, course: dict, now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()
    duration_days = course.get("duration_days") or 30
    days_enrolled = max((now - enrollment["enrolled_at"]).days, 0)
    actual = enrollment["progress"].get("total_progress", 0)
    expected = round(metrics.expected_progress(enrollment["enrolled_at"], duration_days, now), 1)
    deviation = round(actual - expected, 1)
    return {
        "course_id": enrollment["course_id"],
        "title": course.get("title"),
        "actual_progress": actual,
        "expected_progress": expected,
        "deviation": deviation,
        "status": metrics.deviation_status(deviation),
        "days_enrolled": days_enrolled,
        "duration_days": duration_days,
        "days_remaining": max(duration_days - days_enrolled, 0),
        "progress_label": metrics.progress_label(actual),
    }


async def smart_progress(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> dict:
    enrollment = await get_enrollment(db, user_id, course_id)
    if not enrollment:
        raise NotFoundError("Enrollment")
    course = await get_course(db, course_id)
    if not course:
        raise NotFoundError("Course")
    return smart_progress_analysis(enrollment, course)


async def learning_statistics(db: AsyncIOMotorDatabase, user_id: str) -> dict:
    enrollments = await db.enrollments.find(
        {"user_id": user_id, "status": {"$ne": EnrollmentStatus.CANCELLED.value}}, {"_id": 0}
    ).to_list(length=None)
    by_status = {}
    for enrollment in enrollments:
        by_status[enrollment["status"]] = by_status.get(enrollment["status"], 0) + 1

    progresses = [e["progress"].get("total_progress", 0) for e in enrollments]
    minutes = sum(e["progress"].get("time_spent", 0) for e in enrollments)
    lessons_completed = await db.lesson_completions.count_documents({"user_id": user_id})
    attempts = await db.quiz_attempts.find(
        {"user_id": user_id, "status": "COMPLETED"}, {"_id": 0, "percentage": 1, "is_passed": 1}
    ).to_list(length=None)

    return {
        "total_courses": len(enrollments),
        "active_courses": by_status.get(EnrollmentStatus.ACTIVE.value, 0),
        "completed_courses": by_status.get(EnrollmentStatus.COMPLETED.value, 0),
        "paused_courses": by_status.get(EnrollmentStatus.PAUSED.value, 0),
        "average_progress": round(sum(progresses) / len(progresses), 1) if progresses else 0,
        "total_time_spent": minutes,
        "total_hours": round(minutes / 60, 1),
        "lessons_completed": lessons_completed,
        "quizzes_taken": len(attempts),
        "quizzes_passed": len([a for a in attempts if a.get("is_passed")]),
        "average_quiz_score": round(sum(a.get("percentage", 0) for a in attempts) / len(attempts), 1) if attempts else 0,
        "certificates_earned": len([e for e in enrollments if e.get("certificate_issued")]),
    }
