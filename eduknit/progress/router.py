"""
PROGRESS ROUTER
File: eduknit/progress/router.py
"""

from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from eduknit.auth.dependencies import CurrentUser, get_current_user
from eduknit.courses.database import get_lesson
from eduknit.database import get_db
from eduknit.errors import NotFoundError, success
from eduknit.progress import service
from eduknit.progress.models import ActivityRecord, LessonCompleteRequest

router = APIRouter(prefix="/api/progress", tags=["Progress"])


@router.post("/activity")
async def record_activity(
    data: ActivityRecord,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Add study time to a lesson and optionally mark it complete"""
    result = await service.record_activity(
        db,
        current_user.user_id,
        data.course_id,
        data.lesson_id,
        time_spent=data.time_spent,
        completed=data.completed,
        score=data.score,
        notes=data.notes,
    )
    return success(result, "Progress updated")


@router.post("/lessons/{lesson_id}/complete")
async def mark_lesson_complete(
    lesson_id: str,
    data: LessonCompleteRequest = None,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    lesson = await get_lesson(db, lesson_id)
    if not lesson:
        raise NotFoundError("Lesson")

    data = data or LessonCompleteRequest()
    result = await service.record_activity(
        db,
        current_user.user_id,
        lesson["course_id"],
        lesson_id,
        time_spent=data.time_spent,
        completed=True,
        notes=data.notes,
    )
    message = "Lesson already completed" if result["already_completed"] else "Lesson marked as complete"
    return success(result, message)


@router.get("/courses/{course_id}")
async def course_progress(
    course_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    data = await service.course_progress(db, current_user.user_id, course_id)
    return success(data, "Course progress retrieved")


@router.get("/courses/{course_id}/smart")
async def smart_progress(
    course_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Actual vs expected progress for the course timeline"""
    data = await service.smart_progress(db, current_user.user_id, course_id)
    return success(data, "Progress analysis retrieved")


@router.get("/statistics")
async def learning_statistics(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    data = await service.learning_statistics(db, current_user.user_id)
    return success(data, "Learning statistics retrieved")
