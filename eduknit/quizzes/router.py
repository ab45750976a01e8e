"""
QUIZ ROUTER
File: eduknit/quizzes/router.py

Learner quiz flow plus admin quiz management.
"""

from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional

from eduknit.admin.audit import log_audit
from eduknit.auth.dependencies import CurrentUser, get_current_user, require_admin
from eduknit.courses.database import get_lesson, update_lesson
from eduknit.database import get_db, model_document
from eduknit.errors import ConflictError, NotFoundError, success
from eduknit.quizzes import service
from eduknit.quizzes.models import QuizDefinition, QuizSubmission

router = APIRouter(prefix="/api/quizzes", tags=["Quizzes"])
admin_router = APIRouter(prefix="/api/admin/quizzes", tags=["Admin Quizzes"])


# ==================== LEARNER ENDPOINTS ====================

@router.get("/lessons/{lesson_id}")
async def get_quiz(
    lesson_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Quiz questions (no answers) with the caller's attempt status"""
    data = await service.get_quiz(db, current_user.user_id, lesson_id)
    return success(data, "Quiz retrieved")


@router.post("/lessons/{lesson_id}/start", status_code=201)
async def start_attempt(
    lesson_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    data = await service.start_attempt(db, current_user.user_id, lesson_id)
    return success(data, "Quiz attempt started")


@router.post("/lessons/{lesson_id}/submit")
async def submit_attempt(
    lesson_id: str,
    submission: QuizSubmission,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    data = await service.submit_attempt(db, current_user.user_id, lesson_id, submission)
    message = "Quiz passed" if data["attempt"]["is_passed"] else "Quiz submitted"
    return success(data, message)


@router.post("/lessons/{lesson_id}/attempts/{attempt_id}/abandon")
async def abandon_attempt(
    lesson_id: str,
    attempt_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    data = await service.abandon_attempt(db, current_user.user_id, lesson_id, attempt_id)
    return success(data, "Quiz attempt abandoned")


@router.get("/attempts")
async def my_attempts(
    lesson_id: Optional[str] = None,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    attempts = await service.my_attempts(db, current_user.user_id, lesson_id)
    return success({"attempts": attempts, "count": len(attempts)}, "Quiz attempts retrieved")


@router.get("/attempts/{attempt_id}")
async def attempt_results(
    attempt_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    data = await service.attempt_results(db, current_user.user_id, attempt_id)
    return success(data, "Quiz results retrieved")


@router.get("/lessons/{lesson_id}/analytics")
async def lesson_analytics(
    lesson_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    data = await service.lesson_analytics(db, lesson_id)
    return success(data, "Quiz analytics retrieved")


# ==================== ADMIN ENDPOINTS ====================

async def _quiz_target(db: AsyncIOMotorDatabase, lesson_id: str) -> dict:
    lesson = await get_lesson(db, lesson_id)
    if not lesson:
        raise NotFoundError("Lesson")
    return lesson


@admin_router.post("/lessons/{lesson_id}", status_code=201)
async def create_quiz(
    lesson_id: str,
    quiz: QuizDefinition,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    lesson = await _quiz_target(db, lesson_id)
    if lesson.get("quiz"):
        raise ConflictError("Lesson already has a quiz")
    updated = await update_lesson(db, lesson_id, {"quiz": model_document(quiz)})
    await log_audit(db, admin, "create_quiz", "lesson", lesson_id, {"questions": len(quiz.questions)})
    return success(updated["quiz"], "Quiz created successfully")


@admin_router.put("/lessons/{lesson_id}")
async def update_quiz(
    lesson_id: str,
    quiz: QuizDefinition,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    lesson = await _quiz_target(db, lesson_id)
    if not lesson.get("quiz"):
        raise NotFoundError("Quiz")
    updated = await update_lesson(db, lesson_id, {"quiz": model_document(quiz)})
    await log_audit(db, admin, "update_quiz", "lesson", lesson_id, {"questions": len(quiz.questions)})
    return success(updated["quiz"], "Quiz updated successfully")


@admin_router.delete("/lessons/{lesson_id}")
async def delete_quiz(
    lesson_id: str,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    lesson = await _quiz_target(db, lesson_id)
    if not lesson.get("quiz"):
        raise NotFoundError("Quiz")
    await update_lesson(db, lesson_id, {"quiz": None})
    await log_audit(db, admin, "delete_quiz", "lesson", lesson_id)
    return success({"lesson_id": lesson_id}, "Quiz deleted")


@admin_router.get("/lessons/{lesson_id}/analytics")
async def detailed_quiz_analytics(
    lesson_id: str,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Attempt statistics plus per-question correctness rates"""
    data = await service.lesson_analytics(db, lesson_id, detailed=True)
    return success(data, "Detailed quiz analytics retrieved")
