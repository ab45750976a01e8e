"""
Quiz attempts: start, submit, abandon, results and analytics
"""

import logging
from datetime import datetime
from typing import Optional, List

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING

from eduknit.analytics import metrics
from eduknit.analytics.service import sync_gamification
from eduknit.courses.database import get_lesson, get_course
from eduknit.database import generate_id
from eduknit.enrollments.database import get_enrollment, is_enrollment_active
from eduknit.enrollments.models import EnrollmentStatus
from eduknit.errors import ConflictError, NotFoundError, ValidationError
from eduknit.progress.service import (
    require_progress_enrollment, create_completion, recompute_enrollment_progress
)
from eduknit.quizzes.grading import grade_quiz, is_attempt_expired, public_quiz, attempt_feedback
from eduknit.quizzes.models import AttemptStatus, QuizSubmission

logger = logging.getLogger(__name__)


# ==================== HELPERS ====================

async def get_quiz_lesson(db: AsyncIOMotorDatabase, lesson_id: str) -> dict:
    lesson = await get_lesson(db, lesson_id)
    if not lesson or not lesson.get("is_active", True):
        raise NotFoundError("Lesson")
    if not lesson.get("quiz"):
        raise NotFoundError("Quiz")
    return lesson


def attempt_limit(settings: dict) -> int:
    if not settings.get("allow_multiple_attempts", True):
        return 1
    return settings.get("max_attempts", 1)


def attempt_summary(attempt: dict) -> dict:
    return {
        "attempt_id": attempt["attempt_id"],
        "lesson_id": attempt["lesson_id"],
        "course_id": attempt["course_id"],
        "attempt_number": attempt["attempt_number"],
        "status": attempt["status"],
        "started_at": attempt["started_at"],
        "completed_at": attempt.get("completed_at"),
        "time_spent": attempt.get("time_spent", 0),
        "score": attempt.get("score", 0),
        "max_score": attempt.get("max_score", 0),
        "percentage": attempt.get("percentage", 0),
        "grade": metrics.grade_letter(attempt.get("percentage", 0)),
        "is_passed": attempt.get("is_passed", False),
        "passing_score": attempt.get("passing_score"),
    }


async def expire_attempt(db: AsyncIOMotorDatabase, attempt: dict):
    now = datetime.utcnow()
    await db.quiz_attempts.update_one(
        {"attempt_id": attempt["attempt_id"]},
        {"$set": {
            "status": AttemptStatus.EXPIRED.value,
            "completed_at": now,
            "time_spent": int((now - attempt["started_at"]).total_seconds()),
        }}
    )
    logger.info("Quiz attempt %s expired", attempt["attempt_id"])


# ==================== LEARNER OPERATIONS ====================

async def get_quiz(db: AsyncIOMotorDatabase, user_id: str, lesson_id: str) -> dict:
    lesson = await get_quiz_lesson(db, lesson_id)
    settings = lesson["quiz"].get("settings", {})

    attempts = await db.quiz_attempts.find(
        {"user_id": user_id, "lesson_id": lesson_id}, {"_id": 0}
    ).to_list(length=None)
    completed = [a for a in attempts if a["status"] == AttemptStatus.COMPLETED.value]
    in_progress = next((a for a in attempts if a["status"] == AttemptStatus.IN_PROGRESS.value), None)

    enrollment = await get_enrollment(db, user_id, lesson["course_id"])
    enrolled = bool(enrollment) and (
        enrollment["status"] == EnrollmentStatus.COMPLETED.value or is_enrollment_active(enrollment)
    )
    limit = attempt_limit(settings)

    return {
        "lesson_id": lesson_id,
        "title": lesson["title"],
        "quiz": public_quiz(lesson["quiz"]),
        "attempts_used": len(attempts),
        "max_attempts": limit,
        "best_score": max((a.get("percentage", 0) for a in completed), default=None),
        "has_passed": any(a.get("is_passed") for a in completed),
        "in_progress_attempt_id": in_progress["attempt_id"] if in_progress else None,
        "is_enrolled": enrolled,
        "can_attempt": enrolled and in_progress is None and len(attempts) < limit,
    }


async def start_attempt(db: AsyncIOMotorDatabase, user_id: str, lesson_id: str) -> dict:
    lesson = await get_quiz_lesson(db, lesson_id)
    await require_progress_enrollment(db, user_id, lesson["course_id"])
    settings = lesson["quiz"].get("settings", {})

    in_progress = await db.quiz_attempts.find_one(
        {"user_id": user_id, "lesson_id": lesson_id, "status": AttemptStatus.IN_PROGRESS.value}
    )
    if in_progress:
        if is_attempt_expired(in_progress):
            await expire_attempt(db, in_progress)
        else:
            raise ConflictError("An attempt for this quiz is already in progress")

    used = await db.quiz_attempts.count_documents({"user_id": user_id, "lesson_id": lesson_id})
    if used >= attempt_limit(settings):
        raise ValidationError("Maximum number of attempts reached for this quiz")

    now = datetime.utcnow()
    attempt = {
        "attempt_id": generate_id("ATT"),
        "user_id": user_id,
        "course_id": lesson["course_id"],
        "module_id": lesson["module_id"],
        "lesson_id": lesson_id,
        "attempt_number": used + 1,
        "started_at": now,
        "completed_at": None,
        "time_spent": 0,
        "score": 0,
        "max_score": sum(q.get("points", 1) for q in lesson["quiz"]["questions"]),
        "percentage": 0,
        "is_passed": False,
        "passing_score": settings.get("passing_score"),
        "answers": [],
        "settings": settings,
        "status": AttemptStatus.IN_PROGRESS.value,
    }
    await db.quiz_attempts.insert_one(attempt)
    logger.info("Quiz attempt %s started by %s on %s", attempt["attempt_id"], user_id, lesson_id)

    attempt.pop("_id", None)
    return {"attempt": attempt_summary(attempt), "quiz": public_quiz(lesson["quiz"])}


async def get_owned_attempt(db: AsyncIOMotorDatabase, user_id: str, attempt_id: str, lesson_id: Optional[str] = None) -> dict:
    query = {"attempt_id": attempt_id, "user_id": user_id}
    if lesson_id:
        query["lesson_id"] = lesson_id
    attempt = await db.quiz_attempts.find_one(query, {"_id": 0})
    if not attempt:
        raise NotFoundError("Quiz attempt")
    return attempt


async def submit_attempt(db: AsyncIOMotorDatabase, user_id: str, lesson_id: str, submission: QuizSubmission) -> dict:
    attempt = await get_owned_attempt(db, user_id, submission.attempt_id, lesson_id)
    if attempt["status"] != AttemptStatus.IN_PROGRESS.value:
        raise ConflictError(f"Attempt is already {attempt['status'].lower()}")

    lesson = await get_quiz_lesson(db, lesson_id)
    enrollment = await require_progress_enrollment(db, user_id, lesson["course_id"])
    now = datetime.utcnow()

    if is_attempt_expired(attempt, now):
        await expire_attempt(db, attempt)
        raise ValidationError("Time limit exceeded. This attempt has expired.")

    result = grade_quiz(
        lesson["quiz"],
        [answer.dict() for answer in submission.answers],
        passing_score=attempt.get("passing_score"),
    )
    elapsed = int((now - attempt["started_at"]).total_seconds())
    time_spent = submission.time_spent if submission.time_spent is not None else elapsed

    await db.quiz_attempts.update_one(
        {"attempt_id": attempt["attempt_id"]},
        {"$set": {
            "status": AttemptStatus.COMPLETED.value,
            "completed_at": now,
            "time_spent": time_spent,
            "score": result["score"],
            "max_score": result["max_score"],
            "percentage": result["percentage"],
            "is_passed": result["is_passed"],
            "answers": result["answers"],
        }}
    )
    logger.info(
        "Quiz attempt %s submitted by %s: %s%% (%s)",
        attempt["attempt_id"], user_id, result["percentage"], "passed" if result["is_passed"] else "failed"
    )

    minutes = int(time_spent / 60 + 0.5)
    if minutes:
        await db.enrollments.update_one(
            {"enrollment_id": enrollment["enrollment_id"]},
            {"$inc": {"progress.time_spent": minutes}, "$set": {"progress.last_activity_date": now}}
        )

    course_progress = None
    course_completed = False
    if result["is_passed"]:
        # quiz time lives on the attempt record
        await create_completion(db, user_id, lesson, 0, score=result["percentage"])
        course = await get_course(db, lesson["course_id"])
        recomputed = await recompute_enrollment_progress(db, enrollment, course)
        course_progress = recomputed["enrollment"]["progress"]["total_progress"]
        course_completed = recomputed["course_completed"]

    new_badges = await sync_gamification(db, user_id)

    attempt = await get_owned_attempt(db, user_id, attempt["attempt_id"])
    settings = attempt.get("settings", {})
    response = {
        "attempt": attempt_summary(attempt),
        "course_progress": course_progress,
        "course_completed": course_completed,
        "new_badges": new_badges,
    }
    if settings.get("show_feedback", True):
        response["feedback"] = attempt_feedback(attempt, lesson["quiz"])
    return response


async def abandon_attempt(db: AsyncIOMotorDatabase, user_id: str, lesson_id: str, attempt_id: str) -> dict:
    attempt = await get_owned_attempt(db, user_id, attempt_id, lesson_id)
    if attempt["status"] != AttemptStatus.IN_PROGRESS.value:
        raise ConflictError(f"Attempt is already {attempt['status'].lower()}")

    now = datetime.utcnow()
    await db.quiz_attempts.update_one(
        {"attempt_id": attempt_id},
        {"$set": {
            "status": AttemptStatus.ABANDONED.value,
            "completed_at": now,
            "time_spent": int((now - attempt["started_at"]).total_seconds()),
        }}
    )
    logger.info("Quiz attempt %s abandoned", attempt_id)
    return attempt_summary(await get_owned_attempt(db, user_id, attempt_id))


async def attempt_results(db: AsyncIOMotorDatabase, user_id: str, attempt_id: str) -> dict:
    attempt = await get_owned_attempt(db, user_id, attempt_id)
    lesson = await get_lesson(db, attempt["lesson_id"])
    data = attempt_summary(attempt)
    if attempt["status"] == AttemptStatus.COMPLETED.value:
        data["feedback"] = attempt_feedback(attempt, (lesson or {}).get("quiz"))
    return data


async def my_attempts(db: AsyncIOMotorDatabase, user_id: str, lesson_id: Optional[str] = None) -> List[dict]:
    query = {"user_id": user_id}
    if lesson_id:
        query["lesson_id"] = lesson_id
    attempts = await db.quiz_attempts.find(query, {"_id": 0}).sort("started_at", DESCENDING).to_list(length=None)
    return [attempt_summary(a) for a in attempts]


# ==================== ANALYTICS ====================

def summarize_lesson_attempts(attempts: List[dict]) -> dict:
    """Pass rate and averages per student over completed attempts"""
    by_student = {}
    for attempt in attempts:
        by_student.setdefault(attempt["user_id"], []).append(attempt)

    best_scores = [max(a.get("percentage", 0) for a in items) for items in by_student.values()]
    passed = [uid for uid, items in by_student.items() if any(a.get("is_passed") for a in items)]
    students = len(by_student)

    return {
        "total_attempts": len(attempts),
        "unique_students": students,
        "students_passed": len(passed),
        "pass_rate": round(len(passed) / students * 100, 1) if students else 0,
        "average_best_score": round(sum(best_scores) / students, 1) if students else 0,
        "average_attempts": round(len(attempts) / students, 2) if students else 0,
        "grade_distribution": {
            grade: len([s for s in best_scores if metrics.grade_letter(s) == grade])
            for grade in ("A", "B", "C", "D", "F")
        },
    }


def question_statistics(quiz: dict, attempts: List[dict]) -> List[dict]:
    rows = []
    for question in quiz.get("questions", []):
        answered = [
            answer for attempt in attempts for answer in attempt.get("answers", [])
            if answer["question_id"] == question["id"]
        ]
        correct = len([a for a in answered if a.get("is_correct")])
        rows.append({
            "question_id": question["id"],
            "question": question["question"],
            "type": question["type"],
            "responses": len(answered),
            "correct": correct,
            "correct_rate": round(correct / len(answered) * 100, 1) if answered else 0,
        })
    return rows


async def lesson_analytics(db: AsyncIOMotorDatabase, lesson_id: str, detailed: bool = False) -> dict:
    lesson = await get_quiz_lesson(db, lesson_id)
    attempts = await db.quiz_attempts.find(
        {"lesson_id": lesson_id, "status": AttemptStatus.COMPLETED.value}, {"_id": 0}
    ).to_list(length=None)

    data = {"lesson_id": lesson_id, "title": lesson["title"], **summarize_lesson_attempts(attempts)}
    if detailed:
        data["questions"] = question_statistics(lesson["quiz"], attempts)
    return data
