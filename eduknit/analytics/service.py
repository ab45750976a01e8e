"""
Learner activity loading and gamification sync
"""

import logging
from datetime import datetime
from typing import List

from motor.motor_asyncio import AsyncIOMotorDatabase

from eduknit.analytics import metrics
from eduknit.analytics.reports import learner_summary
from eduknit.integrations.discord import notify_badge_earned
from eduknit.students.database import get_or_create_profile

logger = logging.getLogger(__name__)


async def load_learner_activity(db: AsyncIOMotorDatabase, user_id: str, user: dict = None) -> dict:
    """Everything the analytics builders need for one learner"""
    if user is None:
        user = await db.users.find_one({"user_id": user_id}, {"_id": 0}) or {}

    enrollments = await db.enrollments.find({"user_id": user_id}, {"_id": 0}).to_list(length=None)
    course_ids = list({e["course_id"] for e in enrollments})
    courses = await db.courses.find({"course_id": {"$in": course_ids}}, {"_id": 0}).to_list(length=None)

    active_lessons = {course_id: set() for course_id in course_ids}
    lessons_in_courses = await db.course_lessons.find(
        {"course_id": {"$in": course_ids}, "is_active": True}, {"_id": 0, "lesson_id": 1, "course_id": 1}
    ).to_list(length=None)
    for lesson in lessons_in_courses:
        active_lessons[lesson["course_id"]].add(lesson["lesson_id"])

    completions = await db.lesson_completions.find({"user_id": user_id}, {"_id": 0}).to_list(length=None)
    attempts = await db.quiz_attempts.find(
        {"user_id": user_id, "status": "COMPLETED"}, {"_id": 0}
    ).to_list(length=None)

    lesson_ids = list({c["lesson_id"] for c in completions} | {a["lesson_id"] for a in attempts})
    lessons = await db.course_lessons.find(
        {"lesson_id": {"$in": lesson_ids}}, {"_id": 0, "quiz": 0, "content": 0}
    ).to_list(length=None)

    profile = await get_or_create_profile(db, user_id, user.get("created_at"))

    return {
        "user": user,
        "profile": profile,
        "enrollments": enrollments,
        "courses": {c["course_id"]: c for c in courses},
        "active_lessons": active_lessons,
        "lessons": {lesson["lesson_id"]: lesson for lesson in lessons},
        "completions": completions,
        "attempts": attempts,
    }


async def sync_gamification(db: AsyncIOMotorDatabase, user_id: str) -> List[dict]:
    """
    Recompute points, level, streaks and statistics on the student profile and
    award any newly earned badges. Returns the new badges.
    """
    activity = await load_learner_activity(db, user_id)
    profile = activity["profile"]
    summary = learner_summary(activity)

    existing = profile.get("gamification", {}).get("badges", [])
    owned = {badge["badge_id"] for badge in existing}
    eligible = metrics.eligible_badges(
        completed_lessons=summary["lessons_completed"],
        completed_courses=summary["completed_courses"],
        current_streak=summary["learning_streak"]["current"],
        distinct_categories=summary["distinct_categories"],
        has_perfect_quiz=summary["has_perfect_quiz"],
    )
    new_badges = [metrics.make_badge(badge_id) for badge_id in eligible if badge_id not in owned]

    if new_badges:
        activity["profile"]["gamification"]["badges"] = existing + new_badges
        summary = learner_summary(activity)

    learning = summary["learning_streak"]
    login = summary["login_streak"]
    now = datetime.utcnow()
    await db.student_profiles.update_one(
        {"user_id": user_id},
        {"$set": {
            "gamification.total_points": summary["total_points"],
            "gamification.level": summary["level"],
            "gamification.badges": existing + new_badges,
            "gamification.streaks": {
                "current_login_streak": login["current"],
                "longest_login_streak": login["longest"],
                "current_learning_streak": learning["current"],
                "longest_learning_streak": learning["longest"],
            },
            "statistics.total_courses_enrolled": summary["total_courses"],
            "statistics.total_courses_completed": summary["completed_courses"],
            "statistics.total_certificates_earned": summary["certificates_earned"],
            "statistics.total_learning_hours": summary["study_hours"],
            "statistics.average_score": summary["average_quiz_score"],
            "statistics.last_active_date": now,
            "updated_at": now,
        }}
    )

    for badge in new_badges:
        logger.info("Badge %s awarded to %s", badge["badge_id"], user_id)
        await notify_badge_earned(db, user_id, badge)

    return new_badges
