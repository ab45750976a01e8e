"""Real-time learner dashboard assembled from a loaded activity bundle."""

from datetime import datetime, timedelta
from typing import Optional, List

from eduknit.analytics import metrics
from eduknit.analytics.reports import counted_enrollments, learner_summary
from eduknit.enrollments.database import is_enrollment_active

ACTIVE_PATHS_LIMIT = 6


def course_progress_rows(activity: dict) -> List[dict]:
    rows = []
    for enrollment in counted_enrollments(activity):
        course = activity["courses"].get(enrollment["course_id"], {})
        progress = enrollment.get("progress") or {}
        total = progress.get("total_progress", 0)
        rows.append({
            "enrollment_id": enrollment["enrollment_id"],
            "course_id": enrollment["course_id"],
            "title": course.get("title"),
            "category": course.get("category"),
            "image_url": course.get("image_url"),
            "status": enrollment.get("status"),
            "progress": total,
            "progress_label": metrics.progress_label(total),
            "completed_lessons": len(progress.get("completed_lessons", [])),
            "total_lessons": course.get("total_lessons", 0),
            "time_spent": progress.get("time_spent", 0),
            "last_activity_date": progress.get("last_activity_date"),
            "certificate_id": enrollment.get("certificate_id"),
        })
    return rows


def build_notifications(activity: dict, summary: dict, now: datetime) -> List[dict]:
    notifications = []
    today = now.date()

    last_active = summary["learning_streak"].get("last_activity_date")
    if summary["learning_streak"]["current"] > 0 and last_active != today.isoformat():
        notifications.append({
            "type": "streak",
            "priority": "high",
            "message": f"Keep your {summary['learning_streak']['current']}-day streak alive. Complete a lesson today!",
        })

    for enrollment in counted_enrollments(activity):
        if not is_enrollment_active(enrollment, now):
            continue
        actual = (enrollment.get("progress") or {}).get("total_progress", 0)
        course = activity["courses"].get(enrollment["course_id"], {})
        expected = metrics.expected_progress(enrollment["enrolled_at"], course.get("duration_days"), now)
        if metrics.deviation_status(actual - expected) == "Behind":
            notifications.append({
                "type": "progress",
                "priority": "medium",
                "message": f"You're behind schedule in {course.get('title', 'a course')}.",
                "course_id": enrollment["course_id"],
            })

    week_ago = now - timedelta(days=7)
    badges = (activity.get("profile") or {}).get("gamification", {}).get("badges", [])
    for badge in badges:
        earned = badge.get("earned_date")
        if earned and earned >= week_ago:
            notifications.append({
                "type": "achievement",
                "priority": "low",
                "message": f"You earned the {badge['name']} badge!",
            })

    for enrollment in counted_enrollments(activity):
        completed_on = enrollment.get("completion_date")
        if completed_on and completed_on >= week_ago:
            course = activity["courses"].get(enrollment["course_id"], {})
            notifications.append({
                "type": "completion",
                "priority": "low",
                "message": f"Congratulations on completing {course.get('title', 'your course')}!",
                "course_id": enrollment["course_id"],
            })

    return notifications


def build_realtime_dashboard(activity: dict, now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()
    summary = learner_summary(activity, now.date())
    week = metrics.weekly_activity(activity["completions"], activity["attempts"], now.date())
    rows = course_progress_rows(activity)

    active_paths = sorted(
        [r for r in rows if r["status"] == "ACTIVE"],
        key=lambda r: r["last_activity_date"] or datetime.min,
        reverse=True,
    )[:ACTIVE_PATHS_LIMIT]

    in_progress = [r for r in rows if r["status"] == "ACTIVE" and 0 < r["progress"] < 100]
    average_progress = round(sum(r["progress"] for r in rows) / len(rows), 1) if rows else 0

    return {
        "metrics": {
            "total_courses": summary["total_courses"],
            "completed_courses": summary["completed_courses"],
            "in_progress_courses": len(in_progress),
            "total_points": summary["total_points"],
            "level": summary["level"],
            "current_streak": summary["learning_streak"]["current"],
            "longest_streak": summary["learning_streak"]["longest"],
            "study_hours": summary["study_hours"],
            "certificates_earned": summary["certificates_earned"],
            "average_quiz_score": summary["average_quiz_score"],
        },
        "weekly_activity": week,
        "learning_summary": {
            "lessons_this_week": sum(day["lessons_completed"] for day in week),
            "quizzes_this_week": sum(day["quizzes_completed"] for day in week),
            "hours_this_week": round(sum(day["hours"] for day in week), 1),
            "total_lessons_completed": summary["lessons_completed"],
            "average_progress": average_progress,
        },
        "course_progress": rows,
        "active_learning_paths": active_paths,
        "notifications": build_notifications(activity, summary, now),
        "generated_at": now,
    }
