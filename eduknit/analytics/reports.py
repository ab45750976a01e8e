"""
Analytics report builders.

Each builder takes an already loaded learner activity bundle:

    {
        "user": {...},
        "profile": {...},
        "enrollments": [...],
        "courses": {course_id: course},
        "active_lessons": {course_id: {lesson_id, ...}},
        "lessons": {lesson_id: lesson},
        "completions": [...],     # lesson_completions
        "attempts": [...],        # COMPLETED quiz_attempts
    }

and returns plain dicts for the JSON layer.
"""

from collections import defaultdict
from datetime import datetime, timedelta, date
from typing import Optional, Dict, List

from eduknit import config
from eduknit.analytics import metrics
from eduknit.courses.models import CATEGORY_LABELS
from eduknit.enrollments.database import is_enrollment_active

CANCELLED = "CANCELLED"
COMPLETED = "COMPLETED"


# ==================== SHARED ====================

def counted_enrollments(activity: dict) -> List[dict]:
    return [e for e in activity["enrollments"] if e.get("status") != CANCELLED]


def activity_dates(activity: dict) -> List[datetime]:
    dates = [c.get("completed_at") for c in activity["completions"]]
    dates += [a.get("completed_at") for a in activity["attempts"]]
    return [d for d in dates if d]


def best_quiz_percentages(attempts: List[dict]) -> Dict[str, int]:
    best = {}
    for attempt in attempts:
        lesson_id = attempt["lesson_id"]
        best[lesson_id] = max(best.get(lesson_id, 0), attempt.get("percentage", 0))
    return best


def study_minutes(enrollments: List[dict]) -> int:
    return sum((e.get("progress") or {}).get("time_spent", 0) or 0 for e in enrollments)


def login_streak(user: dict, today: date) -> dict:
    stored = user.get("login_streak") or {}
    current = stored.get("current", 0)
    last = stored.get("last_date")
    if last and (today - date.fromisoformat(last)).days > 1:
        current = 0
    return {"current": current, "longest": stored.get("longest", 0), "last_date": last}


def learner_summary(activity: dict, today: Optional[date] = None) -> dict:
    """Points, level, streaks and study totals computed one way for every surface"""
    today = today or datetime.utcnow().date()
    enrollments = counted_enrollments(activity)
    badges = (activity.get("profile") or {}).get("gamification", {}).get("badges", [])
    best = best_quiz_percentages(activity["attempts"])

    points = metrics.calculate_points(len(activity["completions"]), best.values(), metrics.badge_points(badges))
    learning = metrics.compute_streaks(activity_dates(activity), today)
    minutes = study_minutes(enrollments)
    completed_courses = [e for e in enrollments if e.get("status") == COMPLETED]

    return {
        "total_points": points,
        "level": metrics.calculate_level(points),
        "learning_streak": learning,
        "login_streak": login_streak(activity.get("user") or {}, today),
        "study_minutes": minutes,
        "study_hours": round(minutes / 60, 1),
        "lessons_completed": len(activity["completions"]),
        "quizzes_completed": len(activity["attempts"]),
        "average_quiz_score": round(sum(best.values()) / len(best), 1) if best else 0,
        "has_perfect_quiz": any(pct >= 100 for pct in best.values()),
        "total_courses": len(enrollments),
        "completed_courses": len(completed_courses),
        "certificates_earned": len([e for e in enrollments if e.get("certificate_issued")]),
        "distinct_categories": len({
            activity["courses"][e["course_id"]].get("category")
            for e in enrollments if e["course_id"] in activity["courses"]
        }),
    }


def recent_activity(activity: dict, limit: int = 5) -> List[dict]:
    items = []
    for completion in activity["completions"]:
        lesson = activity["lessons"].get(completion["lesson_id"], {})
        course = activity["courses"].get(completion["course_id"], {})
        items.append({
            "type": "lesson_completed",
            "title": lesson.get("title", "Lesson"),
            "course_title": course.get("title"),
            "course_id": completion["course_id"],
            "timestamp": completion["completed_at"],
        })
    for attempt in activity["attempts"]:
        lesson = activity["lessons"].get(attempt["lesson_id"], {})
        course = activity["courses"].get(attempt["course_id"], {})
        items.append({
            "type": "quiz_passed" if attempt.get("is_passed") else "quiz_attempted",
            "title": lesson.get("title", "Quiz"),
            "course_title": course.get("title"),
            "course_id": attempt["course_id"],
            "score": attempt.get("percentage", 0),
            "timestamp": attempt["completed_at"],
        })
    items.sort(key=lambda item: item["timestamp"], reverse=True)
    return items[:limit]


# ==================== OVERVIEW ====================

def build_overview(activity: dict, now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()
    enrollments = counted_enrollments(activity)
    summary = learner_summary(activity, now.date())

    active = [e for e in enrollments if is_enrollment_active(e, now)]
    progresses = [(e.get("progress") or {}).get("total_progress", 0) for e in enrollments]
    average_progress = round(sum(progresses) / len(progresses), 1) if progresses else 0

    analysis = []
    for enrollment in active:
        actual = (enrollment.get("progress") or {}).get("total_progress", 0)
        expected = round(metrics.expected_progress(enrollment["enrolled_at"], config.EXPECTED_COMPLETION_DAYS, now), 1)
        deviation = round(actual - expected, 1)
        course = activity["courses"].get(enrollment["course_id"], {})
        analysis.append({
            "course_id": enrollment["course_id"],
            "title": course.get("title"),
            "actual_progress": actual,
            "expected_progress": expected,
            "deviation": deviation,
            "status": metrics.deviation_status(deviation),
        })

    if analysis:
        avg_actual = round(sum(a["actual_progress"] for a in analysis) / len(analysis), 1)
        avg_expected = round(sum(a["expected_progress"] for a in analysis) / len(analysis), 1)
    else:
        avg_actual = avg_expected = 0
    overall_deviation = round(avg_actual - avg_expected, 1)

    return {
        "enrollments": {
            "total": len(enrollments),
            "active": len(active),
            "completed": summary["completed_courses"],
            "paused": len([e for e in enrollments if e.get("status") == "PAUSED"]),
        },
        "average_progress": average_progress,
        "study_time": {"minutes": summary["study_minutes"], "hours": summary["study_hours"]},
        "points": summary["total_points"],
        "level": summary["level"],
        "learning_streak": {
            "current": summary["learning_streak"]["current"],
            "longest": summary["learning_streak"]["longest"],
        },
        "lessons_completed": summary["lessons_completed"],
        "certificates_earned": summary["certificates_earned"],
        "progress_analysis": {
            "window_days": config.EXPECTED_COMPLETION_DAYS,
            "actual_progress": avg_actual,
            "expected_progress": avg_expected,
            "deviation": overall_deviation,
            "status": metrics.deviation_status(overall_deviation),
            "courses": analysis,
        },
        "recent_activity": recent_activity(activity, 5),
    }


# ==================== PROGRESS HISTORY ====================

def build_progress_history(activity: dict, days: int = 30, today: Optional[date] = None) -> dict:
    """
    Daily rows for the last `days` days from real completion records.
    A course's progress on a day counts completions up to and including that day.
    """
    today = today or datetime.utcnow().date()
    enrollments = counted_enrollments(activity)
    window = [today - timedelta(days=offset) for offset in range(days - 1, -1, -1)]

    active_lessons = activity.get("active_lessons", {})
    completions_by_course = defaultdict(list)
    lessons_by_day = defaultdict(int)
    minutes_by_day = defaultdict(float)
    for completion in activity["completions"]:
        day = completion["completed_at"].date()
        if completion["lesson_id"] in active_lessons.get(completion["course_id"], ()):
            completions_by_course[completion["course_id"]].append(day)
        lessons_by_day[day] += 1
        minutes_by_day[day] += completion.get("time_spent", 0) or 0
    for attempt in activity["attempts"]:
        minutes_by_day[attempt["completed_at"].date()] += (attempt.get("time_spent", 0) or 0) / 60

    rows = []
    for day in window:
        progresses = []
        for enrollment in enrollments:
            if enrollment["enrolled_at"].date() > day:
                continue
            course_id = enrollment["course_id"]
            done = len([d for d in completions_by_course[course_id] if d <= day])
            progresses.append(metrics.progress_percentage(done, len(active_lessons.get(course_id, ()))))
        rows.append({
            "date": day.isoformat(),
            "average_progress": round(sum(progresses) / len(progresses), 1) if progresses else 0,
            "courses_enrolled": len(progresses),
            "lessons_completed": lessons_by_day[day],
            "study_minutes": round(minutes_by_day[day], 1),
        })

    first = rows[0]["average_progress"] if rows else 0
    last = rows[-1]["average_progress"] if rows else 0
    return {
        "days": days,
        "history": rows,
        "summary": {
            "start_progress": first,
            "end_progress": last,
            "progress_increase": round(last - first, 1),
            "total_lessons_completed": sum(r["lessons_completed"] for r in rows),
            "total_study_minutes": round(sum(r["study_minutes"] for r in rows), 1),
            "active_days": len([r for r in rows if r["lessons_completed"] or r["study_minutes"]]),
        },
    }


# ==================== CATEGORY PERFORMANCE ====================

def build_category_performance(activity: dict) -> dict:
    buckets = {}
    for enrollment in counted_enrollments(activity):
        course = activity["courses"].get(enrollment["course_id"])
        if not course:
            continue
        category = course.get("category", "OTHER")
        bucket = buckets.setdefault(category, {"total": 0, "completed": 0, "progress": 0, "minutes": 0})
        progress = enrollment.get("progress") or {}
        bucket["total"] += 1
        bucket["completed"] += 1 if enrollment.get("status") == COMPLETED else 0
        bucket["progress"] += progress.get("total_progress", 0)
        bucket["minutes"] += progress.get("time_spent", 0) or 0

    categories = []
    for category, bucket in buckets.items():
        average_progress = round(bucket["progress"] / bucket["total"], 1)
        categories.append({
            "category": category,
            "name": CATEGORY_LABELS.get(category, category.replace("_", " ").title()),
            "total_courses": bucket["total"],
            "completed_courses": bucket["completed"],
            "completion_rate": round(bucket["completed"] / bucket["total"] * 100, 1),
            "average_progress": average_progress,
            "study_minutes": bucket["minutes"],
            "performance": metrics.performance_label(average_progress),
        })
    categories.sort(key=lambda c: c["average_progress"], reverse=True)

    total = sum(c["total_courses"] for c in categories)
    completed = sum(c["completed_courses"] for c in categories)
    insights = {
        "strongest_category": categories[0]["name"] if categories else None,
        "most_active_category": max(categories, key=lambda c: c["study_minutes"])["name"] if categories else None,
        "overall_completion_rate": round(completed / total * 100, 1) if total else 0,
    }
    return {"categories": categories, "insights": insights}


# ==================== STREAKS & ACHIEVEMENTS ====================

def build_streaks(activity: dict, today: Optional[date] = None) -> dict:
    today = today or datetime.utcnow().date()
    summary = learner_summary(activity, today)
    learning = summary["learning_streak"]
    next_milestone = metrics.next_streak_milestone(learning["current"])
    badges = (activity.get("profile") or {}).get("gamification", {}).get("badges", [])

    recent = []
    for attempt in activity["attempts"]:
        if attempt.get("is_passed"):
            lesson = activity["lessons"].get(attempt["lesson_id"], {})
            recent.append({
                "type": "quiz",
                "title": lesson.get("title", "Quiz"),
                "score": attempt.get("percentage", 0),
                "grade": metrics.grade_letter(attempt.get("percentage", 0)),
                "date": attempt["completed_at"],
            })
    for completion in activity["completions"]:
        lesson = activity["lessons"].get(completion["lesson_id"], {})
        recent.append({"type": "lesson", "title": lesson.get("title", "Lesson"), "date": completion["completed_at"]})
    recent.sort(key=lambda item: item["date"], reverse=True)

    return {
        "learning_streak": learning,
        "login_streak": summary["login_streak"],
        "next_milestone": {
            "target": next_milestone,
            "days_remaining": next_milestone - learning["current"],
        },
        "milestones": metrics.milestones(
            summary["total_courses"],
            summary["completed_courses"],
            learning["current"],
            summary["distinct_categories"],
            summary["total_points"],
        ),
        "badges": badges,
        "total_points": summary["total_points"],
        "level": summary["level"],
        "recent_achievements": recent[:10],
    }
