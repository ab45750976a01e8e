"""
Learning metrics
Pure functions for streaks, points, levels, labels and weekly activity.
Every dashboard and analytics surface computes these values through this module.
"""

import math
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional, Dict, Any

from eduknit import config

DAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]

STREAK_MILESTONES = [7, 30, 100]
POINT_MASTER_THRESHOLD = 1000
MULTI_CATEGORY_THRESHOLD = 3

# badge_id -> definition; points count toward the profile total
BADGES = {
    "first_lesson": {
        "name": "First Steps",
        "description": "Completed your first lesson",
        "category": "PARTICIPATION",
        "points": 10,
    },
    "first_course_complete": {
        "name": "Course Finisher",
        "description": "Completed your first course",
        "category": "COMPLETION",
        "points": 50,
    },
    "perfect_quiz": {
        "name": "Perfect Score",
        "description": "Scored 100% on a quiz",
        "category": "ACHIEVEMENT",
        "points": 20,
    },
    "week_streak": {
        "name": "Week Warrior",
        "description": "Learned 7 days in a row",
        "category": "STREAK",
        "points": 25,
    },
    "month_streak": {
        "name": "Monthly Master",
        "description": "Learned 30 days in a row",
        "category": "STREAK",
        "points": 100,
    },
    "multi_category": {
        "name": "Explorer",
        "description": "Enrolled in courses from 3 different categories",
        "category": "ACHIEVEMENT",
        "points": 30,
    },
}


def _as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# ==================== STREAKS ====================

def compute_streaks(activity_dates: Iterable, today: Optional[date] = None) -> Dict[str, Any]:
    """
    Current and longest streak over a set of activity days.

    The current streak counts consecutive days ending today, or ending
    yesterday when nothing happened yet today.
    """
    today = _as_date(today or datetime.utcnow())
    days = sorted({_as_date(d) for d in activity_dates if d is not None})

    if not days:
        return {"current": 0, "longest": 0, "last_activity_date": None}

    longest = 1
    run = 1
    for previous, current in zip(days, days[1:]):
        if (current - previous).days == 1:
            run += 1
        else:
            run = 1
        longest = max(longest, run)

    last = days[-1]
    current_streak = 0
    if (today - last).days <= 1:
        day_set = set(days)
        cursor = last
        while cursor in day_set:
            current_streak += 1
            cursor -= timedelta(days=1)

    return {
        "current": current_streak,
        "longest": longest,
        "last_activity_date": last.isoformat(),
    }


def advance_daily_streak(streak: Optional[dict], today: Optional[date] = None) -> dict:
    """Advance an incrementally stored streak ({current, longest, last_date}) by one visit."""
    today = _as_date(today or datetime.utcnow())
    streak = dict(streak or {})
    current = streak.get("current", 0)
    longest = streak.get("longest", 0)
    last = streak.get("last_date")
    last = date.fromisoformat(last) if isinstance(last, str) else _as_date(last)

    if last is None:
        current = 1
    else:
        gap = (today - last).days
        if gap == 1:
            current += 1
        elif gap > 1:
            current = 1
        elif current == 0:
            current = 1

    return {
        "current": current,
        "longest": max(longest, current),
        "last_date": today.isoformat(),
    }


def next_streak_milestone(current: int) -> int:
    for milestone in STREAK_MILESTONES:
        if current < milestone:
            return milestone
    return STREAK_MILESTONES[-1] + ((current - STREAK_MILESTONES[-1]) // 50 + 1) * 50


# ==================== POINTS & LEVELS ====================

def calculate_points(completed_lessons: int, best_quiz_percentages: Iterable[float] = (), badge_points: int = 0) -> int:
    lesson_points = completed_lessons * config.POINTS_PER_LESSON
    quiz_points = sum(round_half_up((pct or 0) / 10) for pct in best_quiz_percentages)
    return lesson_points + quiz_points + badge_points


def calculate_level(points: int) -> int:
    return max(points, 0) // config.POINTS_PER_LEVEL + 1


def badge_points(badges: Iterable[dict]) -> int:
    total = 0
    for badge in badges:
        definition = BADGES.get(badge.get("badge_id"))
        total += badge.get("points", definition["points"] if definition else 0)
    return total


def make_badge(badge_id: str, earned_at: Optional[datetime] = None) -> dict:
    definition = BADGES[badge_id]
    return {
        "badge_id": badge_id,
        "name": definition["name"],
        "description": definition["description"],
        "category": definition["category"],
        "points": definition["points"],
        "earned_date": earned_at or datetime.utcnow(),
    }


def eligible_badges(
    completed_lessons: int,
    completed_courses: int,
    current_streak: int,
    distinct_categories: int,
    has_perfect_quiz: bool,
) -> List[str]:
    earned = []
    if completed_lessons >= 1:
        earned.append("first_lesson")
    if completed_courses >= 1:
        earned.append("first_course_complete")
    if has_perfect_quiz:
        earned.append("perfect_quiz")
    if current_streak >= 7:
        earned.append("week_streak")
    if current_streak >= 30:
        earned.append("month_streak")
    if distinct_categories >= MULTI_CATEGORY_THRESHOLD:
        earned.append("multi_category")
    return earned


# ==================== PROGRESS ====================

def progress_percentage(completed: int, total: int) -> int:
    if total <= 0:
        return 0
    return min(round_half_up(completed / total * 100), 100)


def progress_label(percentage: float) -> str:
    if percentage >= 100:
        return "Completed"
    if percentage >= 75:
        return "Almost Done"
    if percentage >= 50:
        return "Halfway"
    if percentage >= 25:
        return "Getting Started"
    return "Just Started"


def expected_progress(enrolled_at: datetime, duration_days: int = None, now: Optional[datetime] = None) -> float:
    now = now or datetime.utcnow()
    duration_days = duration_days or config.EXPECTED_COMPLETION_DAYS
    days_enrolled = max((now - enrolled_at).days, 0)
    return min(days_enrolled / duration_days * 100, 100)


def deviation_status(deviation: float) -> str:
    if deviation > 10:
        return "Ahead"
    if deviation < -10:
        return "Behind"
    return "On Track"


def grade_letter(percentage: float) -> str:
    if percentage >= 90:
        return "A"
    if percentage >= 80:
        return "B"
    if percentage >= 70:
        return "C"
    if percentage >= 60:
        return "D"
    return "F"


def performance_label(average_progress: float) -> str:
    if average_progress >= 75:
        return "Excellent"
    if average_progress >= 50:
        return "Good"
    if average_progress >= 25:
        return "Fair"
    return "Needs Improvement"


# ==================== ACTIVITY ====================

def weekly_activity(completions: Iterable[dict], attempts: Iterable[dict] = (), today: Optional[date] = None) -> List[dict]:
    """
    One row per day for the last 7 days (oldest first).
    Lesson time is stored in minutes and quiz time in seconds.
    """
    today = _as_date(today or datetime.utcnow())
    window = [today - timedelta(days=offset) for offset in range(6, -1, -1)]
    buckets = {day: {"lessons": 0, "quizzes": 0, "minutes": 0.0} for day in window}

    for completion in completions:
        day = _as_date(completion.get("completed_at"))
        if day in buckets:
            buckets[day]["lessons"] += 1
            buckets[day]["minutes"] += completion.get("time_spent", 0) or 0

    for attempt in attempts:
        day = _as_date(attempt.get("completed_at"))
        if day in buckets:
            buckets[day]["quizzes"] += 1
            buckets[day]["minutes"] += (attempt.get("time_spent", 0) or 0) / 60

    return [
        {
            "day": DAY_NAMES[day.weekday()],
            "date": day.isoformat(),
            "lessons_completed": buckets[day]["lessons"],
            "quizzes_completed": buckets[day]["quizzes"],
            "hours": round(buckets[day]["minutes"] / 60, 1),
        }
        for day in window
    ]


def milestones(
    enrolled_courses: int,
    completed_courses: int,
    current_streak: int,
    distinct_categories: int,
    total_points: int,
) -> List[dict]:
    return [
        {"id": "first_course", "title": "First Course Enrolled", "achieved": enrolled_courses >= 1},
        {"id": "week_streak", "title": "7-Day Learning Streak", "achieved": current_streak >= 7},
        {"id": "course_complete", "title": "First Course Completed", "achieved": completed_courses >= 1},
        {
            "id": "multi_category",
            "title": "Learning Across Categories",
            "achieved": distinct_categories >= MULTI_CATEGORY_THRESHOLD,
        },
        {"id": "month_streak", "title": "30-Day Learning Streak", "achieved": current_streak >= 30},
        {
            "id": "point_master",
            "title": f"{POINT_MASTER_THRESHOLD} Points",
            "achieved": total_points >= POINT_MASTER_THRESHOLD,
        },
    ]
