from datetime import date, datetime, timedelta

from eduknit.analytics import metrics


TODAY = date(2024, 3, 15)


def days_ago(*offsets):
    return [TODAY - timedelta(days=o) for o in offsets]


def test_compute_streaks_counts_run_ending_today():
    result = metrics.compute_streaks(days_ago(0, 1, 2, 5, 6), today=TODAY)
    assert result["current"] == 3
    assert result["longest"] == 3
    assert result["last_activity_date"] == "2024-03-15"


def test_compute_streaks_run_ending_yesterday_is_still_current():
    result = metrics.compute_streaks(days_ago(1, 2), today=TODAY)
    assert result["current"] == 2


def test_compute_streaks_broken_run_resets_current_but_keeps_longest():
    result = metrics.compute_streaks(days_ago(3, 4, 5, 6, 7), today=TODAY)
    assert result["current"] == 0
    assert result["longest"] == 5


def test_compute_streaks_ignores_duplicates_and_datetimes():
    moments = [datetime(2024, 3, 15, 9), datetime(2024, 3, 15, 18), datetime(2024, 3, 14, 7)]
    result = metrics.compute_streaks(moments, today=TODAY)
    assert result == {"current": 2, "longest": 2, "last_activity_date": "2024-03-15"}


def test_compute_streaks_empty():
    assert metrics.compute_streaks([], today=TODAY) == {"current": 0, "longest": 0, "last_activity_date": None}


def test_advance_daily_streak():
    first = metrics.advance_daily_streak(None, TODAY)
    assert first == {"current": 1, "longest": 1, "last_date": "2024-03-15"}

    same_day = metrics.advance_daily_streak(first, TODAY)
    assert same_day["current"] == 1

    next_day = metrics.advance_daily_streak(first, TODAY + timedelta(days=1))
    assert next_day["current"] == 2
    assert next_day["longest"] == 2

    after_gap = metrics.advance_daily_streak(next_day, TODAY + timedelta(days=5))
    assert after_gap["current"] == 1
    assert after_gap["longest"] == 2


def test_next_streak_milestone():
    assert metrics.next_streak_milestone(0) == 7
    assert metrics.next_streak_milestone(7) == 30
    assert metrics.next_streak_milestone(45) == 100
    assert metrics.next_streak_milestone(120) == 150


def test_points_and_level():
    # 3 lessons, best quizzes 85% and 100%, one first_lesson badge
    points = metrics.calculate_points(3, [85, 100], badge_points=10)
    assert points == 30 + 9 + 10 + 10
    assert metrics.calculate_level(points) == 1
    assert metrics.calculate_level(100) == 2
    assert metrics.calculate_level(0) == 1


def test_badge_points_uses_stored_or_catalog_value():
    badges = [{"badge_id": "first_lesson"}, {"badge_id": "perfect_quiz", "points": 5}, {"badge_id": "unknown"}]
    assert metrics.badge_points(badges) == 15


def test_eligible_badges():
    assert metrics.eligible_badges(0, 0, 0, 0, False) == []
    assert metrics.eligible_badges(4, 1, 30, 3, True) == [
        "first_lesson", "first_course_complete", "perfect_quiz", "week_streak", "month_streak", "multi_category",
    ]


def test_make_badge():
    badge = metrics.make_badge("week_streak", datetime(2024, 1, 1))
    assert badge["name"] == "Week Warrior"
    assert badge["points"] == 25
    assert badge["earned_date"] == datetime(2024, 1, 1)


def test_progress_percentage_rounds_half_up_and_caps():
    assert metrics.progress_percentage(1, 3) == 33
    assert metrics.progress_percentage(1, 8) == 13
    assert metrics.progress_percentage(5, 4) == 100
    assert metrics.progress_percentage(3, 0) == 0


def test_labels():
    assert metrics.progress_label(100) == "Completed"
    assert metrics.progress_label(80) == "Almost Done"
    assert metrics.progress_label(50) == "Halfway"
    assert metrics.progress_label(10) == "Just Started"
    assert metrics.grade_letter(95) == "A"
    assert metrics.grade_letter(59) == "F"
    assert metrics.deviation_status(15) == "Ahead"
    assert metrics.deviation_status(-15) == "Behind"
    assert metrics.deviation_status(0) == "On Track"
    assert metrics.performance_label(80) == "Excellent"
    assert metrics.performance_label(10) == "Needs Improvement"


def test_expected_progress():
    enrolled = datetime(2024, 1, 1)
    assert metrics.expected_progress(enrolled, 30, datetime(2024, 1, 16)) == 50
    assert metrics.expected_progress(enrolled, 30, datetime(2024, 6, 1)) == 100
    assert metrics.expected_progress(enrolled, None, datetime(2024, 1, 31)) == 50


def test_weekly_activity_buckets_last_seven_days():
    completions = [
        {"completed_at": datetime(2024, 3, 15, 10), "time_spent": 30},
        {"completed_at": datetime(2024, 3, 14, 10), "time_spent": 90},
        {"completed_at": datetime(2024, 3, 1, 10), "time_spent": 60},
    ]
    attempts = [{"completed_at": datetime(2024, 3, 15, 11), "time_spent": 1800}]

    rows = metrics.weekly_activity(completions, attempts, today=TODAY)

    assert len(rows) == 7
    assert rows[0]["date"] == "2024-03-09"
    assert rows[-1] == {
        "day": "Fri", "date": "2024-03-15", "lessons_completed": 1, "quizzes_completed": 1, "hours": 1.0,
    }
    assert rows[-2]["hours"] == 1.5
    assert sum(r["lessons_completed"] for r in rows) == 2


def test_milestones():
    items = {m["id"]: m["achieved"] for m in metrics.milestones(1, 0, 8, 1, 1200)}
    assert items["first_course"] is True
    assert items["week_streak"] is True
    assert items["course_complete"] is False
    assert items["point_master"] is True
