from conftest import run


def complete_first_lesson(client, student, make_course, **course):
    ids = make_course(**course)
    client.post("/api/enrollments", headers=student["headers"], json={"course_id": ids["course_id"]})
    client.post(f"/api/progress/lessons/{ids['lesson_ids'][0]}/complete", headers=student["headers"], json={
        "time_spent": 30,
    })
    return ids


def test_overview_for_new_learner(client, student):
    response = client.get("/api/analytics/overview", headers=student["headers"])
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["enrollments"]["total"] == 0
    assert data["average_progress"] == 0
    assert data["points"] == 0
    assert data["level"] == 1
    assert data["recent_activity"] == []


def test_overview_reflects_progress(client, student, make_course):
    complete_first_lesson(client, student, make_course)
    data = client.get("/api/analytics/overview", headers=student["headers"]).json()["data"]
    assert data["enrollments"]["active"] == 1
    assert data["lessons_completed"] == 1
    assert data["average_progress"] == 50
    assert data["learning_streak"]["current"] == 1
    assert data["points"] == 20
    assert data["recent_activity"][0]["type"] == "lesson_completed"
    assert data["recent_activity"][0]["title"] == "Lesson 1"


def test_progress_history_window(client, student, make_course):
    complete_first_lesson(client, student, make_course)
    data = client.get("/api/analytics/progress-history", headers=student["headers"], params={"days": 7}).json()["data"]
    assert len(data["history"]) == 7
    assert data["history"][-1]["lessons_completed"] == 1
    assert data["summary"]["total_lessons_completed"] == 1
    assert data["summary"]["active_days"] == 1

    assert client.get("/api/analytics/progress-history", headers=student["headers"], params={"days": 0}).status_code == 400


def test_category_performance(client, student, make_course):
    complete_first_lesson(client, student, make_course, category="AI_CERTIFICATE")
    data = client.get("/api/analytics/category-performance", headers=student["headers"]).json()["data"]
    assert data["categories"][0]["category"] == "AI_CERTIFICATE"
    assert data["categories"][0]["total_courses"] == 1
    assert data["insights"]["overall_completion_rate"] == 0


def test_streaks_and_badges(client, student, make_course):
    complete_first_lesson(client, student, make_course)
    data = client.get("/api/analytics/streaks", headers=student["headers"]).json()["data"]
    assert data["learning_streak"]["current"] == 1
    assert data["next_milestone"] == {"target": 7, "days_remaining": 6}
    assert [b["badge_id"] for b in data["badges"]] == ["first_lesson"]


def test_badges_are_stored_on_profile(client, db, student, make_course):
    complete_first_lesson(client, student, make_course)
    profile = run(db.student_profiles.find_one({"user_id": student["user_id"]}))
    assert profile["gamification"]["total_points"] == 20
    assert [b["badge_id"] for b in profile["gamification"]["badges"]] == ["first_lesson"]


def test_leaderboard_ranks_public_students(client, db, student, make_student, make_course):
    other = make_student(username="other", email="other@example.com")
    client.get("/api/analytics/overview", headers=other["headers"])
    complete_first_lesson(client, student, make_course)

    data = client.get("/api/analytics/leaderboard", headers=other["headers"]).json()["data"]
    assert [e["username"] for e in data["leaderboard"]] == ["learner", "other"]
    assert data["leaderboard"][0]["rank"] == 1
    assert data["my_rank"] == 2

    run(db.student_profiles.update_one(
        {"user_id": student["user_id"]}, {"$set": {"privacy.profile_visibility": "PRIVATE"}}
    ))
    data = client.get("/api/analytics/leaderboard", headers=other["headers"]).json()["data"]
    assert [e["username"] for e in data["leaderboard"]] == ["other"]


def test_realtime_dashboard(client, student, make_course):
    complete_first_lesson(client, student, make_course)
    data = client.get("/api/dashboard/realtime", headers=student["headers"]).json()["data"]
    assert data["metrics"]["total_courses"] == 1
    assert data["metrics"]["in_progress_courses"] == 1
    assert len(data["weekly_activity"]) == 7
    assert data["learning_summary"]["lessons_this_week"] == 1
    assert data["course_progress"][0]["progress"] == 50
    assert any(n["type"] == "achievement" for n in data["notifications"])


def test_analytics_requires_auth(client):
    assert client.get("/api/analytics/overview").status_code == 401
    assert client.get("/api/dashboard/realtime").status_code == 401


def test_progress_history_ignores_deactivated_lessons(client, admin, student, make_course):
    ids = complete_first_lesson(client, student, make_course)
    client.delete(f"/api/admin/courses/lessons/{ids['lesson_ids'][0]}", headers=admin["headers"])

    progress = client.get(f"/api/progress/courses/{ids['course_id']}", headers=student["headers"]).json()["data"]
    history = client.get("/api/analytics/progress-history", headers=student["headers"], params={"days": 7}).json()["data"]
    assert progress["completed_lessons"] == 0
    assert history["history"][-1]["average_progress"] == 0
