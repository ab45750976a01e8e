from conftest import run


def enroll(client, student, course_id):
    return client.post("/api/enrollments", headers=student["headers"], json={"course_id": course_id})


def test_enroll_and_list_my_courses(client, student, make_course):
    ids = make_course()
    response = enroll(client, student, ids["course_id"])
    assert response.status_code == 201
    enrollment = response.json()["data"]["enrollment"]
    assert enrollment["status"] == "ACTIVE"
    assert enrollment["progress"]["total_progress"] == 0

    mine = client.get("/api/enrollments/my-courses", headers=student["headers"]).json()["data"]
    assert mine["count"] == 1

    check = client.get(f"/api/enrollments/check/{ids['course_id']}", headers=student["headers"]).json()["data"]
    assert check["is_enrolled"] is True
    assert check["can_enroll"] is False


def test_duplicate_enrollment_conflicts(client, student, make_course):
    ids = make_course()
    enroll(client, student, ids["course_id"])
    response = enroll(client, student, ids["course_id"])
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "CONFLICT"


def test_enroll_unknown_course(client, student):
    assert enroll(client, student, "CRS_MISSING").status_code == 404


def test_pause_resume_drop_transitions(client, student, make_course):
    ids = make_course()
    enroll(client, student, ids["course_id"])
    base = f"/api/enrollments/courses/{ids['course_id']}"

    assert client.post(f"{base}/resume", headers=student["headers"]).status_code == 400

    paused = client.post(f"{base}/pause", headers=student["headers"])
    assert paused.json()["data"]["status"] == "PAUSED"

    # paused enrollments cannot record progress
    blocked = client.post(f"/api/progress/lessons/{ids['lesson_ids'][0]}/complete", headers=student["headers"])
    assert blocked.status_code == 403

    resumed = client.post(f"{base}/resume", headers=student["headers"])
    assert resumed.json()["data"]["status"] == "ACTIVE"

    dropped = client.post(f"{base}/drop", headers=student["headers"])
    assert dropped.json()["data"]["status"] == "CANCELLED"
    assert client.post(f"{base}/drop", headers=student["headers"]).status_code == 400


def test_reenroll_after_drop_reactivates(client, db, student, make_course):
    ids = make_course()
    first = enroll(client, student, ids["course_id"]).json()["data"]["enrollment"]
    client.post(f"/api/enrollments/courses/{ids['course_id']}/drop", headers=student["headers"])

    response = enroll(client, student, ids["course_id"])
    assert response.status_code == 201
    again = response.json()["data"]["enrollment"]
    assert again["enrollment_id"] == first["enrollment_id"]
    assert again["status"] == "ACTIVE"
    assert run(db.enrollments.count_documents({"user_id": student["user_id"]})) == 1


def test_progress_requires_enrollment(client, student, make_course):
    ids = make_course()
    response = client.post(f"/api/progress/lessons/{ids['lesson_ids'][0]}/complete", headers=student["headers"])
    assert response.status_code == 404


def test_lesson_completion_updates_progress(client, student, make_course):
    ids = make_course(lessons=3)
    enroll(client, student, ids["course_id"])

    response = client.post(
        f"/api/progress/lessons/{ids['lesson_ids'][0]}/complete", headers=student["headers"], json={"time_spent": 12}
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["lesson_completed"] is True
    assert data["progress"] == 33
    assert data["course_completed"] is False
    assert [b["badge_id"] for b in data["new_badges"]] == ["first_lesson"]

    again = client.post(f"/api/progress/lessons/{ids['lesson_ids'][0]}/complete", headers=student["headers"])
    assert again.json()["message"] == "Lesson already completed"
    assert again.json()["data"]["progress"] == 33

    progress = client.get(f"/api/progress/courses/{ids['course_id']}", headers=student["headers"]).json()["data"]
    assert progress["completed_lessons"] == 1
    assert progress["total_lessons"] == 3
    assert progress["time_spent"] == 12
    assert progress["next_lesson"]["lesson_id"] == ids["lesson_ids"][1]


def test_activity_without_completion_only_adds_time(client, student, make_course):
    ids = make_course()
    enroll(client, student, ids["course_id"])
    response = client.post("/api/progress/activity", headers=student["headers"], json={
        "course_id": ids["course_id"], "lesson_id": ids["lesson_ids"][0], "time_spent": 20,
    })
    data = response.json()["data"]
    assert data["lesson_completed"] is False
    assert data["progress"] == 0
    assert data["enrollment"]["progress"]["time_spent"] == 20


def test_activity_rejects_lesson_from_other_course(client, student, make_course):
    first = make_course(title="First")
    second = make_course(title="Second")
    enroll(client, student, first["course_id"])
    response = client.post("/api/progress/activity", headers=student["headers"], json={
        "course_id": first["course_id"], "lesson_id": second["lesson_ids"][0], "completed": True,
    })
    assert response.status_code == 404


def test_completing_all_lessons_issues_certificate(client, student, make_course):
    ids = make_course(lessons=2)
    enroll(client, student, ids["course_id"])

    for lesson_id in ids["lesson_ids"]:
        response = client.post(f"/api/progress/lessons/{lesson_id}/complete", headers=student["headers"])

    data = response.json()["data"]
    assert data["course_completed"] is True
    assert data["progress"] == 100
    enrollment = data["enrollment"]
    assert enrollment["status"] == "COMPLETED"
    assert enrollment["certificate_issued"] is True
    assert enrollment["certificate_id"].startswith("EDUKNIT-")
    assert enrollment["completion_date"] is not None

    stats = client.get("/api/progress/statistics", headers=student["headers"]).json()["data"]
    assert stats["completed_courses"] == 1


def test_enrolled_course_detail_outline(client, student, make_course):
    ids = make_course(lessons=2)
    enroll(client, student, ids["course_id"])
    client.post(f"/api/progress/lessons/{ids['lesson_ids'][0]}/complete", headers=student["headers"])

    response = client.get(f"/api/enrollments/courses/{ids['course_id']}", headers=student["headers"])
    assert response.status_code == 200
    module = response.json()["data"]["modules"][0]
    assert module["completed_lessons"] == 1
    assert [l["is_completed"] for l in module["lessons"]] == [True, False]


def test_smart_progress(client, student, make_course):
    ids = make_course()
    enroll(client, student, ids["course_id"])
    data = client.get(f"/api/progress/courses/{ids['course_id']}/smart", headers=student["headers"]).json()["data"]
    assert data["actual_progress"] == 0
    assert data["duration_days"] == 30
    assert data["status"] == "On Track"
