from conftest import PASSWORD, run

NEW_USER = {
    "username": "mentor",
    "email": "Mentor@Example.com",
    "password": PASSWORD,
    "first_name": "Max",
    "last_name": "Mentor",
    "role": "user",
}


def test_admin_endpoints_require_admin(client, student):
    assert client.get("/api/admin/users", headers=student["headers"]).status_code == 403
    assert client.get("/api/admin/dashboard/stats").status_code == 401


def test_list_users_with_filters(client, admin, make_student):
    make_student()
    make_student(username="second", email="second@example.com")

    everyone = client.get("/api/admin/users", headers=admin["headers"]).json()
    assert everyone["pagination"]["total"] == 3

    students = client.get("/api/admin/users", headers=admin["headers"], params={"role": "student"}).json()
    assert students["pagination"]["total"] == 2
    assert all("password_hash" not in u for u in students["data"])

    found = client.get("/api/admin/users", headers=admin["headers"], params={"search": "SECOND"}).json()
    assert [u["username"] for u in found["data"]] == ["second"]

    assert client.get("/api/admin/users", headers=admin["headers"], params={"role": "wizard"}).status_code == 400


def test_create_user(client, db, admin, login):
    response = client.post("/api/admin/users", headers=admin["headers"], json=NEW_USER)
    assert response.status_code == 201
    user = response.json()["data"]
    assert user["email"] == "mentor@example.com"
    assert user["role"] == "user"
    assert user["enrollment_status"] == "active"
    assert user["is_email_verified"] is True

    # created accounts can log in straight away
    assert login("mentor@example.com").status_code == 200

    duplicate = client.post("/api/admin/users", headers=admin["headers"], json=NEW_USER)
    assert duplicate.status_code == 409

    log = run(db.audit_logs.find_one({"action": "create_user"}))
    assert log["target_id"] == user["user_id"]


def test_create_user_validates_password(client, admin):
    response = client.post("/api/admin/users", headers=admin["headers"], json={**NEW_USER, "password": "weak"})
    assert response.status_code == 400


def test_get_user_detail(client, admin, student):
    data = client.get(f"/api/admin/users/{student['user_id']}", headers=admin["headers"]).json()["data"]
    assert data["user"]["email"] == student["email"]
    assert data["enrollments"] == {"total": 0, "completed": 0}

    assert client.get("/api/admin/users/USR_MISSING", headers=admin["headers"]).status_code == 404


def test_update_user(client, admin, student, make_student):
    response = client.put(f"/api/admin/users/{student['user_id']}", headers=admin["headers"], json={
        "first_name": "Renamed", "role": "user",
    })
    assert response.status_code == 200
    assert response.json()["data"]["first_name"] == "Renamed"
    assert response.json()["data"]["role"] == "user"

    make_student(username="taken", email="taken@example.com")
    clash = client.put(f"/api/admin/users/{student['user_id']}", headers=admin["headers"], json={"username": "taken"})
    assert clash.status_code == 409

    assert client.put(f"/api/admin/users/{student['user_id']}", headers=admin["headers"], json={}).status_code == 400


def test_admin_cannot_demote_themselves(client, admin):
    response = client.put(f"/api/admin/users/{admin['user_id']}", headers=admin["headers"], json={"role": "student"})
    assert response.status_code == 400


def test_soft_delete_user(client, db, admin, student):
    response = client.delete(f"/api/admin/users/{student['user_id']}", headers=admin["headers"])
    assert response.status_code == 200

    stored = run(db.users.find_one({"user_id": student["user_id"]}))
    assert stored["is_deleted"] is True
    assert stored["refresh_tokens"] == []

    # the deleted account can no longer authenticate
    assert client.get("/api/auth/me", headers=student["headers"]).status_code == 401

    listed = client.get("/api/admin/users", headers=admin["headers"]).json()
    assert listed["pagination"]["total"] == 1
    with_deleted = client.get("/api/admin/users", headers=admin["headers"], params={"include_deleted": True}).json()
    assert with_deleted["pagination"]["total"] == 2

    assert client.delete(f"/api/admin/users/{student['user_id']}", headers=admin["headers"]).status_code == 404
    assert client.delete(f"/api/admin/users/{admin['user_id']}", headers=admin["headers"]).status_code == 400


def test_change_user_status(client, db, admin, student, login):
    response = client.patch(f"/api/admin/users/{student['user_id']}/status", headers=admin["headers"], json={
        "enrollment_status": "suspended", "reason": "Spam",
    })
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["previous_status"] == "active"
    assert data["enrollment_status"] == "suspended"

    assert login(student["email"]).status_code == 401

    log = run(db.audit_logs.find_one({"action": "change_user_status"}))
    assert log["metadata"]["to"] == "suspended"
    assert log["metadata"]["reason"] == "Spam"


def test_user_stats(client, admin, student, register):
    register(username="pending", email="pending@example.com")
    stats = client.get("/api/admin/users/stats", headers=admin["headers"]).json()["data"]
    assert stats["total"] == 3
    assert stats["by_role"] == {"admin": 1, "student": 2}
    assert stats["by_status"]["inactive"] == 1
    assert stats["unverified"] == 1
    assert stats["new_this_month"] == 3


def test_dashboard_stats(client, admin, student, make_course):
    ids = make_course()
    client.post("/api/enrollments", headers=student["headers"], json={"course_id": ids["course_id"]})
    client.post(f"/api/progress/lessons/{ids['lesson_ids'][0]}/complete", headers=student["headers"])

    data = client.get("/api/admin/dashboard/stats", headers=admin["headers"]).json()["data"]
    assert data["users"]["students"] == 1
    assert data["courses"]["active"] == 1
    assert data["courses"]["lessons"] == 2
    assert data["enrollments"]["total"] == 1
    assert data["enrollments"]["average_progress"] == 50
    assert data["learning"]["lesson_completions"] == 1
    assert data["privacy"]["pending_deletion_requests"] == 0


def test_enrollment_stats(client, admin, student, make_student, make_course):
    ids = make_course()
    other = make_student(username="other", email="other@example.com")
    for learner in (student, other):
        client.post("/api/enrollments", headers=learner["headers"], json={"course_id": ids["course_id"]})

    data = client.get("/api/admin/enrollments/stats", headers=admin["headers"]).json()["data"]
    row = data["per_course"][0]
    assert row["title"] == "Intro to Data"
    assert row["total"] == 2
    assert row["active"] == 2
    assert row["completion_rate"] == 0
    assert sum(m["enrollments"] for m in data["per_month"]) == 2

    assert client.get("/api/admin/enrollments/stats", headers=admin["headers"], params={"months": 30}).status_code == 400
