from datetime import datetime, timedelta

from conftest import PASSWORD, run
from eduknit.privacy.models import DELETION_CONFIRM_TEXT
from eduknit.privacy.service import process_due_deletions

DELETE_BODY = {"password": PASSWORD, "reason": "Moving on", "confirm_text": DELETION_CONFIRM_TEXT}


def request_deletion(client, student, **overrides):
    return client.post("/api/privacy/delete-account", headers=student["headers"], json={**DELETE_BODY, **overrides})


def test_privacy_settings_roundtrip(client, student):
    settings = client.get("/api/privacy/settings", headers=student["headers"]).json()["data"]
    assert settings["profile_visibility"] == "PUBLIC"

    response = client.put("/api/privacy/settings", headers=student["headers"], json={
        "profile_visibility": "PRIVATE", "allow_messaging": False,
    })
    assert response.status_code == 200
    updated = response.json()["data"]
    assert updated["profile_visibility"] == "PRIVATE"
    assert updated["allow_messaging"] is False
    assert updated["allow_connection_requests"] is True

    assert client.put("/api/privacy/settings", headers=student["headers"], json={}).status_code == 400
    bad = client.put("/api/privacy/settings", headers=student["headers"], json={"profile_visibility": "SECRET"})
    assert bad.status_code == 400


def test_consent_changes_are_timestamped(client, student):
    response = client.put("/api/privacy/consent", headers=student["headers"], json={"marketing_consent": True})
    privacy = response.json()["data"]
    assert privacy["marketing_consent"] is True
    assert privacy["marketing_consent_date"] is not None
    assert privacy["data_processing_consent_date"] is None

    # re-sending the same value keeps the original timestamp
    again = client.put("/api/privacy/consent", headers=student["headers"], json={"marketing_consent": True}).json()["data"]
    assert again["marketing_consent_date"] == privacy["marketing_consent_date"]


def test_export_contains_personal_data(client, student, make_course):
    ids = make_course()
    client.post("/api/enrollments", headers=student["headers"], json={"course_id": ids["course_id"]})
    client.post(f"/api/progress/lessons/{ids['lesson_ids'][0]}/complete", headers=student["headers"])

    response = client.get("/api/privacy/export-data", headers=student["headers"])
    assert response.status_code == 200
    export = response.json()["data"]
    assert export["filename"].startswith(f"user_data_{student['user_id']}_")
    data = export["data"]
    assert data["user"]["email"] == student["email"]
    assert "password_hash" not in data["user"]
    assert len(data["enrollments"]) == 1
    assert len(data["lesson_completions"]) == 1
    assert data["quiz_attempts"] == []


def test_deletion_request_validation(client, student):
    wrong_password = request_deletion(client, student, password="WrongPass1")
    assert wrong_password.status_code == 400
    assert wrong_password.json()["error"]["message"] == "Invalid password"

    assert request_deletion(client, student, confirm_text="delete my account").status_code == 400
    assert request_deletion(client, student, reason="   ").status_code == 400
    assert request_deletion(client, student, reason="x" * 1001).status_code == 400


def test_request_deletion_schedules_grace_period(client, db, student):
    response = request_deletion(client, student)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["grace_period_days"] == 30
    assert data["request"]["status"] == "PENDING"
    assert data["request"]["auto_process"] is True

    user = run(db.users.find_one({"user_id": student["user_id"]}))
    assert user["deletion_scheduled_for"] > datetime.utcnow() + timedelta(days=29)

    status = client.get("/api/privacy/deletion-status", headers=student["headers"]).json()["data"]
    assert status["deletion_requested"] is True
    assert status["days_remaining"] == 29

    duplicate = request_deletion(client, student)
    assert duplicate.status_code == 400
    assert duplicate.json()["error"]["message"] == "Account deletion is already scheduled"


def test_cancel_deletion(client, db, student):
    assert client.post("/api/privacy/cancel-deletion", headers=student["headers"]).status_code == 404

    request_deletion(client, student)
    response = client.post("/api/privacy/cancel-deletion", headers=student["headers"], json={"reason": "Changed my mind"})
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "CANCELLED"

    user = run(db.users.find_one({"user_id": student["user_id"]}))
    assert user["deletion_scheduled_for"] is None
    status = client.get("/api/privacy/deletion-status", headers=student["headers"]).json()["data"]
    assert status["deletion_requested"] is False

    history = client.get("/api/privacy/deletion-requests", headers=student["headers"]).json()["data"]
    assert [r["status"] for r in history] == ["CANCELLED"]

    # a new request is allowed once the previous one is closed
    assert request_deletion(client, student).status_code == 200


def test_admin_lists_requests_with_user(client, admin, student):
    request_deletion(client, student)
    response = client.get("/api/privacy/admin/deletion-requests", headers=admin["headers"], params={"status": "PENDING"})
    body = response.json()
    assert body["pagination"]["total"] == 1
    assert body["data"][0]["user"]["email"] == student["email"]

    assert client.get("/api/privacy/admin/deletion-requests", headers=student["headers"]).status_code == 403


def test_admin_approval_anonymises_immediately(client, db, admin, student, make_course):
    ids = make_course()
    client.post("/api/enrollments", headers=student["headers"], json={"course_id": ids["course_id"]})
    client.post(f"/api/progress/lessons/{ids['lesson_ids'][0]}/complete", headers=student["headers"])
    request_id = request_deletion(client, student).json()["data"]["request"]["request_id"]

    response = client.put(
        f"/api/privacy/admin/deletion-requests/{request_id}/process",
        headers=admin["headers"], json={"action": "approve", "admin_notes": "Verified"},
    )
    assert response.status_code == 200
    assert response.json()["message"] == "Deletion request approved"
    assert response.json()["data"]["status"] == "COMPLETED"

    user = run(db.users.find_one({"user_id": student["user_id"]}))
    assert user["is_deleted"] is True
    assert user["email"] == f"deleted_{student['user_id']}@deleted.local".lower()
    assert user["first_name"] is None
    assert user["password_hash"] is None

    assert run(db.enrollments.count_documents({"user_id": student["user_id"]})) == 0
    assert run(db.lesson_completions.count_documents({"user_id": student["user_id"]})) == 0
    assert run(db.student_profiles.count_documents({"user_id": student["user_id"]})) == 0

    assert client.get("/api/auth/me", headers=student["headers"]).status_code == 401

    actions = [log["action"] for log in run(db.audit_logs.find({}).to_list(length=None))]
    assert "approve_deletion" in actions
    assert "process_deletion" in actions

    again = client.put(
        f"/api/privacy/admin/deletion-requests/{request_id}/process",
        headers=admin["headers"], json={"action": "reject"},
    )
    assert again.status_code == 400


def test_admin_approval_with_future_date_defers(client, db, admin, student):
    request_id = request_deletion(client, student).json()["data"]["request"]["request_id"]
    later = (datetime.utcnow() + timedelta(days=3)).isoformat()

    data = client.put(
        f"/api/privacy/admin/deletion-requests/{request_id}/process",
        headers=admin["headers"], json={"action": "approve", "scheduled_for": later},
    ).json()["data"]
    assert data["status"] == "APPROVED"
    assert run(db.users.find_one({"user_id": student["user_id"]}))["is_deleted"] is False


def test_admin_rejection_clears_schedule(client, db, admin, student):
    request_id = request_deletion(client, student).json()["data"]["request"]["request_id"]
    response = client.put(
        f"/api/privacy/admin/deletion-requests/{request_id}/process",
        headers=admin["headers"], json={"action": "reject", "admin_notes": "Outstanding invoice"},
    )
    assert response.json()["message"] == "Deletion request rejected"
    assert response.json()["data"]["status"] == "REJECTED"

    user = run(db.users.find_one({"user_id": student["user_id"]}))
    assert user["deletion_scheduled_for"] is None
    assert user["is_deleted"] is False


def test_due_requests_are_processed(client, db, admin, student, make_student):
    request_deletion(client, student)
    other = make_student(username="other", email="other@example.com")
    request_deletion(client, other)

    run(db.deletion_requests.update_one(
        {"user_id": student["user_id"]},
        {"$set": {"scheduled_for": datetime.utcnow() - timedelta(minutes=1)}}
    ))

    response = client.post("/api/privacy/admin/process-due", headers=admin["headers"])
    assert response.json()["data"]["processed"] == 1

    assert run(db.users.find_one({"user_id": student["user_id"]}))["is_deleted"] is True
    assert run(db.users.find_one({"user_id": other["user_id"]}))["is_deleted"] is False
    assert run(db.deletion_requests.find_one({"user_id": student["user_id"]}))["status"] == "COMPLETED"

    # nothing left to do on a second pass
    assert run(process_due_deletions(db)) == 0


def test_user_audit_log(client, student):
    client.put("/api/privacy/settings", headers=student["headers"], json={"allow_messaging": False})
    request_deletion(client, student)

    body = client.get("/api/privacy/audit-logs", headers=student["headers"]).json()
    actions = {log["action"] for log in body["data"]}
    assert {"update_privacy_settings", "request_deletion"} <= actions
    assert body["pagination"]["total"] == 2


def test_admin_audit_log_filters(client, admin, student):
    client.put("/api/privacy/settings", headers=student["headers"], json={"allow_messaging": False})
    body = client.get(
        "/api/privacy/admin/audit-logs", headers=admin["headers"], params={"action": "update_privacy_settings"}
    ).json()
    assert body["pagination"]["total"] == 1
    assert body["data"][0]["actor_user_id"] == student["user_id"]
