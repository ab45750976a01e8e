from pathlib import Path

from eduknit import config
from eduknit.students.database import calculate_completeness, missing_profile_sections

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def test_completeness_rubric():
    assert calculate_completeness({}) == 0

    full = {
        "contact_info": {"phone_number": "+15551234567", "alternate_email": "a@b.co",
                         "social_media": {"github": "https://github.com/lee"}},
        "address": {"city": "Pune", "country": "India"},
        "academic_info": {"education_level": "BACHELORS", "institution": "MIT"},
        "professional_info": {"experience": "BEGINNER", "skills": ["python"], "interests": ["ml"]},
        "learning_preferences": {"goals": ["ship"], "availability_hours": 5, "preferred_time_slots": ["evening"]},
        "profile_photo": {"url": "/uploads/profile-photos/x.png"},
    }
    assert calculate_completeness(full) == 100
    assert missing_profile_sections(full) == []

    # a city without a country scores nothing for the address
    assert calculate_completeness({"address": {"city": "Pune"}}) == 0
    assert calculate_completeness({"address": {"city": "Pune", "country": "India"}}) == 14


def test_profile_is_created_on_first_access(client, student):
    response = client.get("/api/students/profile", headers=student["headers"])
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["user"]["username"] == "learner"
    assert data["profile"]["user_id"] == student["user_id"]
    assert data["profile"]["privacy"]["profile_visibility"] == "PUBLIC"


def test_partial_update_merges_sections(client, student):
    client.put("/api/students/profile", headers=student["headers"], json={
        "contact_info": {"phone_number": "+15551234567"},
    })
    response = client.put("/api/students/profile", headers=student["headers"], json={
        "address": {"city": "Pune", "country": "India"},
    })
    assert response.status_code == 200
    profile = response.json()["data"]
    assert profile["contact_info"]["phone_number"] == "+15551234567"
    assert profile["address"]["city"] == "Pune"
    assert profile["statistics"]["profile_completeness"] == 21

    completeness = client.get("/api/students/profile/completeness", headers=student["headers"]).json()["data"]
    assert completeness["completeness"] == 21
    assert "profile_photo" in completeness["missing"]
    assert "address.city" not in completeness["missing"]


def test_update_validation(client, student):
    assert client.put("/api/students/profile", headers=student["headers"], json={}).status_code == 400

    bad_link = client.put("/api/students/profile", headers=student["headers"], json={
        "contact_info": {"social_media": {"github": "https://gitlab.com/lee"}},
    })
    assert bad_link.status_code == 400

    bad_year = client.put("/api/students/profile", headers=student["headers"], json={
        "academic_info": {"graduation_year": 1800},
    })
    assert bad_year.status_code == 400


def test_onboarding_flag(client, student):
    response = client.put("/api/students/profile", headers=student["headers"], json={
        "onboarding_completed": True, "profile_setup_step": 3,
    })
    metadata = response.json()["data"]["metadata"]
    assert metadata["onboarding_completed"] is True
    assert metadata["onboarding_completed_date"] is not None
    assert metadata["profile_setup_step"] == 3


def test_photo_upload_and_replace(client, student):
    first = client.post(
        "/api/students/profile/photo", headers=student["headers"], files={"photo": ("me.png", PNG, "image/png")}
    )
    assert first.status_code == 200
    photo = first.json()["data"]
    assert photo["url"].startswith("/uploads/")
    assert photo["mime_type"] == "image/png"
    stored = Path(config.UPLOADS_DIR) / "profile-photos" / photo["filename"]
    assert stored.exists()

    second = client.post(
        "/api/students/profile/photo", headers=student["headers"], files={"photo": ("me.png", PNG, "image/png")}
    ).json()["data"]
    assert second["filename"] != photo["filename"]
    assert not stored.exists()

    served = client.get(second["url"])
    assert served.status_code == 200
    assert served.content == PNG


def test_photo_upload_rejects_bad_files(client, student, monkeypatch):
    wrong_type = client.post(
        "/api/students/profile/photo", headers=student["headers"], files={"photo": ("notes.txt", b"hello", "text/plain")}
    )
    assert wrong_type.status_code == 400

    empty = client.post(
        "/api/students/profile/photo", headers=student["headers"], files={"photo": ("me.png", b"", "image/png")}
    )
    assert empty.status_code == 400

    monkeypatch.setattr(config, "MAX_PHOTO_BYTES", 16)
    too_big = client.post(
        "/api/students/profile/photo", headers=student["headers"], files={"photo": ("me.png", PNG, "image/png")}
    )
    assert too_big.status_code == 400
    assert "at most" in too_big.json()["error"]["message"]


def test_delete_photo(client, student):
    assert client.delete("/api/students/profile/photo", headers=student["headers"]).status_code == 400

    client.post("/api/students/profile/photo", headers=student["headers"], files={"photo": ("me.png", PNG, "image/png")})
    assert client.delete("/api/students/profile/photo", headers=student["headers"]).status_code == 200

    profile = client.get("/api/students/profile", headers=student["headers"]).json()["data"]["profile"]
    assert profile["profile_photo"]["url"] is None


def test_student_dashboard(client, student, make_course):
    ids = make_course()
    client.post("/api/enrollments", headers=student["headers"], json={"course_id": ids["course_id"]})
    data = client.get("/api/students/dashboard", headers=student["headers"]).json()["data"]
    assert data["student"]["username"] == "learner"
    assert data["metrics"]["total_courses"] == 1
    assert data["current_courses"][0]["course_id"] == ids["course_id"]
