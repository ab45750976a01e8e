import asyncio
import os
import tempfile

import pytest

os.environ["ENABLE_SCHEDULED_JOBS"] = "false"
os.environ["SMTP_HOST"] = ""
os.environ["ENVIRONMENT"] = "test"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.setdefault("UPLOADS_DIR", tempfile.mkdtemp(prefix="eduknit-uploads-"))

from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from eduknit.auth.service import new_user_document
from eduknit.database import db_manager
from eduknit.main import app

PASSWORD = "Passw0rd123"


def run(coro):
    return asyncio.run(coro)


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def db():
    database = AsyncMongoMockClient()["eduknit_test"]
    db_manager.db = database
    yield database
    db_manager.db = None


@pytest.fixture()
def client(db):
    return TestClient(app)


@pytest.fixture()
def register(client):
    def _register(username="learner", email="learner@example.com", password=PASSWORD, **extra):
        payload = {
            "username": username,
            "email": email,
            "password": password,
            "first_name": "Lee",
            "last_name": "Learner",
            **extra,
        }
        return client.post("/api/auth/register", json=payload)
    return _register


@pytest.fixture()
def verify(client, db):
    def _verify(email):
        user = run(db.users.find_one({"email": email}))
        return client.get(f"/api/auth/verify-email/{user['email_verification_token']}")
    return _verify


@pytest.fixture()
def login(client):
    def _login(email, password=PASSWORD):
        response = client.post("/api/auth/login", json={"email": email, "password": password})
        # requests carry explicit bearer headers so several users can share one client
        client.cookies.clear()
        return response
    return _login


@pytest.fixture()
def make_student(register, verify, login):
    def _make(username="learner", email="learner@example.com"):
        user = register(username=username, email=email).json()["data"]
        verify(email)
        tokens = login(email).json()["data"]
        return {"user_id": user["user_id"], "email": email, "headers": bearer(tokens["access_token"]), "tokens": tokens}
    return _make


@pytest.fixture()
def student(make_student):
    return make_student()


@pytest.fixture()
def admin(db, login):
    user = new_user_document(
        username="admin",
        email="admin@example.com",
        password=PASSWORD,
        first_name="Ada",
        last_name="Admin",
        role="admin",
        enrollment_status="active",
        is_email_verified=True,
    )
    run(db.users.insert_one(user))
    tokens = login("admin@example.com").json()["data"]
    return {"user_id": user["user_id"], "headers": bearer(tokens["access_token"])}


QUIZ = {
    "questions": [
        {"id": "q1", "question": "2 + 2?", "type": "MULTIPLE_CHOICE", "options": ["3", "4"], "correct_answer": "4"},
        {"id": "q2", "question": "Python is a language", "type": "TRUE_FALSE", "correct_answer": True},
    ],
    "settings": {"passing_score": 50, "max_attempts": 2},
}


@pytest.fixture()
def make_course(client, admin):
    """Course with one module and the given number of text lessons (plus an optional quiz lesson)"""
    def _make(title="Intro to Data", category="DATA_CERTIFICATION", lessons=2, quiz=None):
        course = client.post("/api/admin/courses", headers=admin["headers"], json={
            "title": title,
            "description": "A practical introduction course",
            "category": category,
            "instructor": "Dr. Data",
            "duration_days": 30,
        }).json()["data"]
        module = client.post(f"/api/admin/courses/{course['course_id']}/modules", headers=admin["headers"], json={
            "title": "Basics", "order_index": 0,
        }).json()["data"]

        lesson_ids = []
        for index in range(lessons):
            lesson = client.post(f"/api/admin/courses/modules/{module['module_id']}/lessons", headers=admin["headers"], json={
                "title": f"Lesson {index + 1}", "order_index": index, "estimated_duration": 10,
            }).json()["data"]
            lesson_ids.append(lesson["lesson_id"])

        quiz_lesson_id = None
        if quiz is not None:
            lesson = client.post(f"/api/admin/courses/modules/{module['module_id']}/lessons", headers=admin["headers"], json={
                "title": "Checkpoint quiz", "order_index": lessons, "type": "QUIZ", "quiz": quiz,
            }).json()["data"]
            quiz_lesson_id = lesson["lesson_id"]

        return {
            "course_id": course["course_id"],
            "slug": course["slug"],
            "module_id": module["module_id"],
            "lesson_ids": lesson_ids,
            "quiz_lesson_id": quiz_lesson_id,
        }
    return _make
