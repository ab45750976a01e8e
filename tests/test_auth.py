from datetime import datetime, timedelta

import pytest

from conftest import PASSWORD, bearer, run
from eduknit import config
from eduknit.rate_limit import limiter


def test_register_creates_inactive_unverified_user(client, db, register):
    response = register()
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    user = body["data"]
    assert user["role"] == "student"
    assert user["enrollment_status"] == "inactive"
    assert user["is_email_verified"] is False
    assert "password_hash" not in user
    assert "email_verification_token" not in user

    stored = run(db.users.find_one({"user_id": user["user_id"]}))
    assert stored["email_verification_token"]
    assert stored["password_hash"] != PASSWORD


def test_register_rejects_duplicates(register):
    register()
    response = register(username="other")
    assert response.status_code == 409
    assert response.json()["error"]["message"] == "Email already registered"

    response = register(email="other@example.com")
    assert response.status_code == 409
    assert response.json()["error"]["message"] == "Username already taken"


def test_register_validation_errors(register):
    response = register(password="short")
    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert any(d["field"] == "password" for d in error["details"])

    assert register(password="lettersonly").status_code == 400
    assert register(role="admin").status_code == 400
    assert register(username="a b").status_code == 400


def test_email_is_normalized(register, verify, login):
    register(email="  Mixed.Case@Example.COM ")
    verify("mixed.case@example.com")
    assert login("mixed.case@example.com").status_code == 200


def test_login_requires_verified_email(register, verify, login):
    register()
    response = login("learner@example.com")
    assert response.status_code == 401
    assert "verify" in response.json()["error"]["message"].lower()

    assert verify("learner@example.com").status_code == 200
    response = login("learner@example.com")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["token_type"] == "bearer"
    assert data["user"]["enrollment_status"] == "active"
    assert data["access_token"] and data["refresh_token"]


def test_login_sets_http_only_cookies(client, register, verify):
    register()
    verify("learner@example.com")
    response = client.post("/api/auth/login", json={"email": "learner@example.com", "password": PASSWORD})
    cookies = response.headers.get_list("set-cookie")
    assert any(c.startswith("accessToken=") and "HttpOnly" in c for c in cookies)
    assert any(c.startswith("refreshToken=") for c in cookies)

    # the cookie alone authenticates
    assert client.get("/api/auth/me").status_code == 200


def test_invalid_verification_token(client):
    response = client.get("/api/auth/verify-email/not-a-token")
    assert response.status_code == 400


def test_resend_verification_is_generic(client, register):
    register()
    known = client.post("/api/auth/resend-verification", json={"email": "learner@example.com"})
    unknown = client.post("/api/auth/resend-verification", json={"email": "ghost@example.com"})
    assert known.status_code == unknown.status_code == 200
    assert known.json()["message"] == unknown.json()["message"]


def test_lockout_after_five_failures(db, register, verify, login):
    register()
    verify("learner@example.com")

    for _ in range(5):
        assert login("learner@example.com", "WrongPass1").status_code == 401

    user = run(db.users.find_one({"email": "learner@example.com"}))
    assert user["login_attempts"] == 5
    assert user["lock_until"] > datetime.utcnow()

    response = login("learner@example.com")
    assert response.status_code == 401
    assert "locked" in response.json()["error"]["message"]


def test_expired_lock_restarts_counter(db, register, verify, login):
    register()
    verify("learner@example.com")
    run(db.users.update_one(
        {"email": "learner@example.com"},
        {"$set": {"login_attempts": 5, "lock_until": datetime.utcnow() - timedelta(minutes=1)}}
    ))

    assert login("learner@example.com", "WrongPass1").status_code == 401
    user = run(db.users.find_one({"email": "learner@example.com"}))
    assert user["login_attempts"] == 1
    assert user["lock_until"] is None

    assert login("learner@example.com").status_code == 200
    user = run(db.users.find_one({"email": "learner@example.com"}))
    assert user["login_attempts"] == 0


def test_suspended_account_cannot_login(db, student, login):
    run(db.users.update_one({"user_id": student["user_id"]}, {"$set": {"enrollment_status": "suspended"}}))
    response = login(student["email"])
    assert response.status_code == 401
    assert "not active" in response.json()["error"]["message"]


def test_login_updates_login_streak(db, student):
    user = run(db.users.find_one({"user_id": student["user_id"]}))
    assert user["login_streak"]["current"] == 1
    assert user["last_login_at"] is not None


def test_refresh_rotates_token(client, db, student):
    old_refresh = student["tokens"]["refresh_token"]

    response = client.post("/api/auth/refresh", json={"refresh_token": old_refresh})
    assert response.status_code == 200
    new_refresh = response.json()["data"]["refresh_token"]
    assert new_refresh != old_refresh
    client.cookies.clear()

    # the old token was removed on rotation
    response = client.post("/api/auth/refresh", json={"refresh_token": old_refresh})
    assert response.status_code == 401

    user = run(db.users.find_one({"user_id": student["user_id"]}))
    assert len(user["refresh_tokens"]) == 1


def test_refresh_rejects_access_token(client, student):
    response = client.post("/api/auth/refresh", json={"refresh_token": student["tokens"]["access_token"]})
    assert response.status_code == 401


def test_logout_revokes_refresh_token(client, db, student):
    response = client.post(
        "/api/auth/logout", headers=student["headers"], json={"refresh_token": student["tokens"]["refresh_token"]}
    )
    assert response.status_code == 200
    user = run(db.users.find_one({"user_id": student["user_id"]}))
    assert user["refresh_tokens"] == []


def test_me_requires_token(client, student):
    assert client.get("/api/auth/me").status_code == 401
    assert client.get("/api/auth/me", headers=bearer("garbage")).status_code == 401
    response = client.get("/api/auth/me", headers=student["headers"])
    assert response.json()["data"]["email"] == student["email"]


def test_password_reset_flow(client, db, student, login):
    response = client.post("/api/auth/forgot-password", json={"email": student["email"]})
    assert response.status_code == 200
    token = run(db.users.find_one({"user_id": student["user_id"]}))["password_reset_token"]

    check = client.get(f"/api/auth/validate-reset-token/{token}")
    assert check.json()["data"]["valid"] is True

    response = client.post("/api/auth/reset-password", json={"token": token, "password": "NewPassw0rd"})
    assert response.status_code == 200

    user = run(db.users.find_one({"user_id": student["user_id"]}))
    assert user["password_reset_token"] is None
    assert user["refresh_tokens"] == []

    assert login(student["email"]).status_code == 401
    assert login(student["email"], "NewPassw0rd").status_code == 200
    assert client.post("/api/auth/reset-password", json={"token": token, "password": "Another1pass"}).status_code == 400


def test_forgot_password_unknown_email_is_generic(client):
    response = client.post("/api/auth/forgot-password", json={"email": "ghost@example.com"})
    assert response.status_code == 200


def test_change_password(client, student, login):
    response = client.post("/api/auth/change-password", headers=student["headers"], json={
        "current_password": "WrongPass1", "new_password": "NewPassw0rd",
    })
    assert response.status_code == 401

    response = client.post("/api/auth/change-password", headers=student["headers"], json={
        "current_password": PASSWORD, "new_password": "NewPassw0rd",
    })
    assert response.status_code == 200
    assert login(student["email"], "NewPassw0rd").status_code == 200


@pytest.fixture()
def throttled(monkeypatch):
    monkeypatch.setattr(limiter, "enabled", True)
    limiter.reset()
    yield
    limiter.reset()


def test_login_is_rate_limited(client, student, login, throttled, monkeypatch):
    monkeypatch.setattr(config, "LOGIN_RATE_LIMIT", "2/minute")
    assert login(student["email"]).status_code == 200
    assert login(student["email"], "WrongPass1").status_code == 401

    blocked = login(student["email"])
    assert blocked.status_code == 429
    body = blocked.json()
    assert body["success"] is False
    assert body["error"]["code"] == "RATE_LIMIT_EXCEEDED"
    assert body["path"] == "/api/auth/login"


def test_register_and_forgot_password_are_rate_limited(client, register, throttled, monkeypatch):
    monkeypatch.setattr(config, "REGISTER_RATE_LIMIT", "1/hour")
    monkeypatch.setattr(config, "PASSWORD_RESET_RATE_LIMIT", "1/hour")

    assert register().status_code == 201
    assert register(username="second", email="second@example.com").status_code == 429

    assert client.post("/api/auth/forgot-password", json={"email": "learner@example.com"}).status_code == 200
    assert client.post("/api/auth/forgot-password", json={"email": "learner@example.com"}).status_code == 429
