"""
Account lifecycle: registration, verification, login lockout, token rotation
and password management.
"""

import logging
from datetime import datetime, timedelta
from typing import Tuple, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from eduknit import config
from eduknit.analytics.metrics import advance_daily_streak
from eduknit.auth.models import RegisterRequest, AccountStatus, public_user
from eduknit.auth.security import (
    hash_password, verify_password, generate_url_token,
    create_access_token, create_refresh_token, decode_refresh_token
)
from eduknit.database import generate_id
from eduknit.errors import AuthenticationError, ConflictError, ValidationError, NotFoundError

logger = logging.getLogger(__name__)

MAX_STORED_REFRESH_TOKENS = 5


# ==================== USER DOCUMENT ====================

def new_user_document(
    username: str,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    role: str,
    phone_number: Optional[str] = None,
    enrollment_status: str = AccountStatus.INACTIVE.value,
    is_email_verified: bool = False,
) -> dict:
    now = datetime.utcnow()
    return {
        "user_id": generate_id("USR"),
        "username": username,
        "email": email,
        "password_hash": hash_password(password),
        "first_name": first_name,
        "last_name": last_name,
        "phone_number": phone_number,
        "role": role,
        "enrollment_status": enrollment_status,
        "is_email_verified": is_email_verified,
        "email_verification_token": None,
        "email_verification_expires": None,
        "password_reset_token": None,
        "password_reset_expires": None,
        "login_attempts": 0,
        "lock_until": None,
        "refresh_tokens": [],
        "last_login_at": None,
        "login_streak": {"current": 0, "longest": 0, "last_date": None},
        "is_deleted": False,
        "deleted_at": None,
        "deletion_requested_at": None,
        "created_at": now,
        "updated_at": now,
    }


async def ensure_unique_identity(db: AsyncIOMotorDatabase, email: str, username: str):
    if await db.users.find_one({"email": email}):
        raise ConflictError("Email already registered")
    if await db.users.find_one({"username": username}):
        raise ConflictError("Username already taken")


# ==================== REGISTRATION & VERIFICATION ====================

async def register_user(db: AsyncIOMotorDatabase, data: RegisterRequest) -> Tuple[dict, str]:
    """Create an inactive, unverified user. Returns (public user, verification token)"""
    await ensure_unique_identity(db, data.email, data.username)

    user = new_user_document(
        username=data.username,
        email=data.email,
        password=data.password,
        first_name=data.first_name,
        last_name=data.last_name,
        role=data.role.value,
        phone_number=data.phone_number,
    )
    token = generate_url_token()
    user["email_verification_token"] = token
    user["email_verification_expires"] = datetime.utcnow() + timedelta(minutes=config.EMAIL_VERIFICATION_MINUTES)

    await db.users.insert_one(user)
    logger.info("User registered: %s (%s)", user["user_id"], user["role"])
    return public_user(user), token


async def verify_email(db: AsyncIOMotorDatabase, token: str) -> dict:
    user = await db.users.find_one({
        "email_verification_token": token,
        "email_verification_expires": {"$gt": datetime.utcnow()},
    })
    if not user:
        raise ValidationError("Invalid or expired verification token")

    await db.users.update_one(
        {"user_id": user["user_id"]},
        {"$set": {
            "is_email_verified": True,
            "enrollment_status": AccountStatus.ACTIVE.value,
            "email_verification_token": None,
            "email_verification_expires": None,
            "updated_at": datetime.utcnow(),
        }}
    )
    logger.info("Email verified for %s", user["user_id"])
    user.update({"is_email_verified": True, "enrollment_status": AccountStatus.ACTIVE.value})
    return public_user(user)


async def refresh_verification_token(db: AsyncIOMotorDatabase, email: str) -> Optional[Tuple[dict, str]]:
    """New verification token for an unverified user; None when nothing should be sent"""
    user = await db.users.find_one({"email": email, "is_deleted": {"$ne": True}})
    if not user or user.get("is_email_verified"):
        return None

    token = generate_url_token()
    await db.users.update_one(
        {"user_id": user["user_id"]},
        {"$set": {
            "email_verification_token": token,
            "email_verification_expires": datetime.utcnow() + timedelta(minutes=config.EMAIL_VERIFICATION_MINUTES),
        }}
    )
    return user, token


# ==================== LOGIN ====================

def is_locked(user: dict, now: Optional[datetime] = None) -> bool:
    lock_until = user.get("lock_until")
    return bool(lock_until and lock_until > (now or datetime.utcnow()))


async def register_failed_login(db: AsyncIOMotorDatabase, user: dict):
    now = datetime.utcnow()
    lock_until = user.get("lock_until")

    # An expired lock restarts the counter
    if lock_until and lock_until <= now:
        await db.users.update_one(
            {"user_id": user["user_id"]},
            {"$set": {"login_attempts": 1, "lock_until": None}}
        )
        return

    attempts = user.get("login_attempts", 0) + 1
    update = {"login_attempts": attempts}
    if attempts >= config.MAX_LOGIN_ATTEMPTS and not is_locked(user, now):
        update["lock_until"] = now + timedelta(hours=config.LOCK_DURATION_HOURS)
        logger.warning("Account %s locked after %d failed logins", user["user_id"], attempts)

    await db.users.update_one({"user_id": user["user_id"]}, {"$set": update})


async def issue_tokens(db: AsyncIOMotorDatabase, user: dict) -> dict:
    access_token = create_access_token(user)
    refresh_token, jti, expires_at = create_refresh_token(user)

    stored = [t for t in user.get("refresh_tokens", []) if t.get("expires_at", expires_at) > datetime.utcnow()]
    stored.append({"jti": jti, "created_at": datetime.utcnow(), "expires_at": expires_at})
    stored = stored[-MAX_STORED_REFRESH_TOKENS:]

    await db.users.update_one({"user_id": user["user_id"]}, {"$set": {"refresh_tokens": stored}})
    user["refresh_tokens"] = stored

    return {
        "access_token": access_token,
        "refresh_token": refresh_token,
        "token_type": "bearer",
        "expires_in": config.JWT_EXPIRES_MINUTES * 60,
    }


async def authenticate(db: AsyncIOMotorDatabase, email: str, password: str) -> Tuple[dict, dict]:
    """Returns (public user, tokens)"""
    user = await db.users.find_one({"email": email, "is_deleted": {"$ne": True}})
    if not user:
        raise AuthenticationError("Invalid credentials")

    if is_locked(user):
        raise AuthenticationError(
            "Account is temporarily locked due to too many failed login attempts. Please try again later."
        )

    if not user.get("is_email_verified"):
        raise AuthenticationError("Please verify your email before logging in.")

    if user.get("enrollment_status") != AccountStatus.ACTIVE.value:
        raise AuthenticationError("Account is not active. Please contact support.")

    if not verify_password(password, user.get("password_hash")):
        await register_failed_login(db, user)
        raise AuthenticationError("Invalid credentials")

    now = datetime.utcnow()
    login_streak = advance_daily_streak(user.get("login_streak"), now)
    await db.users.update_one(
        {"user_id": user["user_id"]},
        {"$set": {
            "login_attempts": 0,
            "lock_until": None,
            "last_login_at": now,
            "login_streak": login_streak,
        }}
    )
    user.update({"login_attempts": 0, "lock_until": None, "last_login_at": now, "login_streak": login_streak})

    tokens = await issue_tokens(db, user)
    logger.info("User logged in: %s", user["user_id"])
    return public_user(user), tokens


# ==================== REFRESH & LOGOUT ====================

async def rotate_refresh_token(db: AsyncIOMotorDatabase, refresh_token: Optional[str]) -> Tuple[dict, dict]:
    if not refresh_token:
        raise AuthenticationError("Refresh token required")

    payload = decode_refresh_token(refresh_token)
    user = await db.users.find_one({"user_id": payload["sub"], "is_deleted": {"$ne": True}})
    if not user:
        raise AuthenticationError("Invalid refresh token")

    stored = user.get("refresh_tokens", [])
    if not any(t.get("jti") == payload.get("jti") for t in stored):
        raise AuthenticationError("Invalid refresh token")

    user["refresh_tokens"] = [t for t in stored if t.get("jti") != payload.get("jti")]
    tokens = await issue_tokens(db, user)
    return public_user(user), tokens


async def revoke_refresh_token(db: AsyncIOMotorDatabase, user_id: str, refresh_token: Optional[str]):
    if not refresh_token:
        return
    try:
        payload = decode_refresh_token(refresh_token)
    except AuthenticationError:
        return
    await db.users.update_one(
        {"user_id": user_id},
        {"$pull": {"refresh_tokens": {"jti": payload.get("jti")}}}
    )


# ==================== PASSWORDS ====================

async def create_password_reset(db: AsyncIOMotorDatabase, email: str) -> Optional[Tuple[dict, str]]:
    user = await db.users.find_one({"email": email, "is_deleted": {"$ne": True}})
    if not user:
        return None

    token = generate_url_token()
    await db.users.update_one(
        {"user_id": user["user_id"]},
        {"$set": {
            "password_reset_token": token,
            "password_reset_expires": datetime.utcnow() + timedelta(minutes=config.PASSWORD_RESET_MINUTES),
        }}
    )
    logger.info("Password reset requested for %s", user["user_id"])
    return user, token


async def find_by_reset_token(db: AsyncIOMotorDatabase, token: str) -> dict:
    user = await db.users.find_one({
        "password_reset_token": token,
        "password_reset_expires": {"$gt": datetime.utcnow()},
    })
    if not user:
        raise ValidationError("Invalid or expired reset token")
    return user


async def reset_password(db: AsyncIOMotorDatabase, token: str, password: str):
    user = await find_by_reset_token(db, token)
    await db.users.update_one(
        {"user_id": user["user_id"]},
        {"$set": {
            "password_hash": hash_password(password),
            "password_reset_token": None,
            "password_reset_expires": None,
            "refresh_tokens": [],
            "login_attempts": 0,
            "lock_until": None,
            "updated_at": datetime.utcnow(),
        }}
    )
    logger.info("Password reset completed for %s", user["user_id"])


async def change_password(db: AsyncIOMotorDatabase, user_id: str, current_password: str, new_password: str):
    user = await db.users.find_one({"user_id": user_id})
    if not user:
        raise NotFoundError("User")
    if not verify_password(current_password, user.get("password_hash")):
        raise AuthenticationError("Current password is incorrect")

    await db.users.update_one(
        {"user_id": user_id},
        {"$set": {"password_hash": hash_password(new_password), "updated_at": datetime.utcnow()}}
    )
    logger.info("Password changed for %s", user_id)
