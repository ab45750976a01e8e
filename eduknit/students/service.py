"""
Student profile services: section updates, photo storage and dashboard summary
"""

import asyncio
import functools
import logging
import uuid
from datetime import datetime
from pathlib import Path

from fastapi import UploadFile
from motor.motor_asyncio import AsyncIOMotorDatabase

from eduknit import config
from eduknit.analytics.dashboard import build_realtime_dashboard
from eduknit.analytics.service import load_learner_activity
from eduknit.database import to_mongo
from eduknit.errors import ValidationError
from eduknit.students.database import (
    get_or_create_profile, update_profile_fields, calculate_completeness, missing_profile_sections
)
from eduknit.students.models import ProfileUpdate

logger = logging.getLogger(__name__)

PHOTO_SUBDIR = "profile-photos"
SECTIONS = ("contact_info", "address", "academic_info", "professional_info", "learning_preferences")


def photo_directory() -> Path:
    directory = Path(config.UPLOADS_DIR) / PHOTO_SUBDIR
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def flatten_updates(prefix: str, values: dict) -> dict:
    """Dotted $set paths so partial sections merge into stored values"""
    flat = {}
    for key, value in values.items():
        path = f"{prefix}.{key}"
        if isinstance(value, dict):
            flat.update(flatten_updates(path, value))
        else:
            flat[path] = to_mongo(value)
    return flat


async def update_profile(db: AsyncIOMotorDatabase, user_id: str, data: ProfileUpdate) -> dict:
    await get_or_create_profile(db, user_id)
    provided = data.dict(exclude_unset=True)

    updates = {}
    for section in SECTIONS:
        if provided.get(section) is not None:
            updates.update(flatten_updates(section, provided[section]))

    if provided.get("onboarding_completed") is not None:
        updates["metadata.onboarding_completed"] = provided["onboarding_completed"]
        if provided["onboarding_completed"]:
            updates["metadata.onboarding_completed_date"] = datetime.utcnow()
    if provided.get("profile_setup_step") is not None:
        updates["metadata.profile_setup_step"] = provided["profile_setup_step"]

    if not updates:
        raise ValidationError("No profile fields to update")

    profile = await update_profile_fields(db, user_id, updates)
    logger.info("Profile updated for %s (%d fields)", user_id, len(updates))
    return profile


async def profile_completeness(db: AsyncIOMotorDatabase, user_id: str) -> dict:
    profile = await get_or_create_profile(db, user_id)
    return {
        "completeness": calculate_completeness(profile),
        "missing": missing_profile_sections(profile),
    }


# ==================== PHOTO ====================

def _write_bytes(target: Path, content: bytes):
    with target.open("wb") as buffer:
        buffer.write(content)


def remove_photo_file(filename: str):
    if not filename:
        return
    target = Path(config.UPLOADS_DIR) / PHOTO_SUBDIR / filename
    try:
        target.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Could not remove old profile photo %s: %s", target, e)


async def save_profile_photo(db: AsyncIOMotorDatabase, user_id: str, upload: UploadFile) -> dict:
    extension = config.ALLOWED_PHOTO_TYPES.get(upload.content_type)
    if not extension:
        raise ValidationError("Only JPEG, PNG, GIF and WebP images are allowed")

    content = await upload.read(config.MAX_PHOTO_BYTES + 1)
    if not content:
        raise ValidationError("Uploaded file is empty")
    if len(content) > config.MAX_PHOTO_BYTES:
        raise ValidationError(f"Photo must be at most {config.MAX_PHOTO_BYTES // (1024 * 1024)} MB")

    profile = await get_or_create_profile(db, user_id)
    previous = (profile.get("profile_photo") or {}).get("filename")

    filename = f"{user_id}-{uuid.uuid4().hex[:8]}{extension}"
    target = photo_directory() / filename
    loop = asyncio.get_running_loop()
    await loop.run_in_executor(None, functools.partial(_write_bytes, target, content))

    photo = {
        "url": f"/uploads/{PHOTO_SUBDIR}/{filename}",
        "filename": filename,
        "upload_date": datetime.utcnow(),
        "size": len(content),
        "mime_type": upload.content_type,
    }
    profile = await update_profile_fields(db, user_id, {"profile_photo": photo})
    if previous and previous != filename:
        await loop.run_in_executor(None, remove_photo_file, previous)

    logger.info("Profile photo uploaded for %s (%d bytes)", user_id, len(content))
    return profile


async def delete_profile_photo(db: AsyncIOMotorDatabase, user_id: str) -> dict:
    profile = await get_or_create_profile(db, user_id)
    filename = (profile.get("profile_photo") or {}).get("filename")
    if not filename:
        raise ValidationError("No profile photo to delete")

    loop = asyncio.get_running_loop()
    await loop.run_in_executor(None, remove_photo_file, filename)
    empty = {"url": None, "filename": None, "upload_date": None, "size": None, "mime_type": None}
    return await update_profile_fields(db, user_id, {"profile_photo": empty})


# ==================== DASHBOARD ====================

async def student_dashboard(db: AsyncIOMotorDatabase, user: dict) -> dict:
    activity = await load_learner_activity(db, user["user_id"], user)
    dashboard = build_realtime_dashboard(activity)
    profile = activity["profile"]
    return {
        "student": {
            "user_id": user["user_id"],
            "username": user.get("username"),
            "first_name": user.get("first_name"),
            "last_name": user.get("last_name"),
            "profile_photo": (profile.get("profile_photo") or {}).get("url"),
            "profile_completeness": calculate_completeness(profile),
        },
        "metrics": dashboard["metrics"],
        "current_courses": dashboard["active_learning_paths"],
        "badges": profile.get("gamification", {}).get("badges", []),
        "notifications": dashboard["notifications"],
    }
