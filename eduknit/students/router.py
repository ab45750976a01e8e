"""
STUDENT PROFILE ROUTER
File: eduknit/students/router.py
"""

from fastapi import APIRouter, Depends, File, UploadFile
from motor.motor_asyncio import AsyncIOMotorDatabase

from eduknit.auth.dependencies import CurrentUser, get_current_user
from eduknit.auth.models import public_user
from eduknit.database import get_db
from eduknit.errors import success
from eduknit.students import service
from eduknit.students.database import get_or_create_profile
from eduknit.students.models import ProfileUpdate

router = APIRouter(prefix="/api/students", tags=["Students"])


@router.get("/profile")
async def get_profile(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Get the caller's profile (created on first access)"""
    profile = await get_or_create_profile(db, current_user.user_id, current_user.user.get("created_at"))
    return success({"user": public_user(current_user.user), "profile": profile}, "Profile retrieved")


@router.put("/profile")
async def update_profile(
    data: ProfileUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    profile = await service.update_profile(db, current_user.user_id, data)
    return success(profile, "Profile updated successfully")


@router.get("/profile/completeness")
async def profile_completeness(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    data = await service.profile_completeness(db, current_user.user_id)
    return success(data, "Profile completeness retrieved")


@router.post("/profile/photo")
async def upload_photo(
    photo: UploadFile = File(...),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    profile = await service.save_profile_photo(db, current_user.user_id, photo)
    return success(profile["profile_photo"], "Profile photo uploaded")


@router.delete("/profile/photo")
async def delete_photo(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await service.delete_profile_photo(db, current_user.user_id)
    return success(None, "Profile photo removed")


@router.get("/dashboard")
async def student_dashboard(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    data = await service.student_dashboard(db, current_user.user)
    return success(data, "Student dashboard retrieved")
