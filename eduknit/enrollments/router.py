"""
ENROLLMENT ROUTER
File: eduknit/enrollments/router.py

Enroll, list my courses, enrolled course detail and status changes.
"""

from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional

from eduknit.auth.dependencies import CurrentUser, get_current_user
from eduknit.courses.database import get_course
from eduknit.database import get_db
from eduknit.enrollments import service
from eduknit.enrollments.database import get_enrollment, is_enrollment_active
from eduknit.enrollments.models import EnrollmentCreate, EnrollmentStatus
from eduknit.errors import NotFoundError, success

router = APIRouter(prefix="/api/enrollments", tags=["Enrollments"])


@router.post("", status_code=201)
async def enroll_endpoint(
    data: EnrollmentCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Enroll in a course"""
    result = await service.enroll(db, current_user.user_id, data.course_id, data.source.value)
    return success(result, "Enrolled successfully")


@router.get("/my-courses")
async def get_my_courses(
    status: Optional[EnrollmentStatus] = None,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Get all enrolled courses for user"""
    courses = await service.my_courses(db, current_user.user_id, status.value if status else None)
    return success({"enrollments": courses, "count": len(courses)}, "Enrolled courses retrieved")


@router.get("/check/{course_id}")
async def check_enrollment(
    course_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Lets the frontend decide between "Enroll" and "Continue" """
    course = await get_course(db, course_id)
    if not course:
        raise NotFoundError("Course")
    enrollment = await get_enrollment(db, current_user.user_id, course_id)
    return success({
        "course_id": course_id,
        "is_enrolled": enrollment is not None and enrollment["status"] != EnrollmentStatus.CANCELLED.value,
        "is_active": bool(enrollment and is_enrollment_active(enrollment)),
        "status": enrollment["status"] if enrollment else None,
        "enrollment_id": enrollment["enrollment_id"] if enrollment else None,
        "can_enroll": course.get("is_active", True) and (
            enrollment is None or enrollment["status"] == EnrollmentStatus.CANCELLED.value
        ),
    }, "Enrollment status retrieved")


@router.get("/courses/{course_id}")
async def enrolled_course_detail(
    course_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    data = await service.enrolled_course_detail(db, current_user.user_id, course_id)
    return success(data, "Course details retrieved")


@router.post("/courses/{course_id}/pause")
async def pause_enrollment(
    course_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    enrollment = await service.change_status(db, current_user.user_id, course_id, "pause")
    return success(enrollment, "Enrollment paused")


@router.post("/courses/{course_id}/resume")
async def resume_enrollment(
    course_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    enrollment = await service.change_status(db, current_user.user_id, course_id, "resume")
    return success(enrollment, "Enrollment resumed")


@router.post("/courses/{course_id}/drop")
async def drop_enrollment(
    course_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    enrollment = await service.change_status(db, current_user.user_id, course_id, "drop")
    return success(enrollment, "Enrollment cancelled")
