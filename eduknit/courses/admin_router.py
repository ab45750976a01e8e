"""
ADMIN CATALOG ROUTER
File: eduknit/courses/admin_router.py

Course / module / lesson management. Admin role only; every mutation is audited.
Deletes are soft (is_active=False).
"""

import logging
from fastapi import APIRouter, Depends, Query
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional

from eduknit.admin.audit import log_audit
from eduknit.auth.dependencies import CurrentUser, require_admin
from eduknit.courses.database import (
    create_course, get_course, list_courses, update_course, deactivate_course,
    create_module, get_module, list_modules, update_module, deactivate_module,
    create_lesson, get_lesson, list_lessons, update_lesson, deactivate_lesson,
    get_course_stats
)
from eduknit.courses.models import (
    CourseCreate, CourseUpdate, ModuleCreate, ModuleUpdate, LessonCreate, LessonUpdate
)
from eduknit.database import get_db, model_document
from eduknit.errors import NotFoundError, ValidationError, success, paginated

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/courses", tags=["Admin Courses"])


# ==================== COURSES ====================

@router.get("")
async def admin_list_courses(
    search: Optional[str] = None,
    include_inactive: bool = True,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: CurrentUser = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    courses, total = await list_courses(db, search=search, page=page, limit=limit, include_inactive=include_inactive)
    return paginated(courses, page, limit, total, "Courses retrieved successfully")


@router.post("", status_code=201)
async def admin_create_course(
    data: CourseCreate,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    course = await create_course(db, model_document(data), admin.user_id)
    await log_audit(db, admin, "create_course", "course", course["course_id"], {"title": course["title"]})
    return success(course, "Course created successfully")


@router.put("/{course_id}")
async def admin_update_course(
    course_id: str,
    data: CourseUpdate,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    updates = model_document(data, exclude_unset=True)
    if not updates:
        raise ValidationError("No fields to update")

    course = await update_course(db, course_id, updates, admin.user_id)
    if not course:
        raise NotFoundError("Course")
    await log_audit(db, admin, "update_course", "course", course_id, {"fields": sorted(updates)})
    return success(course, "Course updated successfully")


@router.delete("/{course_id}")
async def admin_delete_course(
    course_id: str,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    if not await deactivate_course(db, course_id, admin.user_id):
        raise NotFoundError("Course")
    await log_audit(db, admin, "delete_course", "course", course_id)
    return success({"course_id": course_id, "is_active": False}, "Course deactivated")


@router.get("/{course_id}/stats")
async def admin_course_stats(
    course_id: str,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    course = await get_course(db, course_id)
    if not course:
        raise NotFoundError("Course")
    stats = await get_course_stats(db, course_id)
    stats["title"] = course["title"]
    stats["total_modules"] = course.get("total_modules", 0)
    stats["total_lessons"] = course.get("total_lessons", 0)
    return success(stats, "Course statistics retrieved")


# ==================== MODULES ====================

@router.get("/{course_id}/modules")
async def admin_list_modules(
    course_id: str,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    modules = await list_modules(db, course_id, include_inactive=True)
    return success(modules, "Modules retrieved")


@router.post("/{course_id}/modules", status_code=201)
async def admin_create_module(
    course_id: str,
    data: ModuleCreate,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    if not await get_course(db, course_id):
        raise NotFoundError("Course")
    module = await create_module(db, course_id, model_document(data), admin.user_id)
    await log_audit(db, admin, "create_module", "module", module["module_id"], {"course_id": course_id})
    return success(module, "Module created successfully")


@router.put("/modules/{module_id}")
async def admin_update_module(
    module_id: str,
    data: ModuleUpdate,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    updates = model_document(data, exclude_unset=True)
    if not updates:
        raise ValidationError("No fields to update")
    module = await update_module(db, module_id, updates)
    if not module:
        raise NotFoundError("Module")
    await log_audit(db, admin, "update_module", "module", module_id, {"fields": sorted(updates)})
    return success(module, "Module updated successfully")


@router.delete("/modules/{module_id}")
async def admin_delete_module(
    module_id: str,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    if not await deactivate_module(db, module_id):
        raise NotFoundError("Module")
    await log_audit(db, admin, "delete_module", "module", module_id)
    return success({"module_id": module_id, "is_active": False}, "Module deactivated")


# ==================== LESSONS ====================

@router.get("/modules/{module_id}/lessons")
async def admin_list_lessons(
    module_id: str,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    lessons = await list_lessons(db, module_id, include_inactive=True)
    return success(lessons, "Lessons retrieved")


@router.post("/modules/{module_id}/lessons", status_code=201)
async def admin_create_lesson(
    module_id: str,
    data: LessonCreate,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    module = await get_module(db, module_id)
    if not module:
        raise NotFoundError("Module")
    lesson = await create_lesson(db, module, model_document(data), admin.user_id)
    await log_audit(db, admin, "create_lesson", "lesson", lesson["lesson_id"], {"module_id": module_id})
    return success(lesson, "Lesson created successfully")


@router.get("/lessons/{lesson_id}")
async def admin_get_lesson(
    lesson_id: str,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    lesson = await get_lesson(db, lesson_id)
    if not lesson:
        raise NotFoundError("Lesson")
    return success(lesson, "Lesson retrieved")


@router.put("/lessons/{lesson_id}")
async def admin_update_lesson(
    lesson_id: str,
    data: LessonUpdate,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    updates = model_document(data, exclude_unset=True)
    if not updates:
        raise ValidationError("No fields to update")
    lesson = await update_lesson(db, lesson_id, updates)
    if not lesson:
        raise NotFoundError("Lesson")
    await log_audit(db, admin, "update_lesson", "lesson", lesson_id, {"fields": sorted(updates)})
    return success(lesson, "Lesson updated successfully")


@router.delete("/lessons/{lesson_id}")
async def admin_delete_lesson(
    lesson_id: str,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    if not await deactivate_lesson(db, lesson_id):
        raise NotFoundError("Lesson")
    await log_audit(db, admin, "delete_lesson", "lesson", lesson_id)
    return success({"lesson_id": lesson_id, "is_active": False}, "Lesson deactivated")
