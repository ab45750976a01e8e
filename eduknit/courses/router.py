"""
COURSE CATALOG ROUTER
File: eduknit/courses/router.py

Public catalog browsing plus authenticated lesson detail.
"""

from fastapi import APIRouter, Depends, Query
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional

from eduknit.auth.dependencies import CurrentUser, get_current_user
from eduknit.courses.database import (
    get_course_by_id_or_slug, list_courses, list_modules,
    get_module, list_lessons, get_lesson, public_lesson
)
from eduknit.courses.models import CourseCategory, CourseLevel
from eduknit.database import get_db
from eduknit.errors import NotFoundError, success, paginated

router = APIRouter(prefix="/api/courses", tags=["Courses"])


@router.get("")
async def browse_courses(
    category: Optional[CourseCategory] = None,
    level: Optional[CourseLevel] = None,
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """List active courses with filters and search"""
    courses, total = await list_courses(
        db,
        category=category.value if category else None,
        level=level.value if level else None,
        search=search,
        page=page,
        limit=limit,
    )
    return paginated(courses, page, limit, total, "Courses retrieved successfully")


@router.get("/modules/{module_id}/lessons")
async def module_lessons(module_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    module = await get_module(db, module_id)
    if not module or not module.get("is_active", True):
        raise NotFoundError("Module")

    lessons = await list_lessons(db, module_id)
    summaries = []
    for lesson in lessons:
        summaries.append({
            "lesson_id": lesson["lesson_id"],
            "title": lesson["title"],
            "description": lesson.get("description", ""),
            "type": lesson.get("type"),
            "order_index": lesson.get("order_index", 0),
            "estimated_duration": lesson.get("estimated_duration", 0),
            "is_required": lesson.get("is_required", True),
            "prerequisites": lesson.get("prerequisites", []),
            "has_quiz": bool(lesson.get("quiz")),
        })
    return success({"module": module, "lessons": summaries, "count": len(summaries)}, "Lessons retrieved")


@router.get("/lessons/{lesson_id}")
async def lesson_detail(
    lesson_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Lesson content without quiz answers"""
    lesson = await get_lesson(db, lesson_id)
    if not lesson or not lesson.get("is_active", True):
        raise NotFoundError("Lesson")

    completion = await db.lesson_completions.find_one(
        {"user_id": current_user.user_id, "lesson_id": lesson_id}, {"_id": 0}
    )
    data = public_lesson(lesson)
    data["is_completed"] = completion is not None
    data["completed_at"] = completion["completed_at"] if completion else None
    return success(data, "Lesson retrieved")


@router.get("/{course_key}")
async def course_detail(course_key: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    """Get a course by id or slug"""
    course = await get_course_by_id_or_slug(db, course_key)
    if not course or not course.get("is_active", True):
        raise NotFoundError("Course")
    return success(course, "Course retrieved successfully")


@router.get("/{course_id}/modules")
async def course_modules(course_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    course = await get_course_by_id_or_slug(db, course_id)
    if not course or not course.get("is_active", True):
        raise NotFoundError("Course")

    modules = await list_modules(db, course["course_id"])
    for module in modules:
        module["lesson_count"] = await db.course_lessons.count_documents(
            {"module_id": module["module_id"], "is_active": True}
        )
    return success({"course_id": course["course_id"], "modules": modules, "count": len(modules)}, "Modules retrieved")
