import re
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING
from datetime import datetime
from typing import List, Optional, Dict, Any, Tuple

from eduknit.database import generate_id, serialize_mongo
from eduknit.quizzes.grading import public_quiz

# ==================== HELPERS ====================

def slugify(title: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")
    return slug or "course"

def is_unlocked(item: dict, completed_ids) -> bool:
    """First item (order_index 0) or every prerequisite completed"""
    if item.get("order_index", 0) == 0:
        return True
    return all(prereq in completed_ids for prereq in item.get("prerequisites", []))

def public_lesson(lesson: dict) -> dict:
    """Lesson view safe for learners (quiz answers stripped)"""
    lesson = serialize_mongo(dict(lesson))
    lesson["has_quiz"] = bool(lesson.get("quiz"))
    lesson["quiz"] = public_quiz(lesson.get("quiz"))
    return lesson

# ==================== COURSE CRUD ====================

async def unique_slug(db: AsyncIOMotorDatabase, title: str, exclude_course_id: str = None) -> str:
    base = slugify(title)
    slug = base
    counter = 2
    while True:
        query = {"slug": slug}
        if exclude_course_id:
            query["course_id"] = {"$ne": exclude_course_id}
        if not await db.courses.find_one(query):
            return slug
        slug = f"{base}-{counter}"
        counter += 1

async def create_course(db: AsyncIOMotorDatabase, course_data: dict, creator_id: str) -> dict:
    now = datetime.utcnow()
    course = {
        "course_id": generate_id("CRS"),
        **course_data,
        "slug": await unique_slug(db, course_data["title"]),
        "total_modules": 0,
        "total_lessons": 0,
        "created_by": creator_id,
        "updated_by": creator_id,
        "created_at": now,
        "updated_at": now,
    }
    await db.courses.insert_one(course)
    return serialize_mongo(course)

async def get_course(db: AsyncIOMotorDatabase, course_id: str) -> Optional[dict]:
    """Get course by ID"""
    return await db.courses.find_one({"course_id": course_id}, {"_id": 0})

async def get_course_by_id_or_slug(db: AsyncIOMotorDatabase, key: str) -> Optional[dict]:
    return await db.courses.find_one(
        {"$or": [{"course_id": key}, {"slug": key}]},
        {"_id": 0}
    )

async def list_courses(
    db: AsyncIOMotorDatabase,
    category: Optional[str] = None,
    level: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 12,
    include_inactive: bool = False,
) -> Tuple[List[dict], int]:
    query: Dict[str, Any] = {}
    if not include_inactive:
        query["is_active"] = True
    if category:
        query["category"] = category
    if level:
        query["level"] = level
    if search:
        pattern = {"$regex": re.escape(search.strip()), "$options": "i"}
        query["$or"] = [{"title": pattern}, {"description": pattern}, {"skills": pattern}]

    total = await db.courses.count_documents(query)
    cursor = (
        db.courses.find(query, {"_id": 0})
        .sort("created_at", DESCENDING)
        .skip((page - 1) * limit)
        .limit(limit)
    )
    courses = await cursor.to_list(length=limit)
    return courses, total

async def update_course(db: AsyncIOMotorDatabase, course_id: str, updates: dict, updated_by: str) -> Optional[dict]:
    if "title" in updates:
        updates["slug"] = await unique_slug(db, updates["title"], exclude_course_id=course_id)
    updates["updated_by"] = updated_by
    updates["updated_at"] = datetime.utcnow()
    result = await db.courses.update_one({"course_id": course_id}, {"$set": updates})
    if result.matched_count == 0:
        return None
    return await get_course(db, course_id)

async def deactivate_course(db: AsyncIOMotorDatabase, course_id: str, updated_by: str) -> bool:
    result = await db.courses.update_one(
        {"course_id": course_id},
        {"$set": {"is_active": False, "updated_by": updated_by, "updated_at": datetime.utcnow()}}
    )
    return result.matched_count > 0

async def refresh_course_counters(db: AsyncIOMotorDatabase, course_id: str):
    """Keep total_modules / total_lessons in line with active children"""
    total_modules = await db.course_modules.count_documents({"course_id": course_id, "is_active": True})
    total_lessons = await db.course_lessons.count_documents({"course_id": course_id, "is_active": True})
    await db.courses.update_one(
        {"course_id": course_id},
        {"$set": {"total_modules": total_modules, "total_lessons": total_lessons}}
    )

# ==================== MODULE CRUD ====================

async def create_module(db: AsyncIOMotorDatabase, course_id: str, module_data: dict, creator_id: str) -> dict:
    now = datetime.utcnow()
    module = {
        "module_id": generate_id("MOD"),
        "course_id": course_id,
        **module_data,
        "created_by": creator_id,
        "created_at": now,
        "updated_at": now,
    }
    await db.course_modules.insert_one(module)
    await refresh_course_counters(db, course_id)
    return serialize_mongo(module)

async def get_module(db: AsyncIOMotorDatabase, module_id: str) -> Optional[dict]:
    return await db.course_modules.find_one({"module_id": module_id}, {"_id": 0})

async def list_modules(db: AsyncIOMotorDatabase, course_id: str, include_inactive: bool = False) -> List[dict]:
    query = {"course_id": course_id}
    if not include_inactive:
        query["is_active"] = True
    cursor = db.course_modules.find(query, {"_id": 0}).sort("order_index", ASCENDING)
    return await cursor.to_list(length=None)

async def update_module(db: AsyncIOMotorDatabase, module_id: str, updates: dict) -> Optional[dict]:
    updates["updated_at"] = datetime.utcnow()
    result = await db.course_modules.update_one({"module_id": module_id}, {"$set": updates})
    if result.matched_count == 0:
        return None
    module = await get_module(db, module_id)
    await refresh_course_counters(db, module["course_id"])
    return module

async def deactivate_module(db: AsyncIOMotorDatabase, module_id: str) -> bool:
    module = await get_module(db, module_id)
    if not module:
        return False
    now = datetime.utcnow()
    await db.course_modules.update_one({"module_id": module_id}, {"$set": {"is_active": False, "updated_at": now}})
    await db.course_lessons.update_many({"module_id": module_id}, {"$set": {"is_active": False, "updated_at": now}})
    await refresh_course_counters(db, module["course_id"])
    return True

# ==================== LESSON CRUD ====================

async def create_lesson(db: AsyncIOMotorDatabase, module: dict, lesson_data: dict, creator_id: str) -> dict:
    now = datetime.utcnow()
    lesson = {
        "lesson_id": generate_id("LSN"),
        "module_id": module["module_id"],
        "course_id": module["course_id"],
        **lesson_data,
        "created_by": creator_id,
        "created_at": now,
        "updated_at": now,
    }
    await db.course_lessons.insert_one(lesson)
    await refresh_course_counters(db, module["course_id"])
    return serialize_mongo(lesson)

async def get_lesson(db: AsyncIOMotorDatabase, lesson_id: str) -> Optional[dict]:
    return await db.course_lessons.find_one({"lesson_id": lesson_id}, {"_id": 0})

async def list_lessons(db: AsyncIOMotorDatabase, module_id: str, include_inactive: bool = False) -> List[dict]:
    query = {"module_id": module_id}
    if not include_inactive:
        query["is_active"] = True
    cursor = db.course_lessons.find(query, {"_id": 0}).sort("order_index", ASCENDING)
    return await cursor.to_list(length=None)

async def update_lesson(db: AsyncIOMotorDatabase, lesson_id: str, updates: dict) -> Optional[dict]:
    updates["updated_at"] = datetime.utcnow()
    result = await db.course_lessons.update_one({"lesson_id": lesson_id}, {"$set": updates})
    if result.matched_count == 0:
        return None
    lesson = await get_lesson(db, lesson_id)
    await refresh_course_counters(db, lesson["course_id"])
    return lesson

async def deactivate_lesson(db: AsyncIOMotorDatabase, lesson_id: str) -> bool:
    lesson = await get_lesson(db, lesson_id)
    if not lesson:
        return False
    await db.course_lessons.update_one(
        {"lesson_id": lesson_id},
        {"$set": {"is_active": False, "updated_at": datetime.utcnow()}}
    )
    await refresh_course_counters(db, lesson["course_id"])
    return True

# ==================== STATS ====================

async def get_course_stats(db: AsyncIOMotorDatabase, course_id: str) -> dict:
    pipeline = [
        {"$match": {"course_id": course_id}},
        {"$group": {
            "_id": "$status",
            "count": {"$sum": 1},
            "avg_progress": {"$avg": "$progress.total_progress"},
        }},
    ]
    by_status = {}
    total = 0
    weighted_progress = 0.0
    async for row in db.enrollments.aggregate(pipeline):
        by_status[row["_id"]] = row["count"]
        total += row["count"]
        weighted_progress += (row.get("avg_progress") or 0) * row["count"]

    completions = await db.lesson_completions.count_documents({"course_id": course_id})
    return {
        "course_id": course_id,
        "total_enrollments": total,
        "enrollments_by_status": by_status,
        "average_progress": round(weighted_progress / total, 2) if total else 0,
        "lesson_completions": completions,
    }
