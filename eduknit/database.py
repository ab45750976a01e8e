"""
Database Session Management
MongoDB connection lifecycle, ID helpers and index setup
"""

import logging
import uuid
from enum import Enum
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from eduknit import config

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Manages MongoDB connection lifecycle"""

    def __init__(self):
        self.client: Optional[AsyncIOMotorClient] = None
        self.db: Optional[AsyncIOMotorDatabase] = None

    def connect(self):
        """Initialize MongoDB connection (no-op when a database is already attached)"""
        if self.db is not None:
            return
        if not config.MONGO_URL:
            raise RuntimeError("MONGO_URL environment variable required")

        self.client = AsyncIOMotorClient(config.MONGO_URL)
        self.db = self.client[config.MONGO_DB_NAME]
        logger.info("MongoDB connected (database=%s)", config.MONGO_DB_NAME)

    def disconnect(self):
        """Close MongoDB connection"""
        if self.client:
            self.client.close()
            logger.info("MongoDB disconnected")
        self.client = None
        self.db = None

    def get_database(self) -> AsyncIOMotorDatabase:
        """Get database instance for dependency injection"""
        if self.db is None:
            raise RuntimeError("Database not initialized. Call connect() first.")
        return self.db


# Global database manager
db_manager = DatabaseManager()


async def get_db() -> AsyncIOMotorDatabase:
    """FastAPI dependency for database access"""
    return db_manager.get_database()


# ==================== HELPERS ====================

def generate_id(prefix: str) -> str:
    """Generate unique business ID with prefix"""
    return f"{prefix}_{uuid.uuid4().hex[:12].upper()}"


def serialize_mongo(doc: Optional[dict]) -> Optional[dict]:
    """Drop the internal ObjectId so documents are JSON friendly"""
    if doc is None:
        return None
    doc.pop("_id", None)
    return doc


def to_mongo(value):
    """Plain BSON-friendly values (enum members stored by value)"""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {key: to_mongo(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_mongo(item) for item in value]
    return value


def model_document(model, exclude_unset: bool = False) -> dict:
    return to_mongo(model.dict(exclude_unset=exclude_unset))


# ==================== DATABASE INDEXES ====================

async def create_indexes(db: AsyncIOMotorDatabase):
    """Create MongoDB indexes for performance and integrity"""

    # Users
    await db.users.create_index("user_id", unique=True)
    await db.users.create_index("email", unique=True)
    await db.users.create_index("username", unique=True)
    await db.users.create_index("role")
    await db.users.create_index("enrollment_status")

    # Student profiles
    await db.student_profiles.create_index("user_id", unique=True)
    await db.student_profiles.create_index([("gamification.total_points", DESCENDING)])

    # Catalog
    await db.courses.create_index("course_id", unique=True)
    await db.courses.create_index("slug", unique=True)
    await db.courses.create_index([("category", ASCENDING), ("level", ASCENDING)])
    await db.courses.create_index([("is_active", ASCENDING), ("created_at", DESCENDING)])
    await db.course_modules.create_index("module_id", unique=True)
    await db.course_modules.create_index([("course_id", ASCENDING), ("order_index", ASCENDING)])
    await db.course_lessons.create_index("lesson_id", unique=True)
    await db.course_lessons.create_index([("module_id", ASCENDING), ("order_index", ASCENDING)])
    await db.course_lessons.create_index([("course_id", ASCENDING), ("is_active", ASCENDING)])

    # Enrollments
    await db.enrollments.create_index("enrollment_id", unique=True)
    await db.enrollments.create_index([("user_id", ASCENDING), ("course_id", ASCENDING)], unique=True)
    await db.enrollments.create_index([("user_id", ASCENDING), ("status", ASCENDING)])
    await db.enrollments.create_index([("course_id", ASCENDING), ("status", ASCENDING)])
    await db.enrollments.create_index("certificate_id")

    # Progress
    await db.lesson_completions.create_index("completion_id", unique=True)
    await db.lesson_completions.create_index([("user_id", ASCENDING), ("lesson_id", ASCENDING)], unique=True)
    await db.lesson_completions.create_index([("user_id", ASCENDING), ("course_id", ASCENDING)])
    await db.lesson_completions.create_index([("completed_at", DESCENDING)])

    # Quiz attempts
    await db.quiz_attempts.create_index("attempt_id", unique=True)
    await db.quiz_attempts.create_index([("user_id", ASCENDING), ("lesson_id", ASCENDING), ("attempt_number", DESCENDING)])
    await db.quiz_attempts.create_index([("lesson_id", ASCENDING), ("status", ASCENDING)])

    # Privacy / audit / integrations
    await db.audit_logs.create_index([("actor_user_id", ASCENDING), ("timestamp", DESCENDING)])
    await db.audit_logs.create_index([("target_type", ASCENDING), ("target_id", ASCENDING)])
    await db.deletion_requests.create_index("request_id", unique=True)
    await db.deletion_requests.create_index([("status", ASCENDING), ("scheduled_for", ASCENDING)])
    await db.integrations.create_index([("user_id", ASCENDING), ("platform", ASCENDING)], unique=True)

    logger.info("MongoDB indexes created")
