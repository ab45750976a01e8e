import logging
from datetime import datetime
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, Field

from eduknit.auth.dependencies import CurrentUser
from eduknit.database import generate_id

logger = logging.getLogger(__name__)


class AuditLog(BaseModel):
    audit_id: str = Field(default_factory=lambda: generate_id("AUD"))
    actor_user_id: str
    role: str  # admin, student, system
    action: str  # create_course, update_user, process_deletion, etc.
    target_type: str  # course, module, lesson, user, deletion_request
    target_id: str
    metadata: dict = {}
    timestamp: datetime = Field(default_factory=datetime.utcnow)


async def log_audit(
    db: AsyncIOMotorDatabase,
    actor: Optional[CurrentUser],
    action: str,
    target_type: str,
    target_id: str,
    metadata: dict = None
):
    """
    Log destructive or important actions for auditability

    Args:
        actor: CurrentUser performing the action (None for scheduled jobs)
        action: Action performed (e.g., 'create_course', 'delete_user')
        target_type: Resource type (e.g., 'course', 'user')
        target_id: ID of the resource
        metadata: Additional context (optional)
    """
    audit_log = AuditLog(
        actor_user_id=actor.user_id if actor else "system",
        role=actor.role if actor else "system",
        action=action,
        target_type=target_type,
        target_id=target_id,
        metadata=metadata or {},
    )
    await db.audit_logs.insert_one(audit_log.dict())
    logger.info("Audit: %s %s %s/%s", audit_log.actor_user_id, action, target_type, target_id)


async def get_audit_trail(
    db: AsyncIOMotorDatabase,
    actor_user_id: str = None,
    target_type: str = None,
    target_id: str = None,
    action: str = None,
    limit: int = 100,
    skip: int = 0
):
    """
    Retrieve audit logs with optional filters, newest first

    Returns:
        (entries, total)
    """
    query = {}

    if actor_user_id:
        query["actor_user_id"] = actor_user_id

    if target_type:
        query["target_type"] = target_type

    if target_id:
        query["target_id"] = target_id

    if action:
        query["action"] = action

    total = await db.audit_logs.count_documents(query)
    cursor = db.audit_logs.find(query, {"_id": 0}).sort("timestamp", -1).skip(skip).limit(limit)
    logs = await cursor.to_list(length=limit)

    return logs, total
