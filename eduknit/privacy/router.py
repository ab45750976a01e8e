"""
PRIVACY ROUTER
File: eduknit/privacy/router.py

Privacy settings, consent, data export and account deletion.
Admin review endpoints live under /api/privacy/admin.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional

from eduknit import config
from eduknit.admin.audit import log_audit, get_audit_trail
from eduknit.auth.dependencies import CurrentUser, get_current_user, require_admin
from eduknit.database import get_db
from eduknit.errors import success, paginated
from eduknit.integrations.mailer import send_deletion_scheduled_email
from eduknit.privacy import service
from eduknit.privacy.models import (
    DeletionStatus, PrivacySettingsUpdate, ConsentUpdate, DeletionRequestCreate,
    DeletionCancel, DeletionReview, ReviewAction
)

router = APIRouter(prefix="/api/privacy", tags=["Privacy"])


# ==================== SETTINGS ====================

@router.get("/settings")
async def get_settings(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    settings = await service.get_privacy_settings(db, current_user.user_id)
    return success(settings, "Privacy settings retrieved")


@router.put("/settings")
async def update_settings(
    data: PrivacySettingsUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    settings = await service.update_privacy_settings(db, current_user.user_id, data)
    await log_audit(db, current_user, "update_privacy_settings", "user", current_user.user_id)
    return success(settings, "Privacy settings updated")


@router.put("/consent")
async def update_consent(
    data: ConsentUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    settings = await service.update_consent(db, current_user.user_id, data)
    await log_audit(
        db, current_user, "update_consent", "user", current_user.user_id,
        data.dict(exclude_unset=True)
    )
    return success(settings, "Consent settings updated")


@router.get("/export-data")
async def export_data(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    export = await service.export_user_data(db, current_user.user_id)
    await log_audit(db, current_user, "export_data", "user", current_user.user_id)
    return success(export, "Data export generated")


# ==================== DELETION ====================

@router.post("/delete-account")
async def delete_account(
    data: DeletionRequestCreate,
    background_tasks: BackgroundTasks,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    request = await service.request_account_deletion(db, current_user.user, data)
    await log_audit(
        db, current_user, "request_deletion", "deletion_request", request["request_id"],
        {"user_id": current_user.user_id, "scheduled_for": request["scheduled_for"]}
    )
    background_tasks.add_task(
        send_deletion_scheduled_email,
        current_user.email,
        current_user.first_name or current_user.username,
        request["scheduled_for"],
    )
    return success(
        {"request": request, "scheduled_for": request["scheduled_for"], "grace_period_days": config.DELETION_GRACE_DAYS},
        "Account deletion scheduled successfully"
    )


@router.post("/cancel-deletion")
async def cancel_deletion(
    data: Optional[DeletionCancel] = None,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    request = await service.cancel_account_deletion(db, current_user.user_id, data.reason if data else None)
    await log_audit(
        db, current_user, "cancel_deletion", "deletion_request", request["request_id"],
        {"user_id": current_user.user_id}
    )
    return success(request, "Account deletion cancelled")


@router.get("/deletion-status")
async def get_deletion_status(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return success(await service.deletion_status(db, current_user.user_id), "Deletion status retrieved")


@router.get("/deletion-requests")
async def my_deletion_requests(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    requests = await service.list_user_deletion_requests(db, current_user.user_id)
    return success(requests, "Deletion requests retrieved")


@router.get("/audit-logs")
async def my_audit_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    logs, total = await service.user_audit_logs(db, current_user.user_id, limit=limit, skip=(page - 1) * limit)
    return paginated(logs, page, limit, total, "Audit logs retrieved")


# ==================== ADMIN ====================

@router.get("/admin/deletion-requests")
async def admin_deletion_requests(
    status: Optional[DeletionStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    admin: CurrentUser = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    requests, total = await service.list_deletion_requests(
        db, status.value if status else None, page=page, limit=limit
    )
    return paginated(requests, page, limit, total, "Deletion requests retrieved")


@router.put("/admin/deletion-requests/{request_id}/process")
async def admin_process_request(
    request_id: str,
    review: DeletionReview,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    request = await service.review_deletion_request(db, request_id, review, admin)
    message = "Deletion request approved" if review.action == ReviewAction.APPROVE else "Deletion request rejected"
    return success(request, message)


@router.post("/admin/process-due")
async def admin_process_due(
    admin: CurrentUser = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Run the scheduled deletion pass immediately"""
    processed = await service.process_due_deletions(db)
    return success({"processed": processed}, "Due deletion requests processed")


@router.get("/admin/audit-logs")
async def admin_audit_logs(
    actor_user_id: Optional[str] = None,
    target_type: Optional[str] = None,
    target_id: Optional[str] = None,
    action: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    admin: CurrentUser = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    logs, total = await get_audit_trail(
        db,
        actor_user_id=actor_user_id,
        target_type=target_type,
        target_id=target_id,
        action=action,
        limit=limit,
        skip=(page - 1) * limit,
    )
    return paginated(logs, page, limit, total, "Audit logs retrieved")
