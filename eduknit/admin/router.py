"""
ADMIN ROUTER
File: eduknit/admin/router.py

User management and platform statistics.
Admin role only; every mutation is audited.
"""

from fastapi import APIRouter, Depends, Query
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional

from eduknit.admin import service
from eduknit.admin.audit import log_audit
from eduknit.admin.models import AdminUserCreate, AdminUserUpdate, StatusChange
from eduknit.auth.dependencies import CurrentUser, require_admin
from eduknit.auth.models import UserRole, AccountStatus
from eduknit.database import get_db, to_mongo
from eduknit.errors import ValidationError, success, paginated

router = APIRouter(prefix="/api/admin", tags=["Admin"])


# ==================== USERS ====================

@router.get("/users")
async def list_users(
    role: Optional[UserRole] = None,
    status: Optional[AccountStatus] = None,
    search: Optional[str] = None,
    include_deleted: bool = False,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: CurrentUser = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    users, total = await service.list_users(
        db,
        role=role.value if role else None,
        status=status.value if status else None,
        search=search,
        include_deleted=include_deleted,
        page=page,
        limit=limit,
    )
    return paginated(users, page, limit, total, "Users retrieved successfully")


@router.get("/users/stats")
async def user_stats(
    admin: CurrentUser = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return success(await service.user_stats(db), "User statistics retrieved")


@router.post("/users", status_code=201)
async def create_user(
    data: AdminUserCreate,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    user = await service.create_user(db, data)
    await log_audit(db, admin, "create_user", "user", user["user_id"], {"role": user["role"]})
    return success(user, "User created successfully")


@router.get("/users/{user_id}")
async def get_user(
    user_id: str,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return success(await service.get_user_detail(db, user_id), "User retrieved successfully")


@router.put("/users/{user_id}")
async def update_user(
    user_id: str,
    data: AdminUserUpdate,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    updates = {k: to_mongo(v) for k, v in data.dict(exclude_unset=True).items() if v is not None}
    if not updates:
        raise ValidationError("No fields to update")
    if user_id == admin.user_id and updates.get("role", admin.role) != admin.role:
        raise ValidationError("You cannot change your own role")

    user = await service.update_user(db, user_id, updates)
    await log_audit(db, admin, "update_user", "user", user_id, {"fields": sorted(updates)})
    return success(user, "User updated successfully")


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: str,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    result = await service.soft_delete_user(db, user_id, admin.user_id)
    await log_audit(db, admin, "delete_user", "user", user_id)
    return success(result, "User deleted successfully")


@router.patch("/users/{user_id}/status")
async def change_user_status(
    user_id: str,
    data: StatusChange,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    result = await service.change_account_status(db, user_id, data.enrollment_status.value, admin.user_id)
    await log_audit(
        db, admin, "change_user_status", "user", user_id,
        {"from": result["previous_status"], "to": result["enrollment_status"], "reason": data.reason}
    )
    return success(result, "User status updated")


# ==================== PLATFORM ====================

@router.get("/dashboard/stats")
async def dashboard_stats(
    admin: CurrentUser = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return success(await service.dashboard_stats(db), "Dashboard statistics retrieved")


@router.get("/enrollments/stats")
async def enrollment_stats(
    months: int = Query(6, ge=1, le=24),
    admin: CurrentUser = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return success(await service.enrollment_statistics(db, months), "Enrollment statistics retrieved")
