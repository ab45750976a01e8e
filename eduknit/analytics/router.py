"""
ANALYTICS & DASHBOARD ROUTER
File: eduknit/analytics/router.py
"""

from fastapi import APIRouter, Depends, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from eduknit.analytics.dashboard import build_realtime_dashboard
from eduknit.analytics.leaderboard import get_points_leaderboard
from eduknit.analytics.reports import (
    build_overview, build_progress_history, build_category_performance, build_streaks
)
from eduknit.analytics.service import load_learner_activity
from eduknit.auth.dependencies import CurrentUser, get_current_user
from eduknit.database import get_db
from eduknit.errors import success

router = APIRouter(prefix="/api/analytics", tags=["Analytics"])
dashboard_router = APIRouter(prefix="/api/dashboard", tags=["Dashboard"])


async def _activity(db: AsyncIOMotorDatabase, current_user: CurrentUser) -> dict:
    return await load_learner_activity(db, current_user.user_id, current_user.user)


@router.get("/overview")
async def analytics_overview(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    activity = await _activity(db, current_user)
    return success(build_overview(activity), "Analytics overview retrieved")


@router.get("/progress-history")
async def progress_history(
    days: int = Query(30, ge=1, le=365),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    activity = await _activity(db, current_user)
    return success(build_progress_history(activity, days), "Progress history retrieved")


@router.get("/category-performance")
async def category_performance(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    activity = await _activity(db, current_user)
    return success(build_category_performance(activity), "Category performance retrieved")


@router.get("/streaks")
async def streaks(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    activity = await _activity(db, current_user)
    return success(build_streaks(activity), "Streaks and achievements retrieved")


@router.get("/leaderboard")
async def leaderboard(
    skip: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=100),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    entries = await get_points_leaderboard(db, skip, limit)
    my_rank = next((e["rank"] for e in entries if e["user_id"] == current_user.user_id), None)
    return success({"leaderboard": entries, "count": len(entries), "my_rank": my_rank}, "Leaderboard retrieved")


@dashboard_router.get("/realtime")
async def realtime_dashboard(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    activity = await _activity(db, current_user)
    return success(build_realtime_dashboard(activity), "Dashboard data retrieved")
