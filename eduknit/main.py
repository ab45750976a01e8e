import asyncio
import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from eduknit import config
from eduknit.logging_utils import configure_logging
from eduknit.database import db_manager, create_indexes
from eduknit.errors import register_exception_handlers
from eduknit.rate_limit import limiter
from eduknit.admin.router import router as admin_router
from eduknit.analytics.router import router as analytics_router, dashboard_router
from eduknit.auth.router import router as auth_router
from eduknit.courses.admin_router import router as admin_courses_router
from eduknit.courses.router import router as courses_router
from eduknit.enrollments.router import router as enrollments_router
from eduknit.integrations.router import router as integrations_router
from eduknit.privacy.router import router as privacy_router
from eduknit.privacy.service import run_deletion_job
from eduknit.progress.router import router as progress_router
from eduknit.quizzes.router import router as quizzes_router, admin_router as admin_quizzes_router
from eduknit.students.router import router as students_router
from eduknit.system.router import router as system_router

configure_logging(config.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title="EduKnit Learn API", version=config.VERSION)
app.state.limiter = limiter

background_jobs = []


@app.on_event("startup")
async def startup_event():
    db_manager.connect()
    db = db_manager.get_database()
    await create_indexes(db)
    if config.ENABLE_SCHEDULED_JOBS:
        background_jobs.append(asyncio.create_task(run_deletion_job(db)))
        logger.info("Scheduled deletion job started (every %ss)", config.DELETION_JOB_INTERVAL_SECONDS)
    logger.info("EduKnit Learn API %s started (%s)", config.VERSION, config.ENVIRONMENT)


@app.on_event("shutdown")
async def shutdown_event():
    for task in background_jobs:
        task.cancel()
    background_jobs.clear()
    db_manager.disconnect()


app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

os.makedirs(config.UPLOADS_DIR, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=config.UPLOADS_DIR), name="uploads")


# ==================== ROUTER REGISTRATION ====================
app.include_router(system_router)
app.include_router(auth_router)
app.include_router(courses_router)
app.include_router(admin_courses_router)
app.include_router(enrollments_router)
app.include_router(progress_router)
app.include_router(quizzes_router)
app.include_router(admin_quizzes_router)
app.include_router(analytics_router)
app.include_router(dashboard_router)
app.include_router(students_router)
app.include_router(admin_router)
app.include_router(privacy_router)
app.include_router(integrations_router)
# ============================================================
