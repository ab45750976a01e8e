"""
EduKnit Configuration
Environment driven settings for the API, auth tokens, mail and jobs
"""

import os
from dotenv import load_dotenv

load_dotenv()

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
VERSION = os.getenv("VERSION", "1.0.0")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# MongoDB
MONGO_URL = os.getenv("MONGO_URL", "mongodb://localhost:27017")
MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "eduknit_db")

# JWT
JWT_SECRET = os.getenv("JWT_SECRET", "change-me-access-secret")
JWT_REFRESH_SECRET = os.getenv("JWT_REFRESH_SECRET", "change-me-refresh-secret")
JWT_ALGORITHM = "HS256"
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))
JWT_REFRESH_EXPIRES_DAYS = int(os.getenv("JWT_REFRESH_EXPIRES_DAYS", "7"))
JWT_ISSUER = os.getenv("JWT_ISSUER", "eduknit-learn")
JWT_AUDIENCE = os.getenv("JWT_AUDIENCE", "eduknit-learn-users")

# Account security
MAX_LOGIN_ATTEMPTS = 5
LOCK_DURATION_HOURS = 2
EMAIL_VERIFICATION_MINUTES = 15
PASSWORD_RESET_MINUTES = 60

# Rate limits (limits notation, per client address)
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
_LENIENT = ENVIRONMENT == "development"
LOGIN_RATE_LIMIT = os.getenv("LOGIN_RATE_LIMIT", "50/15minutes" if _LENIENT else "5/15minutes")
REGISTER_RATE_LIMIT = os.getenv("REGISTER_RATE_LIMIT", "20/hour" if _LENIENT else "3/hour")
PASSWORD_RESET_RATE_LIMIT = os.getenv("PASSWORD_RESET_RATE_LIMIT", "10/hour" if _LENIENT else "3/hour")

# Frontend / CORS
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")
    if origin.strip()
]

# SMTP (mail is skipped when host/user are missing)
SMTP_HOST = os.getenv("SMTP_HOST", "")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER", "")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"
MAIL_FROM = os.getenv("MAIL_FROM", SMTP_USER or "no-reply@eduknit.local")

# Uploads
UPLOADS_DIR = os.getenv("UPLOADS_DIR", "uploads")
MAX_PHOTO_BYTES = int(os.getenv("MAX_PHOTO_BYTES", str(5 * 1024 * 1024)))
ALLOWED_PHOTO_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}

# Background jobs
ENABLE_SCHEDULED_JOBS = os.getenv("ENABLE_SCHEDULED_JOBS", "true").lower() == "true"
DELETION_JOB_INTERVAL_SECONDS = int(os.getenv("DELETION_JOB_INTERVAL_SECONDS", "3600"))
DELETION_GRACE_DAYS = int(os.getenv("DELETION_GRACE_DAYS", "30"))

# Learning rules
POINTS_PER_LESSON = 10
POINTS_PER_LEVEL = 100
EXPECTED_COMPLETION_DAYS = 60
DEFAULT_PASSING_SCORE = 60
DEFAULT_MAX_ATTEMPTS = 3
QUIZ_GRACE_SECONDS = 60

# Discord
DISCORD_TIMEOUT_SECONDS = 10
