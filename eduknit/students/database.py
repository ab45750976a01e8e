from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError
from datetime import datetime
from typing import Optional

from eduknit.database import generate_id

COMPLETENESS_FIELDS = 14

# ==================== PROFILE DOCUMENT ====================

def new_profile_document(user_id: str, join_date: Optional[datetime] = None) -> dict:
    now = datetime.utcnow()
    return {
        "profile_id": generate_id("PRF"),
        "user_id": user_id,
        "contact_info": {
            "phone_number": None,
            "alternate_email": None,
            "social_media": {"linkedin": None, "twitter": None, "github": None, "portfolio": None},
        },
        "address": {
            "street": None, "city": None, "state": None,
            "postal_code": None, "country": None, "timezone": None,
        },
        "profile_photo": {"url": None, "filename": None, "upload_date": None, "size": None, "mime_type": None},
        "academic_info": {
            "education_level": None, "institution": None, "field_of_study": None,
            "graduation_year": None, "currently_studying": False,
        },
        "professional_info": {
            "current_position": None, "company": None, "industry": None,
            "experience": None, "skills": [], "interests": [],
        },
        "learning_preferences": {
            "preferred_learning_style": None,
            "goals": [],
            "availability_hours": 0,
            "preferred_time_slots": [],
            "notification_preferences": {"email": True, "sms": False, "push": True, "frequency": "DAILY"},
        },
        "privacy": {
            "profile_visibility": "PUBLIC",
            "allow_messaging": True,
            "allow_connection_requests": True,
            "data_processing_consent": False,
            "marketing_consent": False,
            "data_processing_consent_date": None,
            "marketing_consent_date": None,
        },
        "gamification": {
            "total_points": 0,
            "level": 1,
            "badges": [],
            "streaks": {
                "current_login_streak": 0,
                "longest_login_streak": 0,
                "current_learning_streak": 0,
                "longest_learning_streak": 0,
            },
        },
        "statistics": {
            "total_courses_enrolled": 0,
            "total_courses_completed": 0,
            "total_certificates_earned": 0,
            "total_learning_hours": 0,
            "average_score": 0,
            "join_date": join_date or now,
            "last_active_date": None,
            "profile_completeness": 0,
        },
        "metadata": {
            "onboarding_completed": False,
            "onboarding_completed_date": None,
            "profile_setup_step": 0,
            "last_profile_update": now,
            "data_version": 1,
        },
        "created_at": now,
        "updated_at": now,
    }


def calculate_completeness(profile: dict) -> int:
    """14-point rubric over contact, address, academic, professional, learning and photo"""
    contact = profile.get("contact_info") or {}
    address = profile.get("address") or {}
    academic = profile.get("academic_info") or {}
    professional = profile.get("professional_info") or {}
    learning = profile.get("learning_preferences") or {}
    photo = profile.get("profile_photo") or {}

    score = 0
    if contact.get("phone_number"):
        score += 1
    if contact.get("alternate_email"):
        score += 1
    if any((contact.get("social_media") or {}).values()):
        score += 1

    if address.get("city") and address.get("country"):
        score += 2

    if academic.get("education_level"):
        score += 1
    if academic.get("institution"):
        score += 1

    if professional.get("experience"):
        score += 1
    if professional.get("skills"):
        score += 1
    if professional.get("interests"):
        score += 1

    if learning.get("goals"):
        score += 1
    if (learning.get("availability_hours") or 0) > 0:
        score += 1
    if learning.get("preferred_time_slots"):
        score += 1

    if photo.get("url"):
        score += 1

    return int(score / COMPLETENESS_FIELDS * 100 + 0.5)


def missing_profile_sections(profile: dict) -> list:
    checks = [
        ("contact_info.phone_number", (profile.get("contact_info") or {}).get("phone_number")),
        ("contact_info.alternate_email", (profile.get("contact_info") or {}).get("alternate_email")),
        ("contact_info.social_media", any(((profile.get("contact_info") or {}).get("social_media") or {}).values())),
        ("address.city", (profile.get("address") or {}).get("city")),
        ("address.country", (profile.get("address") or {}).get("country")),
        ("academic_info.education_level", (profile.get("academic_info") or {}).get("education_level")),
        ("academic_info.institution", (profile.get("academic_info") or {}).get("institution")),
        ("professional_info.experience", (profile.get("professional_info") or {}).get("experience")),
        ("professional_info.skills", (profile.get("professional_info") or {}).get("skills")),
        ("professional_info.interests", (profile.get("professional_info") or {}).get("interests")),
        ("learning_preferences.goals", (profile.get("learning_preferences") or {}).get("goals")),
        ("learning_preferences.availability_hours", (profile.get("learning_preferences") or {}).get("availability_hours")),
        ("learning_preferences.preferred_time_slots", (profile.get("learning_preferences") or {}).get("preferred_time_slots")),
        ("profile_photo", (profile.get("profile_photo") or {}).get("url")),
    ]
    return [name for name, value in checks if not value]

# ==================== PROFILE CRUD ====================

async def get_or_create_profile(db: AsyncIOMotorDatabase, user_id: str, join_date: Optional[datetime] = None) -> dict:
    """Profiles are created lazily on first access"""
    profile = await db.student_profiles.find_one({"user_id": user_id}, {"_id": 0})
    if profile:
        return profile

    profile = new_profile_document(user_id, join_date)
    try:
        await db.student_profiles.insert_one(profile)
    except DuplicateKeyError:
        # created concurrently
        return await db.student_profiles.find_one({"user_id": user_id}, {"_id": 0})
    profile.pop("_id", None)
    return profile


async def update_profile_fields(db: AsyncIOMotorDatabase, user_id: str, updates: dict) -> dict:
    """Apply $set updates and refresh completeness"""
    now = datetime.utcnow()
    updates["updated_at"] = now
    updates["metadata.last_profile_update"] = now
    await db.student_profiles.update_one({"user_id": user_id}, {"$set": updates})

    profile = await db.student_profiles.find_one({"user_id": user_id}, {"_id": 0})
    completeness = calculate_completeness(profile)
    if completeness != profile["statistics"].get("profile_completeness"):
        await db.student_profiles.update_one(
            {"user_id": user_id},
            {"$set": {"statistics.profile_completeness": completeness}}
        )
        profile["statistics"]["profile_completeness"] = completeness
    return profile
