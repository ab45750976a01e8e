import re
from pydantic import BaseModel, Field, validator
from typing import List, Optional
from enum import Enum

from eduknit.auth.models import EMAIL_PATTERN

PHONE_PATTERN = re.compile(r"^\+?[\d\s\-\(\)]{10,15}$")
SOCIAL_PATTERNS = {
    "linkedin": re.compile(r"^https?://(www\.)?linkedin\.com/"),
    "twitter": re.compile(r"^https?://(www\.)?(twitter|x)\.com/"),
    "github": re.compile(r"^https?://(www\.)?github\.com/"),
    "portfolio": re.compile(r"^https?://"),
}


def check_social_url(network: str, value: Optional[str]) -> Optional[str]:
    if not value:
        return value
    value = value.strip()
    if not SOCIAL_PATTERNS[network].match(value):
        raise ValueError(f"Please enter a valid {network} URL")
    return value

# ==================== ENUMS ====================

class EducationLevel(str, Enum):
    HIGH_SCHOOL = "HIGH_SCHOOL"
    UNDERGRADUATE = "UNDERGRADUATE"
    GRADUATE = "GRADUATE"
    POSTGRADUATE = "POSTGRADUATE"
    OTHER = "OTHER"

class ExperienceLevel(str, Enum):
    STUDENT = "STUDENT"
    LESS_THAN_ONE = "0-1"
    ONE_TO_THREE = "1-3"
    THREE_TO_FIVE = "3-5"
    FIVE_TO_TEN = "5-10"
    TEN_PLUS = "10+"

class LearningStyle(str, Enum):
    VISUAL = "VISUAL"
    AUDITORY = "AUDITORY"
    KINESTHETIC = "KINESTHETIC"
    READING_WRITING = "READING_WRITING"

class NotificationFrequency(str, Enum):
    IMMEDIATE = "IMMEDIATE"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    NEVER = "NEVER"

class ProfileVisibility(str, Enum):
    PUBLIC = "PUBLIC"
    PRIVATE = "PRIVATE"
    CONNECTIONS_ONLY = "CONNECTIONS_ONLY"

# ==================== SECTION MODELS ====================

class SocialMedia(BaseModel):
    linkedin: Optional[str] = None
    twitter: Optional[str] = None
    github: Optional[str] = None
    portfolio: Optional[str] = None

    @validator("linkedin")
    def validate_linkedin(cls, v):
        return check_social_url("linkedin", v)

    @validator("twitter")
    def validate_twitter(cls, v):
        return check_social_url("twitter", v)

    @validator("github")
    def validate_github(cls, v):
        return check_social_url("github", v)

    @validator("portfolio")
    def validate_portfolio(cls, v):
        return check_social_url("portfolio", v)

class ContactInfo(BaseModel):
    phone_number: Optional[str] = None
    alternate_email: Optional[str] = None
    social_media: SocialMedia = SocialMedia()

    @validator("phone_number")
    def validate_phone(cls, v):
        if v and not PHONE_PATTERN.match(v.strip()):
            raise ValueError("Please enter a valid phone number")
        return v.strip() if v else v

    @validator("alternate_email")
    def validate_alternate_email(cls, v):
        if v:
            v = v.strip().lower()
            if not EMAIL_PATTERN.match(v):
                raise ValueError("Please enter a valid email address")
        return v

class Address(BaseModel):
    street: Optional[str] = Field(None, max_length=200)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, max_length=100)
    timezone: Optional[str] = None

class AcademicInfo(BaseModel):
    education_level: Optional[EducationLevel] = None
    institution: Optional[str] = Field(None, max_length=200)
    field_of_study: Optional[str] = Field(None, max_length=200)
    graduation_year: Optional[int] = Field(None, ge=1950, le=2100)
    currently_studying: bool = False

class ProfessionalInfo(BaseModel):
    current_position: Optional[str] = None
    company: Optional[str] = None
    industry: Optional[str] = None
    experience: Optional[ExperienceLevel] = None
    skills: List[str] = []
    interests: List[str] = []

class NotificationPreferences(BaseModel):
    email: bool = True
    sms: bool = False
    push: bool = True
    frequency: NotificationFrequency = NotificationFrequency.DAILY

class LearningPreferences(BaseModel):
    preferred_learning_style: Optional[LearningStyle] = None
    goals: List[str] = []
    availability_hours: int = Field(0, ge=0, le=168)  # hours per week
    preferred_time_slots: List[str] = []
    notification_preferences: NotificationPreferences = NotificationPreferences()

class ProfileUpdate(BaseModel):
    contact_info: Optional[ContactInfo] = None
    address: Optional[Address] = None
    academic_info: Optional[AcademicInfo] = None
    professional_info: Optional[ProfessionalInfo] = None
    learning_preferences: Optional[LearningPreferences] = None
    onboarding_completed: Optional[bool] = None
    profile_setup_step: Optional[int] = Field(None, ge=0, le=10)
