from pydantic import BaseModel
from typing import Optional
from enum import Enum

# ==================== ENUMS ====================

class EnrollmentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    PAUSED = "PAUSED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"

class EnrollmentSource(str, Enum):
    DIRECT = "DIRECT"
    PROMOTION = "PROMOTION"
    ADMIN = "ADMIN"
    REFERRAL = "REFERRAL"

# statuses that still allow recording progress
PROGRESS_STATUSES = {EnrollmentStatus.ACTIVE.value, EnrollmentStatus.COMPLETED.value}

# ==================== REQUEST MODELS ====================

class EnrollmentCreate(BaseModel):
    course_id: str
    source: EnrollmentSource = EnrollmentSource.DIRECT
