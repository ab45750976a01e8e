from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, validator

from eduknit.students.models import ProfileVisibility

DELETION_CONFIRM_TEXT = "DELETE MY ACCOUNT"


class DeletionStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


OPEN_DELETION_STATUSES = [DeletionStatus.PENDING.value, DeletionStatus.APPROVED.value]


class ReviewAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class PrivacySettingsUpdate(BaseModel):
    profile_visibility: Optional[ProfileVisibility] = None
    allow_messaging: Optional[bool] = None
    allow_connection_requests: Optional[bool] = None


class ConsentUpdate(BaseModel):
    data_processing_consent: Optional[bool] = None
    marketing_consent: Optional[bool] = None


class DeletionRequestCreate(BaseModel):
    password: str
    reason: str
    confirm_text: str

    @validator("reason")
    def validate_reason(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Reason is required")
        if len(v) > 1000:
            raise ValueError("Reason must be less than 1000 characters")
        return v

    @validator("confirm_text")
    def validate_confirm_text(cls, v):
        if v != DELETION_CONFIRM_TEXT:
            raise ValueError(f"Confirmation text must be exactly '{DELETION_CONFIRM_TEXT}'")
        return v


class DeletionCancel(BaseModel):
    reason: Optional[str] = None


class DeletionReview(BaseModel):
    action: ReviewAction
    admin_notes: Optional[str] = None
    # approve only: a future date defers anonymisation to the scheduled job
    scheduled_for: Optional[datetime] = None

    @validator("scheduled_for")
    def naive_utc(cls, v):
        if v is not None and v.tzinfo is not None:
            v = v.astimezone(timezone.utc).replace(tzinfo=None)
        return v
