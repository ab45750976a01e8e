from enum import Enum
from typing import Optional

from pydantic import BaseModel, validator

from eduknit.integrations.discord import is_valid_webhook_url


class Platform(str, Enum):
    DISCORD = "discord"


class IntegrationPreferences(BaseModel):
    notifications: bool = True
    announcements: bool = True
    progress_updates: bool = False
    achievement_sharing: bool = False


class IntegrationUpsert(BaseModel):
    platform: Platform = Platform.DISCORD
    webhook_url: Optional[str] = None
    server_id: Optional[str] = None
    channel_id: Optional[str] = None
    enabled: bool = True
    preferences: Optional[IntegrationPreferences] = None

    @validator("webhook_url")
    def validate_webhook_url(cls, v):
        if v is None:
            return v
        v = v.strip()
        if not is_valid_webhook_url(v):
            raise ValueError("Invalid Discord webhook URL")
        return v


class TestNotification(BaseModel):
    platform: Platform = Platform.DISCORD
    title: str = "Test notification"
    message: str = "This is a test notification from EduKnit Learn."

    @validator("message")
    def validate_message(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Message is required")
        if len(v) > 2000:
            raise ValueError("Message must be at most 2000 characters")
        return v
