from pydantic import BaseModel, validator
from typing import Optional

from eduknit.auth.models import (
    UserRole, AccountStatus, USERNAME_PATTERN, normalize_email, check_password_strength
)


class AdminUserCreate(BaseModel):
    username: str
    email: str
    password: str
    first_name: str
    last_name: str
    role: UserRole = UserRole.STUDENT
    enrollment_status: AccountStatus = AccountStatus.ACTIVE
    is_email_verified: bool = True
    phone_number: Optional[str] = None

    @validator("username")
    def validate_username(cls, v):
        v = v.strip()
        if not USERNAME_PATTERN.match(v):
            raise ValueError("Username must be 3-30 characters (letters, numbers, _ . -)")
        return v

    @validator("email")
    def validate_email(cls, v):
        return normalize_email(v)

    @validator("password")
    def validate_password(cls, v):
        return check_password_strength(v)


class AdminUserUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    role: Optional[UserRole] = None
    phone_number: Optional[str] = None
    is_email_verified: Optional[bool] = None

    @validator("username")
    def validate_username(cls, v):
        if v is None:
            return v
        v = v.strip()
        if not USERNAME_PATTERN.match(v):
            raise ValueError("Username must be 3-30 characters (letters, numbers, _ . -)")
        return v

    @validator("email")
    def validate_email(cls, v):
        return normalize_email(v) if v is not None else v


class StatusChange(BaseModel):
    enrollment_status: AccountStatus
    reason: Optional[str] = None
