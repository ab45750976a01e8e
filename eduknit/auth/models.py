import re
from pydantic import BaseModel, validator
from typing import Optional
from enum import Enum

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]{3,30}$")

# ==================== ENUMS ====================

class UserRole(str, Enum):
    ADMIN = "admin"
    USER = "user"
    STUDENT = "student"
    VISITOR = "visitor"

class AccountStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"

SELF_REGISTER_ROLES = {UserRole.STUDENT, UserRole.USER, UserRole.VISITOR}

# ==================== VALIDATION HELPERS ====================

def normalize_email(value: str) -> str:
    value = (value or "").strip().lower()
    if not EMAIL_PATTERN.match(value):
        raise ValueError("Please provide a valid email address")
    return value

def check_password_strength(value: str) -> str:
    if len(value or "") < 8:
        raise ValueError("Password must be at least 8 characters long")
    if not re.search(r"[A-Za-z]", value) or not re.search(r"\d", value):
        raise ValueError("Password must contain at least one letter and one number")
    return value

# ==================== REQUEST MODELS ====================

class RegisterRequest(BaseModel):
    username: str
    email: str
    password: str
    first_name: str
    last_name: str
    phone_number: Optional[str] = None
    role: UserRole = UserRole.STUDENT

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

    @validator("first_name", "last_name")
    def validate_names(cls, v):
        v = v.strip()
        if not v or len(v) > 50:
            raise ValueError("Names must be 1-50 characters")
        return v

    @validator("role")
    def validate_role(cls, v):
        if v not in SELF_REGISTER_ROLES:
            raise ValueError("Role not allowed for self-registration")
        return v

class LoginRequest(BaseModel):
    email: str
    password: str

    @validator("email")
    def validate_email(cls, v):
        return (v or "").strip().lower()

class RefreshRequest(BaseModel):
    refresh_token: Optional[str] = None

class EmailRequest(BaseModel):
    email: str

    @validator("email")
    def validate_email(cls, v):
        return normalize_email(v)

class TokenRequest(BaseModel):
    token: str

class ResetPasswordRequest(BaseModel):
    token: str
    password: str

    @validator("password")
    def validate_password(cls, v):
        return check_password_strength(v)

class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str

    @validator("new_password")
    def validate_password(cls, v):
        return check_password_strength(v)

# ==================== RESPONSE HELPERS ====================

PRIVATE_USER_FIELDS = {
    "_id",
    "password_hash",
    "refresh_tokens",
    "email_verification_token",
    "email_verification_expires",
    "password_reset_token",
    "password_reset_expires",
    "login_attempts",
    "lock_until",
}

def public_user(user: dict) -> dict:
    """User document without credentials or token material"""
    return {key: value for key, value in user.items() if key not in PRIVATE_USER_FIELDS}
