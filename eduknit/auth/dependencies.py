from typing import Optional

from fastapi import Depends, Header, Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from eduknit.auth.security import decode_access_token
from eduknit.database import get_db
from eduknit.errors import AuthenticationError, AuthorizationError


class CurrentUser:
    """
    Authenticated user and role scope
    """
    def __init__(self, user: dict):
        self.user_id = user["user_id"]
        self.email = user.get("email")
        self.username = user.get("username")
        self.role = user.get("role", "student")
        self.first_name = user.get("first_name")
        self.last_name = user.get("last_name")
        self.user = user

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


def extract_token(request: Request, authorization: Optional[str]) -> Optional[str]:
    """Bearer header first, then the accessToken cookie"""
    if authorization and authorization.startswith("Bearer "):
        return authorization.split(" ", 1)[1].strip()
    return request.cookies.get("accessToken")


async def get_current_user(
    request: Request,
    authorization: Optional[str] = Header(None),
    db: AsyncIOMotorDatabase = Depends(get_db),
) -> CurrentUser:
    """
    Dependency: validates the access token and loads the user

    Raises:
        401: Missing/invalid token, unknown or deleted user
    """
    token = extract_token(request, authorization)
    if not token:
        raise AuthenticationError("Access token required")

    payload = decode_access_token(token)

    user = await db.users.find_one({"user_id": payload["sub"]})
    if not user or user.get("is_deleted"):
        raise AuthenticationError("User not found")

    return CurrentUser(user)


def require_roles(*roles: str):
    """Dependency factory: only the listed roles may pass"""

    async def checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in roles:
            raise AuthorizationError(f"Access denied. Required role: {', '.join(roles)}")
        return current_user

    return checker


require_admin = require_roles("admin")
