"""
AUTH ROUTER
File: eduknit/auth/router.py

Registration, email verification, login/logout, token refresh and
password management. Tokens are returned in the body and as httpOnly cookies.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, Request, Response
from motor.motor_asyncio import AsyncIOMotorDatabase

from eduknit import config
from eduknit.auth import service
from eduknit.auth.dependencies import CurrentUser, get_current_user
from eduknit.auth.models import (
    RegisterRequest, LoginRequest, RefreshRequest, EmailRequest,
    TokenRequest, ResetPasswordRequest, ChangePasswordRequest, public_user
)
from eduknit.database import get_db
from eduknit.errors import success
from eduknit.integrations.mailer import send_verification_email, send_password_reset_email
from eduknit.rate_limit import limiter, login_limit, register_limit, password_reset_limit

router = APIRouter(prefix="/api/auth", tags=["Auth"])

GENERIC_VERIFICATION_MESSAGE = "If the account exists and is unverified, a verification email has been sent."
GENERIC_RESET_MESSAGE = "If an account exists for that email, a password reset link has been sent."


# ==================== COOKIE HELPERS ====================

def set_token_cookies(response: Response, tokens: dict):
    secure = config.ENVIRONMENT == "production"
    response.set_cookie(
        "accessToken", tokens["access_token"],
        httponly=True, secure=secure, samesite="lax",
        max_age=config.JWT_EXPIRES_MINUTES * 60,
    )
    response.set_cookie(
        "refreshToken", tokens["refresh_token"],
        httponly=True, secure=secure, samesite="lax",
        max_age=config.JWT_REFRESH_EXPIRES_DAYS * 24 * 3600,
    )


def clear_token_cookies(response: Response):
    response.delete_cookie("accessToken")
    response.delete_cookie("refreshToken")


# ==================== REGISTRATION ====================

@router.post("/register", status_code=201)
@limiter.limit(register_limit)
async def register(
    request: Request,
    data: RegisterRequest,
    background_tasks: BackgroundTasks,
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    user, token = await service.register_user(db, data)
    background_tasks.add_task(send_verification_email, user["email"], user["first_name"], token)
    return success(user, "Registration successful. Please check your email to verify your account.")


@router.get("/verify-email/{token}")
async def verify_email_link(token: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    user = await service.verify_email(db, token)
    return success(user, "Email verified successfully")


@router.post("/verify-email")
async def verify_email(data: TokenRequest, db: AsyncIOMotorDatabase = Depends(get_db)):
    user = await service.verify_email(db, data.token)
    return success(user, "Email verified successfully")


@router.post("/resend-verification")
async def resend_verification(
    data: EmailRequest,
    background_tasks: BackgroundTasks,
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    result = await service.refresh_verification_token(db, data.email)
    if result:
        user, token = result
        background_tasks.add_task(send_verification_email, user["email"], user["first_name"], token)
    return success(None, GENERIC_VERIFICATION_MESSAGE)


# ==================== SESSION ====================

@router.post("/login")
@limiter.limit(login_limit)
async def login(
    request: Request,
    data: LoginRequest,
    response: Response,
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    user, tokens = await service.authenticate(db, data.email, data.password)
    set_token_cookies(response, tokens)
    return success({"user": user, **tokens}, "Login successful")


@router.post("/refresh")
async def refresh(
    request: Request,
    response: Response,
    data: RefreshRequest = None,
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    token = (data.refresh_token if data else None) or request.cookies.get("refreshToken")
    user, tokens = await service.rotate_refresh_token(db, token)
    set_token_cookies(response, tokens)
    return success({"user": user, **tokens}, "Token refreshed")


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    data: RefreshRequest = None,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    token = (data.refresh_token if data else None) or request.cookies.get("refreshToken")
    await service.revoke_refresh_token(db, current_user.user_id, token)
    clear_token_cookies(response)
    return success(None, "Logout successful")


@router.get("/me")
async def me(current_user: CurrentUser = Depends(get_current_user)):
    return success(public_user(current_user.user), "User retrieved")


# ==================== PASSWORDS ====================

@router.post("/forgot-password")
@limiter.limit(password_reset_limit)
async def forgot_password(
    request: Request,
    data: EmailRequest,
    background_tasks: BackgroundTasks,
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    result = await service.create_password_reset(db, data.email)
    if result:
        user, token = result
        background_tasks.add_task(send_password_reset_email, user["email"], user["first_name"], token)
    return success(None, GENERIC_RESET_MESSAGE)


@router.get("/validate-reset-token/{token}")
async def validate_reset_token(token: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    user = await service.find_by_reset_token(db, token)
    return success({"valid": True, "email": user["email"]}, "Reset token is valid")


@router.post("/reset-password")
async def reset_password(data: ResetPasswordRequest, db: AsyncIOMotorDatabase = Depends(get_db)):
    await service.reset_password(db, data.token, data.password)
    return success(None, "Password reset successful. Please log in with your new password.")


@router.post("/change-password")
async def change_password(
    data: ChangePasswordRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await service.change_password(db, current_user.user_id, data.current_password, data.new_password)
    return success(None, "Password changed successfully")
