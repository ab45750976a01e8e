"""
Password hashing and JWT helpers
"""

import secrets
import uuid
from datetime import datetime, timedelta

import jwt
from werkzeug.security import generate_password_hash, check_password_hash

from eduknit import config
from eduknit.errors import AuthenticationError

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    return check_password_hash(password_hash, password)


def generate_url_token() -> str:
    """Random token for email verification and password reset links"""
    return secrets.token_hex(32)


# ==================== JWT ====================

def create_access_token(user: dict) -> str:
    now = datetime.utcnow()
    payload = {
        "sub": user["user_id"],
        "email": user["email"],
        "role": user["role"],
        "type": ACCESS_TOKEN,
        "iat": now,
        "exp": now + timedelta(minutes=config.JWT_EXPIRES_MINUTES),
        "iss": config.JWT_ISSUER,
        "aud": config.JWT_AUDIENCE,
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def create_refresh_token(user: dict):
    """Returns (token, jti, expires_at)"""
    now = datetime.utcnow()
    jti = uuid.uuid4().hex
    expires_at = now + timedelta(days=config.JWT_REFRESH_EXPIRES_DAYS)
    payload = {
        "sub": user["user_id"],
        "type": REFRESH_TOKEN,
        "jti": jti,
        "iat": now,
        "exp": expires_at,
        "iss": config.JWT_ISSUER,
        "aud": config.JWT_AUDIENCE,
    }
    token = jwt.encode(payload, config.JWT_REFRESH_SECRET, algorithm=config.JWT_ALGORITHM)
    return token, jti, expires_at


def _decode(token: str, secret: str, expected_type: str) -> dict:
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[config.JWT_ALGORITHM],
            audience=config.JWT_AUDIENCE,
            issuer=config.JWT_ISSUER,
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid or Expired Token")

    if payload.get("type") != expected_type or not payload.get("sub"):
        raise AuthenticationError("Invalid token type")
    return payload


def decode_access_token(token: str) -> dict:
    return _decode(token, config.JWT_SECRET, ACCESS_TOKEN)


def decode_refresh_token(token: str) -> dict:
    return _decode(token, config.JWT_REFRESH_SECRET, REFRESH_TOKEN)
