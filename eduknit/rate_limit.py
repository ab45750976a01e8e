"""
Per-client request throttling for the public auth endpoints
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from eduknit import config

limiter = Limiter(
    key_func=get_remote_address,
    enabled=config.RATE_LIMIT_ENABLED,
    storage_uri="memory://",
)


def login_limit() -> str:
    return config.LOGIN_RATE_LIMIT


def register_limit() -> str:
    return config.REGISTER_RATE_LIMIT


def password_reset_limit() -> str:
    return config.PASSWORD_RESET_RATE_LIMIT
