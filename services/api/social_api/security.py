"""
Password hashing and bearer-token authentication.

Tokens are HS256 JWTs carrying the user id in `sub` plus username/email for
clients that want to render without a round-trip. Every authenticated
request re-loads the user, so a deleted account stops working immediately.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import AsyncSession

from social_api.config import settings
from social_api.database import get_db
from social_api.errors import InvalidIdentity, Unauthorized, parse_identity
from social_api.models import User

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    payload = {
        "sub": user.user_id,
        "username": user.username,
        "email": user.email,
        "exp": expire,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> str:
    """Return the user id the token was issued for."""
    try:
        payload = jwt.decode(
            token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Token expired.") from None
    except jwt.PyJWTError:
        raise Unauthorized("Invalid token.") from None

    try:
        return parse_identity(payload.get("sub", ""))
    except InvalidIdentity:
        raise Unauthorized("Invalid token.") from None


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """FastAPI dependency resolving the bearer token to a User row."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise Unauthorized("Access denied. No token provided.")

    user_id = decode_access_token(credentials.credentials)
    user = await db.get(User, user_id)
    if user is None:
        logger.info("Token presented for unknown user %s", user_id)
        raise Unauthorized("Invalid token.")
    return user
