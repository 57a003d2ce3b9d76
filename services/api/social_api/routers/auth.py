"""
Account endpoints:
  POST /api/auth/signup — create an account, returns a bearer token
  POST /api/auth/login  — exchange e-mail + password for a bearer token
  GET  /api/auth/me     — the authenticated user's own profile
"""
import logging

from fastapi import APIRouter, Depends, status
from opentelemetry import trace
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from social_api.database import get_db
from social_api.errors import Conflict, Unauthorized
from social_api.models import User
from social_api.schemas import (
    AuthResponse,
    LoginRequest,
    MeResponse,
    SignupRequest,
    private_user,
)
from social_api.security import (
    create_access_token,
    get_current_user,
    hash_password,
    verify_password,
)

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def signup(body: SignupRequest, db: AsyncSession = Depends(get_db)):
    with tracer.start_as_current_span("signup"):
        existing = await db.execute(
            select(User).where(
                or_(
                    func.lower(User.username) == body.username.lower(),
                    func.lower(User.email) == body.email.lower(),
                )
            )
        )
        taken = existing.scalars().first()
        if taken:
            field = "Username" if taken.username.lower() == body.username.lower() else "Email"
            raise Conflict(f"{field} already registered")

        user = User(
            username=body.username,
            email=body.email.lower(),
            password_hash=hash_password(body.password),
            display_name=body.display_name,
        )
        db.add(user)
        try:
            await db.flush()  # get user_id before commit
        except IntegrityError:
            # a concurrent signup took the username or e-mail after the check
            raise Conflict("Username or email already registered") from None

        logger.info("Created user %s (id=%s)", user.username, user.user_id)
        return AuthResponse(token=create_access_token(user), user=private_user(user))


@router.post("/login", response_model=AuthResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    rows = await db.execute(select(User).where(User.email == body.email.lower()))
    user = rows.scalar_one_or_none()
    if user is None or not verify_password(body.password, user.password_hash):
        raise Unauthorized("Invalid email or password.")

    logger.info("User %s logged in", user.user_id)
    return AuthResponse(token=create_access_token(user), user=private_user(user))


@router.get("/me", response_model=MeResponse)
async def me(current_user: User = Depends(get_current_user)):
    return MeResponse(user=private_user(current_user))
