"""
User and social-graph endpoints:
  GET  /api/users/search?q=             — find users by username / e-mail
  GET  /api/users/{id}/profile          — public profile + activity stats
  POST /api/users/{id}/follow           — follow / unfollow (toggle)
  GET  /api/users/{id}/followers        — who follows the user
  GET  /api/users/{id}/following        — who the user follows
"""
import logging

from fastapi import APIRouter, Depends, Query
from opentelemetry import trace
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from social_api.config import settings
from social_api.database import get_db
from social_api.errors import NotFound, ValidationError, parse_identity
from social_api.models import Follow, Like, Post, User
from social_api.schemas import (
    FollowersResponse,
    FollowingResponse,
    FollowToggleResponse,
    UserListResponse,
    UserProfile,
    UserProfileResponse,
    public_user,
)
from social_api.security import get_current_user

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


async def _get_user_or_404(db: AsyncSession, raw_user_id: str) -> User:
    user = await db.get(User, parse_identity(raw_user_id))
    if not user:
        raise NotFound("User not found")
    return user


async def _count(db: AsyncSession, stmt) -> int:
    return (await db.execute(stmt)).scalar_one() or 0


async def _follower_count(db: AsyncSession, user_id: str) -> int:
    return await _count(
        db, select(func.count()).select_from(Follow).where(Follow.followee_id == user_id)
    )


@router.get("/search", response_model=UserListResponse)
async def search_users(
    q: str = Query("", description="Substring of a username or e-mail"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    needle = q.strip().lower()
    if not needle:
        return UserListResponse(users=[])

    rows = await db.execute(
        select(User)
        .where(
            or_(
                func.lower(User.username).contains(needle, autoescape=True),
                func.lower(User.email).contains(needle, autoescape=True),
            )
        )
        .order_by(User.username)
        .limit(settings.user_search_limit)
    )
    return UserListResponse(users=[public_user(u) for u in rows.scalars().all()])


@router.get("/{user_id}/profile", response_model=UserProfileResponse)
async def get_profile(user_id: str, db: AsyncSession = Depends(get_db)):
    user = await _get_user_or_404(db, user_id)
    uid = user.user_id

    following_count = await _count(
        db, select(func.count()).select_from(Follow).where(Follow.follower_id == uid)
    )
    post_count = await _count(
        db, select(func.count()).select_from(Post).where(Post.user_id == uid)
    )
    total_likes = await _count(
        db,
        select(func.count())
        .select_from(Like)
        .join(Post, Like.post_id == Post.post_id)
        .where(Post.user_id == uid),
    )
    total_views = await _count(
        db, select(func.coalesce(func.sum(Post.views), 0)).where(Post.user_id == uid)
    )

    profile = UserProfile(
        **public_user(user).model_dump(),
        follower_count=await _follower_count(db, uid),
        following_count=following_count,
        post_count=post_count,
        total_likes=total_likes,
        total_views=total_views,
    )
    return UserProfileResponse(user=profile)


@router.post("/{user_id}/follow", response_model=FollowToggleResponse)
async def toggle_follow(
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Follow the user, or unfollow if the edge already exists.
    """
    with tracer.start_as_current_span("toggle_follow"):
        target_id = parse_identity(user_id)
        if target_id == current_user.user_id:
            raise ValidationError("You cannot follow yourself")

        target = await _get_user_or_404(db, target_id)

        edge = await db.get(Follow, (current_user.user_id, target.user_id))
        if edge:
            await db.delete(edge)
            is_following = False
        else:
            db.add(Follow(follower_id=current_user.user_id, followee_id=target.user_id))
            is_following = True
        await db.flush()

        logger.info(
            "%s %s %s",
            current_user.user_id,
            "followed" if is_following else "unfollowed",
            target.user_id,
        )
        return FollowToggleResponse(
            message="Followed successfully" if is_following else "Unfollowed successfully",
            is_following=is_following,
            follower_count=await _follower_count(db, target.user_id),
        )


@router.get("/{user_id}/followers", response_model=FollowersResponse)
async def list_followers(user_id: str, db: AsyncSession = Depends(get_db)):
    user = await _get_user_or_404(db, user_id)
    rows = await db.execute(
        select(User)
        .join(Follow, Follow.follower_id == User.user_id)
        .where(Follow.followee_id == user.user_id)
        .order_by(Follow.created_at)
    )
    return FollowersResponse(followers=[public_user(u) for u in rows.scalars().all()])


@router.get("/{user_id}/following", response_model=FollowingResponse)
async def list_following(user_id: str, db: AsyncSession = Depends(get_db)):
    user = await _get_user_or_404(db, user_id)
    rows = await db.execute(
        select(User)
        .join(Follow, Follow.followee_id == User.user_id)
        .where(Follow.follower_id == user.user_id)
        .order_by(Follow.created_at)
    )
    return FollowingResponse(following=[public_user(u) for u in rows.scalars().all()])
