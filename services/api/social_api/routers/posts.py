"""
Post endpoints:
  POST   /api/posts                          — create a post (text and/or image)
  GET    /api/posts?isPromotion=&genre=      — public feed, newest first
  GET    /api/posts/my-posts                 — the caller's own posts
  GET    /api/posts/{id}                     — fetch a single post
  POST   /api/posts/{id}/like                — like / unlike (toggle)
  POST   /api/posts/{id}/comment             — add a comment
  DELETE /api/posts/{id}/comment/{commentId} — delete own comment
  POST   /api/posts/{id}/view                — count a unique view
  DELETE /api/posts/{id}                     — delete own post
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from opentelemetry import trace
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from social_api.clients.minio_client import delete_media, get_presigned_url, upload_image
from social_api.config import settings
from social_api.database import get_db
from social_api.errors import Forbidden, NotFound, ValidationError
from social_api.models import Comment, Like, Post, PostView, User, utcnow
from social_api.schemas import (
    AckResponse,
    CommentCreate,
    CommentResponse,
    Genre,
    LikeResponse,
    PostCreate,
    PostEnvelope,
    PostDetailResponse,
    PostListResponse,
    PostResponse,
    ViewResponse,
)
from social_api.security import get_current_user
from social_api.telemetry import POST_INGESTION_TOTAL

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


def _build_post_response(post: Post) -> PostResponse:
    return PostResponse(
        post_id=post.post_id,
        user_id=post.user_id,
        username=post.author.username if post.author else None,
        display_name=post.author.display_name if post.author else None,
        content=post.content,
        image_url=get_presigned_url(post.media_key),
        is_promotion=post.is_promotion,
        genre=post.genre,
        views=post.views,
        like_count=len(post.likes),
        comment_count=len(post.comments),
        likes=[
            LikeResponse(user_id=l.user_id, username=l.username, created_at=l.created_at)
            for l in post.likes
        ],
        comments=[
            CommentResponse(
                comment_id=c.comment_id,
                user_id=c.user_id,
                username=c.username,
                text=c.text,
                created_at=c.created_at,
            )
            for c in post.comments
        ],
        created_at=post.created_at,
    )


async def _get_post_or_404(db: AsyncSession, post_id: str) -> Post:
    post = await db.get(Post, post_id)
    if not post:
        raise NotFound("Post not found")
    return post


@router.post("", response_model=PostEnvelope, status_code=status.HTTP_201_CREATED)
async def create_post(
    body: PostCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    1. Validate: text, an image, or both.
    2. Upload the image to MinIO (if provided).
    3. Persist post metadata.
    """
    with tracer.start_as_current_span("create_post") as span:
        content = body.content or None
        if not content and not body.image_base64:
            raise ValidationError("Post must contain either text or an image")
        if content and len(content) > settings.post_max_length:
            raise ValidationError(
                f"Post content cannot exceed {settings.post_max_length} characters"
            )

        media_key = None
        if body.image_base64:
            if not body.image_type:
                raise ValidationError("imageType is required when an image is attached")
            media_key = upload_image(body.image_base64, body.image_type)

        post = Post(
            author=current_user,
            content=content,
            media_key=media_key,
            is_promotion=body.is_promotion,
            genre=body.genre.value,
            views=0,
            likes=[],
            comments=[],
        )
        db.add(post)
        try:
            await db.flush()     # materialise post_id / created_at
        except Exception:
            if media_key:
                delete_media(media_key)
            raise

        span.set_attribute("post.id", post.post_id)
        span.set_attribute("post.user_id", post.user_id)

        POST_INGESTION_TOTAL.inc()
        logger.info("Post created: %s by user %s", post.post_id, post.user_id)
        return PostEnvelope(message="Post created successfully", post=_build_post_response(post))


@router.get("", response_model=PostListResponse)
async def list_posts(
    is_promotion: Optional[bool] = Query(None, alias="isPromotion"),
    genre: Optional[Genre] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    stmt = select(Post).order_by(Post.created_at.desc(), Post.post_id.desc())
    if is_promotion is not None:
        stmt = stmt.where(Post.is_promotion == is_promotion)
    if genre is not None:
        stmt = stmt.where(Post.genre == genre.value)

    posts = (await db.execute(stmt)).scalars().all()
    return PostListResponse(count=len(posts), posts=[_build_post_response(p) for p in posts])


@router.get("/my-posts", response_model=PostListResponse)
async def my_posts(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rows = await db.execute(
        select(Post)
        .where(Post.user_id == current_user.user_id)
        .order_by(Post.created_at.desc(), Post.post_id.desc())
    )
    posts = rows.scalars().all()
    return PostListResponse(count=len(posts), posts=[_build_post_response(p) for p in posts])


@router.get("/{post_id}", response_model=PostDetailResponse)
async def get_post(post_id: str, db: AsyncSession = Depends(get_db)):
    return PostDetailResponse(post=_build_post_response(await _get_post_or_404(db, post_id)))


@router.post("/{post_id}/like", response_model=PostEnvelope)
async def toggle_like(
    post_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Like a post, or remove the like if the caller already liked it."""
    with tracer.start_as_current_span("toggle_like"):
        post = await _get_post_or_404(db, post_id)

        existing = next((l for l in post.likes if l.user_id == current_user.user_id), None)
        if existing:
            post.likes.remove(existing)
        else:
            post.likes.append(
                Like(
                    user_id=current_user.user_id,
                    username=current_user.username,
                    created_at=utcnow(),
                )
            )
        await db.flush()

        return PostEnvelope(
            message="Post unliked" if existing else "Post liked",
            post=_build_post_response(post),
        )


@router.post("/{post_id}/comment", response_model=PostEnvelope)
async def add_comment(
    post_id: str,
    body: CommentCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    with tracer.start_as_current_span("add_comment"):
        if len(body.text) > settings.comment_max_length:
            raise ValidationError(
                f"Comment cannot exceed {settings.comment_max_length} characters"
            )
        post = await _get_post_or_404(db, post_id)

        post.comments.append(
            Comment(
                user_id=current_user.user_id,
                username=current_user.username,
                text=body.text,
                created_at=utcnow(),
            )
        )
        await db.flush()   # assigns comment_id

        return PostEnvelope(message="Comment added successfully", post=_build_post_response(post))


@router.delete("/{post_id}/comment/{comment_id}", response_model=PostEnvelope)
async def delete_comment(
    post_id: str,
    comment_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    post = await _get_post_or_404(db, post_id)

    comment = next((c for c in post.comments if c.comment_id == comment_id), None)
    if comment is None:
        raise NotFound("Comment not found")
    if comment.user_id != current_user.user_id:
        raise Forbidden("You are not authorized to delete this comment")

    post.comments.remove(comment)
    await db.flush()
    return PostEnvelope(message="Comment deleted successfully", post=_build_post_response(post))


@router.post("/{post_id}/view", response_model=ViewResponse)
async def track_view(
    post_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Count a view the first time each user opens the post."""
    post = await _get_post_or_404(db, post_id)

    already_viewed = await db.get(PostView, (post.post_id, current_user.user_id))
    if not already_viewed:
        db.add(PostView(post_id=post.post_id, user_id=current_user.user_id))
        post.views += 1
        await db.flush()

    return ViewResponse(
        views=post.views,
        message="Already viewed" if already_viewed else "View tracked",
    )


@router.delete("/{post_id}", response_model=AckResponse)
async def delete_post(
    post_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    with tracer.start_as_current_span("delete_post"):
        post = await _get_post_or_404(db, post_id)
        if post.user_id != current_user.user_id:
            raise Forbidden("You are not authorized to delete this post")

        media_key = post.media_key
        await db.execute(delete(PostView).where(PostView.post_id == post.post_id))
        await db.delete(post)   # likes and comments go with it
        await db.flush()

        if media_key:
            delete_media(media_key)

        logger.info("Post deleted: %s by user %s", post_id, current_user.user_id)
        return AckResponse(message="Post deleted successfully")
