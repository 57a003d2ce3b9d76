"""
Pydantic request / response schemas for the API layer.
Kept separate from ORM models to avoid coupling transport to storage.

Fields are snake_case in Python and camelCase on the wire (`receiverId`,
`lastMessage`, `unreadCount`, …); requests accept either spelling.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

from social_api.models import GENRES


def _as_utc(value: datetime) -> str:
    # storage is naive UTC; clients need the offset to avoid reading local time
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


UTCDateTime = Annotated[datetime, PlainSerializer(_as_utc, return_type=str, when_used="json")]


class APIModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class RequestModel(APIModel):
    model_config = ConfigDict(str_strip_whitespace=True)


Genre = Enum("Genre", {g: g for g in GENRES}, type=str)


# ──────────────────────────── Users / Auth ────────────────────────────────

class SignupRequest(RequestModel):
    username: str = Field(..., min_length=3, max_length=30, pattern=r"^[A-Za-z0-9_.]+$")
    email: str = Field(..., max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(..., min_length=6, max_length=128)
    display_name: Optional[str] = Field(None, max_length=255)


class LoginRequest(RequestModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class PublicUser(APIModel):
    """Profile fields safe to show to anyone — no e-mail, no password hash."""
    user_id: str
    username: str
    display_name: Optional[str] = None
    created_at: UTCDateTime


class PrivateUser(PublicUser):
    email: str


class AuthResponse(APIModel):
    success: bool = True
    token: str
    user: PrivateUser


class MeResponse(APIModel):
    success: bool = True
    user: PrivateUser


class UserListResponse(APIModel):
    success: bool = True
    users: list[PublicUser]


class UserProfile(PublicUser):
    follower_count: int
    following_count: int
    post_count: int
    total_likes: int
    total_views: int


class UserProfileResponse(APIModel):
    success: bool = True
    user: UserProfile


class FollowToggleResponse(APIModel):
    success: bool = True
    message: str
    is_following: bool
    follower_count: int


class FollowersResponse(APIModel):
    success: bool = True
    followers: list[PublicUser]


class FollowingResponse(APIModel):
    success: bool = True
    following: list[PublicUser]


# ──────────────────────────── Posts ───────────────────────────────────────

class PostCreate(RequestModel):
    content: Optional[str] = None
    # Base64-encoded image payload — stored in MinIO; optional
    image_base64: Optional[str] = None
    image_type: Optional[str] = Field(None, pattern="^(jpeg|jpg|png|gif|webp)$")
    is_promotion: bool = False
    genre: Genre = Genre.Other


class CommentCreate(RequestModel):
    text: str = Field(..., min_length=1)


class LikeResponse(APIModel):
    user_id: str
    username: str
    created_at: UTCDateTime


class CommentResponse(APIModel):
    comment_id: str
    user_id: str
    username: str
    text: str
    created_at: UTCDateTime


class PostResponse(APIModel):
    post_id: str
    user_id: str
    username: Optional[str] = None
    display_name: Optional[str] = None
    content: Optional[str]
    image_url: Optional[str]   # pre-signed MinIO URL
    is_promotion: bool
    genre: str
    views: int
    like_count: int
    comment_count: int
    likes: list[LikeResponse]
    comments: list[CommentResponse]
    created_at: UTCDateTime


class PostEnvelope(APIModel):
    success: bool = True
    message: str
    post: PostResponse


class PostDetailResponse(APIModel):
    success: bool = True
    post: PostResponse


class PostListResponse(APIModel):
    success: bool = True
    count: int
    posts: list[PostResponse]


class ViewResponse(APIModel):
    success: bool = True
    views: int
    message: str


# ──────────────────────────── Messages ────────────────────────────────────

class MessageCreate(RequestModel):
    receiver_id: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)


class MessageResponse(APIModel):
    message_id: str
    sender_id: str
    receiver_id: str
    content: str
    is_read: bool
    read_at: Optional[UTCDateTime] = None
    created_at: UTCDateTime
    # public profiles, filled in where the participants are already loaded
    sender: Optional[PublicUser] = None
    receiver: Optional[PublicUser] = None


class MessageSentResponse(APIModel):
    success: bool = True
    message: MessageResponse


class MessageListResponse(APIModel):
    success: bool = True
    messages: list[MessageResponse]


class ConversationResponse(APIModel):
    contact: PublicUser
    last_message: MessageResponse
    unread_count: int


class ConversationListResponse(APIModel):
    success: bool = True
    conversations: list[ConversationResponse]


class MarkReadResponse(APIModel):
    success: bool = True
    message: str
    updated: int


class AckResponse(APIModel):
    success: bool = True
    message: str


# ──────────────────────────── Builders ────────────────────────────────────

def public_user(user) -> PublicUser:
    return PublicUser(
        user_id=user.user_id,
        username=user.username,
        display_name=user.display_name,
        created_at=user.created_at,
    )


def private_user(user) -> PrivateUser:
    return PrivateUser(
        user_id=user.user_id,
        username=user.username,
        display_name=user.display_name,
        created_at=user.created_at,
        email=user.email,
    )


def message_response(msg, users: Optional[dict] = None) -> MessageResponse:
    """Render a message; `users` maps user_id to User for the nested profiles."""
    users = users or {}
    sender = users.get(msg.sender_id)
    receiver = users.get(msg.receiver_id)
    return MessageResponse(
        message_id=msg.message_id,
        sender_id=msg.sender_id,
        receiver_id=msg.receiver_id,
        content=msg.content,
        is_read=msg.is_read,
        read_at=msg.read_at,
        created_at=msg.created_at,
        sender=public_user(sender) if sender else None,
        receiver=public_user(receiver) if receiver else None,
    )
