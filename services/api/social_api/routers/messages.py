"""
Direct-message endpoints (all require a bearer token):
  POST   /api/messages                       — send a message
  GET    /api/messages/conversations         — one summary per counterpart
  GET    /api/messages/{userId}              — thread with a counterpart, oldest first
  PATCH  /api/messages/read/{userId}         — mark the counterpart's messages read
  DELETE /api/messages/conversation/{userId} — delete the thread, both directions

Each request is one session/transaction; nothing is shared in memory, so
concurrent mark-read calls converge on "all read" through the store alone.
"""
import logging
import time

from fastapi import APIRouter, Depends, status
from opentelemetry import trace
from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from social_api.conversations import list_conversations
from social_api.database import get_db
from social_api.errors import NotFound, ValidationError, parse_identity
from social_api.models import Message, User, utcnow
from social_api.schemas import (
    AckResponse,
    ConversationListResponse,
    ConversationResponse,
    MarkReadResponse,
    MessageCreate,
    MessageListResponse,
    MessageSentResponse,
    message_response,
    public_user,
)
from social_api.security import get_current_user
from social_api.telemetry import (
    CONVERSATION_LIST_LATENCY,
    MESSAGES_MARKED_READ_TOTAL,
    MESSAGES_SENT_TOTAL,
)

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


def _between(a: str, b: str):
    """Filter matching every message exchanged by a and b, either direction."""
    return or_(
        and_(Message.sender_id == a, Message.receiver_id == b),
        and_(Message.sender_id == b, Message.receiver_id == a),
    )


@router.post("", response_model=MessageSentResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    body: MessageCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    with tracer.start_as_current_span("send_message") as span:
        receiver_id = parse_identity(body.receiver_id)
        if receiver_id == current_user.user_id:
            raise ValidationError("You cannot message yourself")

        receiver = await db.get(User, receiver_id)
        if not receiver:
            raise NotFound("User not found")

        msg = Message(
            sender_id=current_user.user_id,
            receiver_id=receiver_id,
            content=body.content,
            is_read=False,
            created_at=utcnow(),
        )
        db.add(msg)
        await db.flush()   # assigns message_id

        span.set_attribute("message.id", msg.message_id)
        MESSAGES_SENT_TOTAL.inc()
        logger.info(
            "Message %s sent %s -> %s", msg.message_id, msg.sender_id, msg.receiver_id
        )
        return MessageSentResponse(
            message=message_response(
                msg, {current_user.user_id: current_user, receiver.user_id: receiver}
            )
        )


@router.get("/conversations", response_model=ConversationListResponse)
async def get_conversations(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    start = time.perf_counter()
    summaries = await list_conversations(db, current_user.user_id)
    CONVERSATION_LIST_LATENCY.observe(time.perf_counter() - start)

    logger.debug(
        "Found %d conversations for %s", len(summaries), current_user.user_id
    )
    return ConversationListResponse(
        conversations=[
            ConversationResponse(
                contact=public_user(s.contact),
                last_message=message_response(
                    s.last_message,
                    {current_user.user_id: current_user, s.contact.user_id: s.contact},
                ),
                unread_count=s.unread_count,
            )
            for s in summaries
        ]
    )


@router.get("/{user_id}", response_model=MessageListResponse)
async def get_messages(
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Whole thread with one counterpart, oldest first. Reading does not mark read."""
    other_id = parse_identity(user_id)
    rows = await db.execute(
        select(Message)
        .where(_between(current_user.user_id, other_id))
        .order_by(Message.created_at, Message.message_id)
    )
    users = {current_user.user_id: current_user}
    other = await db.get(User, other_id)
    if other:
        users[other.user_id] = other
    return MessageListResponse(
        messages=[message_response(m, users) for m in rows.scalars().all()]
    )


@router.patch("/read/{user_id}", response_model=MarkReadResponse)
async def mark_read(
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Flag every unread message the counterpart sent to the caller as read.
    Idempotent: a repeat call matches no rows and still succeeds.
    """
    with tracer.start_as_current_span("mark_read") as span:
        other_id = parse_identity(user_id)
        result = await db.execute(
            update(Message)
            .where(
                Message.sender_id == other_id,
                Message.receiver_id == current_user.user_id,
                Message.is_read == False,  # noqa: E712
            )
            .values(is_read=True, read_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        updated = result.rowcount or 0

        span.set_attribute("messages.updated", updated)
        MESSAGES_MARKED_READ_TOTAL.inc(updated)
        if updated:
            logger.info(
                "Marked %d message(s) from %s to %s as read",
                updated, other_id, current_user.user_id,
            )
        return MarkReadResponse(message="Messages marked as read", updated=updated)


@router.delete("/conversation/{user_id}", response_model=AckResponse)
async def delete_conversation(
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Hard-delete the thread for both participants. No soft delete, no audit."""
    with tracer.start_as_current_span("delete_conversation"):
        other_id = parse_identity(user_id)
        result = await db.execute(
            delete(Message)
            .where(_between(current_user.user_id, other_id))
            .execution_options(synchronize_session=False)
        )
        logger.info(
            "Conversation %s <-> %s deleted (%s messages)",
            current_user.user_id, other_id, result.rowcount,
        )
        return AckResponse(message="Conversation deleted")
