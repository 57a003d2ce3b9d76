"""
Conversation aggregation — GET /api/messages/conversations

Turns a user's direct messages into one summary per counterpart:

  Step 1 │ Load every message the requester sent or received.
  Step 2 │ Partition by counterpart (the id on the other side).
  Step 3 │ Reduce each partition to
         │   • last message  — max by (created_at, message_id)
         │   • unread count  — messages *to* the requester still unread
  Step 4 │ Hydrate counterparts with their public profile; drop partitions
         │ whose user no longer exists.
  Step 5 │ Order by last message, most recent first.

The fold is storage-free (`summarize_conversations`) so it can be reasoned
about and tested on plain Message objects; `list_conversations` wraps it with
the two queries it needs. Read-only: no isolation against concurrent sends.
"""
import logging
from dataclasses import dataclass
from typing import Iterable

from opentelemetry import trace
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from social_api.models import Message, User

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass
class ConversationFold:
    """Per-counterpart accumulator."""
    counterpart_id: str
    last_message: Message
    unread_count: int = 0


@dataclass
class ConversationSummary:
    contact: User
    last_message: Message
    unread_count: int


def counterpart_of(message: Message, requester_id: str) -> str:
    """The participant on the other side of `message` from the requester.

    A message the requester sent to themself has the requester as counterpart.
    """
    return message.receiver_id if message.sender_id == requester_id else message.sender_id


def recency_key(message: Message) -> tuple:
    # equal timestamps fall back to the larger message_id so the order is total
    return (message.created_at, message.message_id)


def summarize_conversations(
    requester_id: str, messages: Iterable[Message]
) -> list[ConversationFold]:
    """Fold messages into per-counterpart summaries, most recent first.

    Messages not involving the requester are ignored.
    """
    folds: dict[str, ConversationFold] = {}

    for msg in messages:
        if requester_id not in (msg.sender_id, msg.receiver_id):
            continue

        cid = counterpart_of(msg, requester_id)
        fold = folds.get(cid)
        if fold is None:
            fold = folds[cid] = ConversationFold(counterpart_id=cid, last_message=msg)
        elif recency_key(msg) > recency_key(fold.last_message):
            fold.last_message = msg

        if msg.receiver_id == requester_id and not msg.is_read:
            fold.unread_count += 1

    return sorted(
        folds.values(), key=lambda f: recency_key(f.last_message), reverse=True
    )


async def list_conversations(
    db: AsyncSession, requester_id: str
) -> list[ConversationSummary]:
    """Load, fold and hydrate the requester's conversation list."""
    with tracer.start_as_current_span("list_conversations") as span:
        span.set_attribute("user.id", requester_id)

        rows = await db.execute(
            select(Message).where(
                or_(
                    Message.sender_id == requester_id,
                    Message.receiver_id == requester_id,
                )
            )
        )
        messages = rows.scalars().all()
        folds = summarize_conversations(requester_id, messages)
        if not folds:
            return []

        contact_rows = await db.execute(
            select(User).where(User.user_id.in_([f.counterpart_id for f in folds]))
        )
        contacts = {u.user_id: u for u in contact_rows.scalars().all()}

        summaries = [
            ConversationSummary(
                contact=contacts[f.counterpart_id],
                last_message=f.last_message,
                unread_count=f.unread_count,
            )
            for f in folds
            if f.counterpart_id in contacts
        ]

        dropped = len(folds) - len(summaries)
        if dropped:
            logger.warning(
                "Dropped %d conversation(s) for %s with deleted counterparts",
                dropped, requester_id,
            )

        span.set_attribute("messages.scanned", len(messages))
        span.set_attribute("conversations.count", len(summaries))
        return summaries
