"""
quizmize.services.chat_service — Persisted Group Chat
======================================================
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import select

from quizmize.constants import CHAT_HISTORY_LIMIT, CHAT_MESSAGE_MAX_LENGTH
from quizmize.database.engine import get_session
from quizmize.database.models import Account, ChatMessage
from quizmize.engine import membership
from quizmize.errors import NotFoundError, ValidationError
from quizmize.services.group_service import NOT_MEMBER, load_group

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


def message_dict(m: ChatMessage) -> dict:
    return {
        "id": str(m.id),
        "groupId": str(m.group_id),
        "userId": str(m.author_id),
        "userName": m.author_name,
        "content": m.content,
        "createdAt": m.created_at.isoformat() if m.created_at else None,
    }


def get_chat_history(
    engine: Engine, group_id: int, limit: int = CHAT_HISTORY_LIMIT
) -> list[dict]:
    """The most recent *limit* messages, oldest first."""
    with get_session(engine) as session:
        recent = session.scalars(
            select(ChatMessage)
            .where(ChatMessage.group_id == group_id)
            .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
            .limit(limit)
        ).all()
        return [message_dict(m) for m in reversed(recent)]


def post_message(engine: Engine, group_id: int, account_id: int, content: str) -> dict:
    text = (content or "").strip()
    if not text:
        raise ValidationError("Message cannot be empty")
    if len(text) > CHAT_MESSAGE_MAX_LENGTH:
        raise ValidationError(
            f"Message must be at most {CHAT_MESSAGE_MAX_LENGTH} characters"
        )

    with get_session(engine) as session:
        group = load_group(session, group_id)
        membership.require_member(group.members, account_id, message=NOT_MEMBER)
        author = session.get(Account, account_id)
        if author is None:
            raise NotFoundError("Account not found")
        message = ChatMessage(
            group_id=group.id,
            author_id=author.id,
            author_name=author.full_name or author.email,
            content=text,
        )
        session.add(message)
        session.flush()
        session.refresh(message)
        return message_dict(message)
