"""Rewinding a chat's history to an earlier point in time."""

import logging
from datetime import datetime, timezone

from agentchat_models import (
    AgentChat,
    AgentChatKey,
    ChatMessage,
    ChatMessageEnvelope,
    ChatMessageHistory,
)
from agentchat.db import ChatStore
from agentchat.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_rewind(rewind: str) -> datetime:
    """Parse an ISO-8601 rewind timestamp; naive values are UTC."""
    try:
        return _as_utc(datetime.fromisoformat(rewind))
    except ValueError as e:
        raise ValidationError(f"Invalid rewind timestamp: {rewind!r}") from e


def ensure_chat_history_messages(chat: AgentChat) -> list[ChatMessage]:
    """Lazily create the history containers of a chat."""
    if chat.history is None:
        chat.history = ChatMessageHistory(messages=[])
    elif chat.history.messages is None:
        chat.history.messages = []
    return chat.history.messages


def rewind_messages(
    rewind: str | None, messages: list[ChatMessage] | None = None
) -> list[ChatMessage]:
    """Drop every message created at or after `rewind`.

    When no message is that recent the whole history is dropped.
    """
    messages = messages or []
    if not rewind:
        return messages

    rewind_date = parse_rewind(rewind)
    index = next(
        (
            i
            for i, msg in enumerate(messages)
            if msg.created and _as_utc(msg.created) >= rewind_date
        ),
        -1,
    )

    rewind_index = index if index != -1 else 0
    rewound = messages[:rewind_index]

    logger.debug(f"Rewound to index {rewind_index}, kept {len(rewound)} of {len(messages)} messages")
    return rewound


async def rewind_chat(
    key: AgentChatKey,
    envelope: ChatMessageEnvelope,
    store: ChatStore,
    chat: AgentChat | None = None,
) -> ChatMessageHistory:
    """Rewind a stored chat and append the envelope's message.

    If `chat` is provided it is modified in place. The resulting history
    replaces the stored one.
    """
    if chat is None:
        chat = await store.fetch_agent_chat(key)
        if chat is None:
            raise NotFoundError(f"Failed to rewind; could not find chat {key} {envelope.rewind}")

    messages = ensure_chat_history_messages(chat)
    chat.history.messages = rewind_messages(envelope.rewind, messages)

    if envelope.message is not None:
        chat.history.messages.append(envelope.message)

    await store.update_chat_history(key, chat.history)
    return chat.history
