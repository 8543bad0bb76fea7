"""In-memory chat store for tests and local development.

Keeps state in plain dicts and records every call so tests can verify
which store operations a turn performed.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from agentchat_models import (
    Account,
    AgentChat,
    AgentChatKey,
    ChatMessage,
    ChatMessageHistory,
    ResolutionUpdate,
)
from agentchat.db.base import UNSET
from agentchat.errors import CollaboratorError

logger = logging.getLogger(__name__)


class InMemoryChatStore:
    """Chat store backed by process memory."""

    def __init__(
        self,
        accounts: list[Account] | None = None,
        fail_on: set[str] | None = None,
    ):
        self.accounts: dict[str, Account] = {str(a.uid): a for a in accounts or []}
        self.chats: dict[AgentChatKey, AgentChat] = {}
        self.calls: list[tuple[str, Any]] = []
        self.fail_on: set[str] = set(fail_on or ())
        self._next_cid = 1

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        if name in self.fail_on:
            raise CollaboratorError(f"Simulated {name} failure")

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def add_chat(self, chat: AgentChat) -> AgentChat:
        """Seed a chat directly, bypassing call recording."""
        self.chats[chat.key] = chat
        self._next_cid = max(self._next_cid, chat.cid + 1)
        return chat

    def _require_chat(self, key: AgentChatKey) -> AgentChat:
        chat = self.chats.get(key)
        if not chat:
            raise CollaboratorError(f"No chat stored for {key}")
        return chat

    # ============= Account Operations =============

    async def fetch_account_fields(
        self, uid: int | str, fields: str | None = None
    ) -> Account | None:
        self._record("fetch_account_fields", uid, fields)
        account = self.accounts.get(str(uid))
        return account.model_copy() if account else None

    # ============= Agent Chat Operations =============

    async def fetch_agent_chat(self, key: AgentChatKey) -> AgentChat | None:
        self._record("fetch_agent_chat", key)
        chat = self.chats.get(key)
        return chat.model_copy(deep=True) if chat else None

    async def ensure_agent_chat(
        self, key: AgentChatKey, messages: list[ChatMessage] | None = None
    ) -> AgentChat:
        self._record("ensure_agent_chat", key, messages)
        chat = self.chats.get(key)
        if not chat:
            chat = AgentChat(
                cid=self._next_cid,
                uid=key.uid,
                user_agent_did=key.user_agent_did,
                peer_agent_did=key.peer_agent_did,
                history=ChatMessageHistory(
                    messages=[m.model_copy(deep=True) for m in messages or []]
                ),
            )
            self._next_cid += 1
            self.chats[key] = chat
            logger.debug(f"Created chat {chat.cid} for {key}")
        return chat.model_copy(deep=True)

    async def insert_chat_message(
        self, key: AgentChatKey, message: ChatMessage, ignore_failure: bool = False
    ) -> None:
        try:
            self._record("insert_chat_message", key, message, ignore_failure)
            chat = self._require_chat(key)
        except CollaboratorError as e:
            if not ignore_failure:
                raise
            logger.warning(f"Ignoring failure to insert chat message for {key}: {e}")
            return

        if chat.history is None:
            chat.history = ChatMessageHistory()
        if chat.history.messages is None:
            chat.history.messages = []
        chat.history.messages.append(message.model_copy(deep=True))
        chat.updated = datetime.now(timezone.utc)

    async def update_chat_history(
        self, key: AgentChatKey, history: ChatMessageHistory
    ) -> None:
        self._record("update_chat_history", key, history)
        chat = self._require_chat(key)
        chat.history = history.model_copy(deep=True)
        chat.updated = datetime.now(timezone.utc)

    async def update_chat_resolution(
        self,
        key: AgentChatKey,
        user_resolution: ResolutionUpdate = UNSET,
        peer_resolution: ResolutionUpdate = UNSET,
    ) -> None:
        self._record("update_chat_resolution", key, user_resolution, peer_resolution)
        chat = self._require_chat(key)
        chat.user_resolution = user_resolution.apply(chat.user_resolution)
        chat.peer_resolution = peer_resolution.apply(chat.peer_resolution)
        chat.updated = datetime.now(timezone.utc)

    async def record_chat_cost(self, key: AgentChatKey, cost: float | None) -> None:
        self._record("record_chat_cost", key, cost)
        chat = self._require_chat(key)
        chat.cost += cost or 0.0
