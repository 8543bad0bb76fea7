"""Chat store interface consumed by the chat handler."""

from typing import Protocol

from agentchat_models import (
    Account,
    AgentChat,
    AgentChatKey,
    ChatMessage,
    ChatMessageHistory,
    ResolutionUpdate,
)


UNSET = ResolutionUpdate.unset()


class ChatStore(Protocol):
    """Persistence for agent chats and the accounts they are billed to."""

    async def fetch_account_fields(
        self, uid: int | str, fields: str | None = None
    ) -> Account | None: ...

    async def fetch_agent_chat(self, key: AgentChatKey) -> AgentChat | None: ...

    async def ensure_agent_chat(
        self, key: AgentChatKey, messages: list[ChatMessage] | None = None
    ) -> AgentChat: ...

    async def insert_chat_message(
        self, key: AgentChatKey, message: ChatMessage, ignore_failure: bool = False
    ) -> None: ...

    async def update_chat_history(
        self, key: AgentChatKey, history: ChatMessageHistory
    ) -> None: ...

    async def update_chat_resolution(
        self,
        key: AgentChatKey,
        user_resolution: ResolutionUpdate = UNSET,
        peer_resolution: ResolutionUpdate = UNSET,
    ) -> None: ...

    async def record_chat_cost(self, key: AgentChatKey, cost: float | None) -> None: ...


def message_to_json(message: ChatMessage) -> dict:
    """Serialize a message the way it is stored."""
    data = message.model_dump(mode="json", by_alias=True)
    return {k: v for k, v in data.items() if v is not None}
