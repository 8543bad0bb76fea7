"""Agent chat conversation and message models."""

from datetime import datetime, timezone
from typing import Any
from pydantic import BaseModel, ConfigDict, Field


DID = str


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChatMessage(BaseModel):
    """A single message exchanged between two agents.

    Inbound messages are accepted with missing fields so the validator can
    reject them with a useful error instead of a schema failure.
    """

    model_config = ConfigDict(populate_by_name=True)

    from_: DID | None = Field(None, alias="from", description="DID of the authoring agent")
    content: str | None = Field(None, description="Message content")
    created: datetime | None = Field(None, description="Creation timestamp")
    metadata: dict[str, Any] | None = Field(None, description="Side-channel data, e.g. resolution")


class ChatMessageHistory(BaseModel):
    """Chronological message history of one agent chat."""

    messages: list[ChatMessage] | None = Field(default_factory=list)


class AgentChatKey(BaseModel):
    """Identifies one chat between a local user's agent and a peer agent."""

    model_config = ConfigDict(frozen=True)

    uid: int | str = Field(..., description="User the local agent represents")
    user_agent_did: DID = Field(..., description="Local (server side) agent DID")
    peer_agent_did: DID = Field(..., description="Client/peer agent DID, usually with a fragment")


class AgentChat(BaseModel):
    """A persisted agent chat."""

    uid: int | str
    user_agent_did: DID
    peer_agent_did: DID
    cid: int = Field(..., description="Store assigned chat ID")
    created: datetime = Field(default_factory=_utcnow, description="Creation timestamp")
    updated: datetime = Field(default_factory=_utcnow, description="Last update timestamp")
    cost: float = Field(0.0, description="Accumulated reply generation cost")
    aimodel: str | None = Field(None, description="Model used for replies")
    history: ChatMessageHistory | None = Field(None, description="Message history")
    user_resolution: Any = Field(None, description="Resolution reported by the local agent")
    peer_resolution: Any = Field(None, description="Resolution reported by the peer agent")

    @property
    def key(self) -> AgentChatKey:
        return AgentChatKey(
            uid=self.uid,
            user_agent_did=self.user_agent_did,
            peer_agent_did=self.peer_agent_did,
        )


class ChatMessageEnvelope(BaseModel):
    """Inbound request wrapper."""

    to: DID = Field(..., description="Local agent the message is addressed to")
    message: ChatMessage | None = Field(None, description="The inbound message")
    rewind: str | None = Field(None, description="Discard history at or after this timestamp")


class AgentSession(BaseModel):
    """An already authenticated peer agent session."""

    agent_did: DID


class HandleAgentChatMessageParams(BaseModel):
    """Input of one inbound chat turn."""

    envelope: ChatMessageEnvelope
    agent_session: AgentSession


class HandleAgentChatMessageResult(BaseModel):
    """Reply envelope returned to the peer."""

    reply: ChatMessage
