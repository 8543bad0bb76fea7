"""Reply generation models."""

from typing import Any
from pydantic import BaseModel, Field

from agentchat_models.chat import DID, ChatMessage


class GenerateChatReplyParams(BaseModel):
    """Input for reply generation."""

    uid: int | str
    agent_did: DID = Field(..., description="Agent the reply is generated for")
    messages: list[ChatMessage] = Field(default_factory=list)


class CompletionContext(BaseModel):
    """How a reply was produced."""

    model: str
    params: dict[str, Any] = Field(default_factory=dict)
    response: dict[str, Any] = Field(default_factory=dict)
    prompt_markdown: str = ""


class ChatCompletionResult(BaseModel):
    """A generated reply and what it cost."""

    reply: ChatMessage
    cost: float = Field(0.0, description="Cost attributed to the chat")
    structured_output: list[dict[str, Any]] = Field(
        default_factory=list, description="JSON fragments, each may carry metadata"
    )
    text_without_json: str | None = Field(None, description="Reply text with JSON fragments removed")
    metadata: dict[str, Any] | None = Field(
        None, description="Metadata of the first structured output fragment that has any"
    )
    context: CompletionContext | None = None
