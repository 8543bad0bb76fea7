"""Shared Pydantic models for agentchat."""

from agentchat_models.chat import (
    DID,
    AgentChat,
    AgentChatKey,
    AgentSession,
    ChatMessage,
    ChatMessageEnvelope,
    ChatMessageHistory,
    HandleAgentChatMessageParams,
    HandleAgentChatMessageResult,
)
from agentchat_models.account import Account
from agentchat_models.completion import (
    ChatCompletionResult,
    CompletionContext,
    GenerateChatReplyParams,
)
from agentchat_models.resolution import ResolutionState, ResolutionUpdate

__all__ = [
    # Chat
    "DID",
    "AgentChat",
    "AgentChatKey",
    "AgentSession",
    "ChatMessage",
    "ChatMessageEnvelope",
    "ChatMessageHistory",
    "HandleAgentChatMessageParams",
    "HandleAgentChatMessageResult",
    # Accounts
    "Account",
    # Reply generation
    "ChatCompletionResult",
    "CompletionContext",
    "GenerateChatReplyParams",
    # Resolution
    "ResolutionState",
    "ResolutionUpdate",
]
