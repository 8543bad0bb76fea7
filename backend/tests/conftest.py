"""Shared fixtures for agent chat tests."""

from datetime import datetime, timezone

import pytest

from agentchat.db import InMemoryChatStore
from agentchat.services.chat_handler import ChatHooks
from agentchat.services.completion import ScriptedCompletion
from agentchat.services.credit import CreditGate
from agentchat.services.identity import DidWebIdentity
from agentchat.services.reply import ReplyOrchestrator
from agentchat_models import (
    Account,
    AgentChat,
    AgentChatKey,
    AgentSession,
    ChatMessage,
    ChatMessageEnvelope,
    ChatMessageHistory,
    HandleAgentChatMessageParams,
)

HOST = "example.com"
UID = "7"
USER_AGENT_DID = f"did:web:{HOST}:iam:{UID}#agent-chat"
PEER_AGENT_DID = "did:web:peer.example:iam:3#agent-chat"

CHAT_KEY = AgentChatKey(uid=UID, user_agent_did=USER_AGENT_DID, peer_agent_did=PEER_AGENT_DID)


def at(year: int, month: int = 1, day: int = 1) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)


def make_message(content: str, created: datetime | None = None, **kwargs) -> ChatMessage:
    return ChatMessage(
        from_=kwargs.pop("from_", PEER_AGENT_DID),
        content=content,
        created=created or datetime.now(timezone.utc),
        **kwargs,
    )


def make_params(message: ChatMessage | None, rewind: str | None = None) -> HandleAgentChatMessageParams:
    return HandleAgentChatMessageParams(
        envelope=ChatMessageEnvelope(to=USER_AGENT_DID, message=message, rewind=rewind),
        agent_session=AgentSession(agent_did=PEER_AGENT_DID),
    )


def make_chat(messages: list[ChatMessage] | None, cid: int = 1) -> AgentChat:
    return AgentChat(
        cid=cid,
        uid=UID,
        user_agent_did=USER_AGENT_DID,
        peer_agent_did=PEER_AGENT_DID,
        history=ChatMessageHistory(messages=messages) if messages is not None else None,
    )


@pytest.fixture
def store() -> InMemoryChatStore:
    return InMemoryChatStore(accounts=[Account(uid=UID, name="Dave", credit=10.0)])


@pytest.fixture
def completion() -> ScriptedCompletion:
    return ScriptedCompletion()


@pytest.fixture
def orchestrator(store, completion) -> ReplyOrchestrator:
    return ReplyOrchestrator(
        store=store,
        ensure_credit_balance=CreditGate(0.0),
        completion=completion,
    )


@pytest.fixture
def hooks(store, orchestrator) -> ChatHooks:
    return ChatHooks(
        resolve_uid_from_agent_did=DidWebIdentity(HOST).resolve_uid_from_agent_did,
        chat_store=store,
        reply_orchestrator=orchestrator,
    )
