"""Server side handling of a chat message from a peer agent.

One call handles one turn: validate the inbound message, record it in the
chat history (rewinding first if asked), generate and record the reply.
Every step is awaited in order and nothing is retried; a failure aborts the
turn and leaves already committed writes in place.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from agentchat_models import (
    DID,
    AgentChat,
    AgentChatKey,
    ChatMessage,
    GenerateChatReplyParams,
    HandleAgentChatMessageParams,
    HandleAgentChatMessageResult,
    ResolutionUpdate,
)
from agentchat.db import ChatStore, UNSET
from agentchat.services.reply import ReplyOrchestrator
from agentchat.services.rewind import ensure_chat_history_messages, rewind_chat
from agentchat.services.validation import validate_chat_message

logger = logging.getLogger(__name__)


@dataclass
class ChatHooks:
    """Collaborators of the chat handler."""

    resolve_uid_from_agent_did: Callable[[DID], Awaitable[int | str]]
    chat_store: ChatStore
    reply_orchestrator: ReplyOrchestrator


async def resolve_chat(
    key: AgentChatKey, message: ChatMessage, store: ChatStore
) -> tuple[AgentChat, bool]:
    """Fetch the chat for `key`, creating it seeded with `message` if missing.

    Returns the chat and whether it was created.
    """
    chat = await store.fetch_agent_chat(key)
    if chat is None:
        logger.warning(f"Failed to find history, creating new chat {key}")
        chat = await store.ensure_agent_chat(key, [message])
        ensure_chat_history_messages(chat)
        return chat, True

    ensure_chat_history_messages(chat)
    return chat, False


async def handle_agent_chat_message(
    params: HandleAgentChatMessageParams, hooks: ChatHooks
) -> HandleAgentChatMessageResult:
    """Handle one inbound chat message and return the local agent's reply."""
    store = hooks.chat_store
    envelope = params.envelope
    peer_agent_did = params.agent_session.agent_did
    user_agent_did = envelope.to

    uid = await hooks.resolve_uid_from_agent_did(user_agent_did)
    chat_key = AgentChatKey(uid=uid, user_agent_did=user_agent_did, peer_agent_did=peer_agent_did)

    message = validate_chat_message(envelope.message, peer_agent_did)

    chat, created = await resolve_chat(chat_key, message, store)
    if not created:
        if envelope.rewind:
            await rewind_chat(chat_key, envelope, store, chat)
        else:
            chat.history.messages.append(message)
            await store.insert_chat_message(chat_key, message, ignore_failure=True)

    peer_resolution = ResolutionUpdate.from_metadata(message.metadata)
    if peer_resolution.is_set:
        await store.update_chat_resolution(chat_key, user_resolution=UNSET, peer_resolution=peer_resolution)

    orchestrator = hooks.reply_orchestrator
    result = await orchestrator.generate_chat_reply(
        GenerateChatReplyParams(
            uid=uid,
            agent_did=user_agent_did,
            messages=chat.history.messages,
        )
    )
    await store.record_chat_cost(chat_key, result.cost)

    reply = result.reply
    await store.insert_chat_message(chat_key, reply)
    await orchestrator.apply_reply_resolution(chat_key, result)

    logger.info(f"Replied to {peer_agent_did} for chat {chat.cid} (cost={result.cost})")
    return HandleAgentChatMessageResult(reply=reply)
