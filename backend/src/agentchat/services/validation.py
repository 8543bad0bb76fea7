"""Structural checks on inbound chat messages."""

from agentchat_models import DID, ChatMessage
from agentchat.errors import ValidationError


def validate_chat_message(message: ChatMessage | None, peer_agent_did: DID) -> ChatMessage:
    """Reject a message that is malformed or not authored by the session's agent.

    Purely local; must run before the chat store is touched.
    """
    if message is None:
        raise ValidationError("Missing chat message")
    if message.from_ != peer_agent_did:
        raise ValidationError(
            f"Chat message 'from' does not match session agentDid: {message.from_} != {peer_agent_did}"
        )
    if not message.created:
        raise ValidationError("Chat message missing 'created' property")
    if not message.content:
        raise ValidationError("Chat message missing content")
    return message
