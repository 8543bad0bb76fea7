"""Completion providers used to generate chat replies.

A provider turns a chat history into a reply for one agent. The scripted
provider returns canned text and needs no model; the Claude provider lives
in `agentchat.services.claude_completion`.
"""

import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Protocol

from agentchat_models import DID, ChatCompletionResult, ChatMessage, CompletionContext
from agentchat.config import Settings

logger = logging.getLogger(__name__)

# Fenced ```json ... ``` blocks in model output
JSON_BLOCK_PATTERN = re.compile(r"```json\s*(.*?)\s*```", re.DOTALL | re.IGNORECASE)

SCRIPTED_REPLY = "Tell me more..."
SCRIPTED_COST = 0.01


class CompletionProvider(Protocol):
    """Generates the next reply of `agent_did` given the chat so far."""

    async def chat_completion(
        self, agent_did: DID, messages: list[ChatMessage]
    ) -> ChatCompletionResult: ...


def extract_json_fragments(text: str) -> tuple[list[dict[str, Any]], str]:
    """Split model output into JSON fragments and the remaining text.

    Only fenced blocks holding a JSON object are treated as fragments;
    anything else is left in the text.
    """
    fragments: list[dict[str, Any]] = []

    def _take(match: re.Match) -> str:
        try:
            value = json.loads(match.group(1))
        except json.JSONDecodeError:
            logger.debug("Ignoring fenced block that is not valid JSON")
            return match.group(0)
        if not isinstance(value, dict):
            return match.group(0)
        fragments.append(value)
        return ""

    text_without_json = JSON_BLOCK_PATTERN.sub(_take, text).strip()
    return fragments, text_without_json


class ScriptedCompletion:
    """Replies with fixed text; for development and tests."""

    def __init__(self, content: str = SCRIPTED_REPLY, cost: float = SCRIPTED_COST):
        self.content = content
        self.cost = cost

    async def chat_completion(
        self, agent_did: DID, messages: list[ChatMessage]
    ) -> ChatCompletionResult:
        logger.info(f"Scripted completion for {agent_did} over {len(messages)} messages")
        fragments, text = extract_json_fragments(self.content)
        reply = ChatMessage(
            from_=agent_did,
            content=text or self.content.strip(),
            created=datetime.now(timezone.utc),
        )
        return ChatCompletionResult(
            reply=reply,
            cost=self.cost,
            structured_output=fragments,
            text_without_json=text,
            context=CompletionContext(model="none:hello-script"),
        )


def build_completion_provider(settings: Settings) -> CompletionProvider:
    """Create the completion provider selected in settings."""
    if settings.completion_provider == "claude":
        from agentchat.services.claude_completion import ClaudeCompletion

        return ClaudeCompletion(api_key=settings.anthropic_api_key, model=settings.claude_model)
    return ScriptedCompletion()
