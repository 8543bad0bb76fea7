"""Claude completion provider.

Replies are generated with the Anthropic Messages API. The model may append
fenced ```json blocks carrying metadata (for example a resolution); these
are returned as structured output and stripped from the reply content.
"""

import logging
from datetime import datetime, timezone

import anthropic

from agentchat_models import DID, ChatCompletionResult, ChatMessage, CompletionContext
from agentchat.errors import CollaboratorError
from agentchat.services.completion import extract_json_fragments

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"

# USD per million tokens
INPUT_COST_PER_MTOK = 3.0
OUTPUT_COST_PER_MTOK = 15.0


def build_system_prompt(agent_did: DID) -> str:
    return f"""You are the agent {agent_did}, chatting with another agent on behalf of your user.

Reply to the peer's latest message. If the conversation has reached an outcome,
append a fenced ```json block of the form {{"metadata": {{"resolution": ...}}}}."""


def to_anthropic_messages(agent_did: DID, messages: list[ChatMessage]) -> list[dict]:
    """Map chat history to Messages API turns; the agent's own messages are the assistant's.

    Messages without content are skipped since the API rejects empty turns.
    """
    return [
        {
            "role": "assistant" if msg.from_ == agent_did else "user",
            "content": msg.content,
        }
        for msg in messages
        if msg.content and msg.content.strip()
    ]


class ClaudeCompletion:
    """Completion provider backed by Claude."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_tokens: int = 1024,
        client: anthropic.AsyncAnthropic | None = None,
    ):
        self.model = model or DEFAULT_MODEL
        self.max_tokens = max_tokens
        self.client = client or anthropic.AsyncAnthropic(api_key=api_key or None)

    def cost_of(self, usage) -> float:
        if not usage:
            return 0.0
        return (
            usage.input_tokens * INPUT_COST_PER_MTOK
            + usage.output_tokens * OUTPUT_COST_PER_MTOK
        ) / 1_000_000

    async def chat_completion(
        self, agent_did: DID, messages: list[ChatMessage]
    ) -> ChatCompletionResult:
        system = build_system_prompt(agent_did)
        params = {"model": self.model, "max_tokens": self.max_tokens}

        try:
            response = await self.client.messages.create(
                system=system,
                messages=to_anthropic_messages(agent_did, messages),
                **params,
            )
        except anthropic.APIError as e:
            logger.error(f"Anthropic API error: {e}")
            raise CollaboratorError(f"Claude completion failed: {e}") from e

        text = "".join(block.text for block in response.content if block.type == "text")
        fragments, text_without_json = extract_json_fragments(text)
        # a reply that is only JSON keeps its raw text as content
        content = text_without_json or text.strip()
        cost = self.cost_of(response.usage)
        logger.info(f"Claude completion for {agent_did}: cost={cost:.6f}, fragments={len(fragments)}")

        return ChatCompletionResult(
            reply=ChatMessage(
                from_=agent_did,
                content=content,
                created=datetime.now(timezone.utc),
            ),
            cost=cost,
            structured_output=fragments,
            text_without_json=text_without_json,
            context=CompletionContext(
                model=f"anthropic:{self.model}",
                params=params,
                response={"stop_reason": response.stop_reason},
                prompt_markdown=system,
            ),
        )
