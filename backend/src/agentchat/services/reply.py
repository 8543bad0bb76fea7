"""Reply generation for the local agent.

A reply is only generated for an account with enough credit. An agent that
has not spoken yet introduces itself; after that the completion provider
writes the reply. Metadata in the provider's structured output (the first
fragment that has any) is attached to the reply and may update the chat's
resolution.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Protocol

from agentchat_models import (
    DID,
    Account,
    AgentChatKey,
    ChatCompletionResult,
    ChatMessage,
    CompletionContext,
    GenerateChatReplyParams,
    ResolutionUpdate,
)
from agentchat.db import ChatStore, UNSET
from agentchat.errors import AccountNotFoundError
from agentchat.services.completion import CompletionProvider

logger = logging.getLogger(__name__)

ACCOUNT_REPLY_FIELDS = "uid,name,credit"
INTRODUCTION_COST = 0.01

EnsureCreditBalance = Callable[[int | str, Account | None], Awaitable[None]]


class ReplyStrategy(Protocol):
    """One way of producing the local agent's reply."""

    async def generate(
        self, account: Account, params: GenerateChatReplyParams
    ) -> ChatCompletionResult: ...


class IntroductionStrategy:
    """Scripted greeting used before the agent has said anything."""

    def __init__(self, cost: float = INTRODUCTION_COST):
        self.cost = cost

    async def generate(
        self, account: Account, params: GenerateChatReplyParams
    ) -> ChatCompletionResult:
        reply = ChatMessage(
            from_=params.agent_did,
            content=f"My name is {account.name}. Nice to meet you!",
            created=datetime.now(timezone.utc),
        )
        return ChatCompletionResult(
            reply=reply,
            cost=self.cost,
            structured_output=[],
            text_without_json=reply.content,
            context=CompletionContext(model="none:introduction-script"),
        )


class CompletionStrategy:
    """Delegates to a completion provider."""

    def __init__(self, provider: CompletionProvider):
        self.provider = provider

    async def generate(
        self, account: Account, params: GenerateChatReplyParams
    ) -> ChatCompletionResult:
        return await self.provider.chat_completion(params.agent_did, params.messages)


def has_spoken(agent_did: DID, messages: list[ChatMessage]) -> bool:
    """Whether any message in the history was written by `agent_did`."""
    return any(msg.from_ == agent_did for msg in messages)


def extract_resolution_metadata(
    structured_output: list[dict[str, Any]] | None,
) -> dict[str, Any] | None:
    """Return the metadata of the first fragment that carries any.

    An empty metadata dict still counts and hides later fragments.
    """
    for fragment in structured_output or []:
        metadata = fragment.get("metadata") if isinstance(fragment, dict) else None
        if metadata is not None:
            return metadata
    return None


class ReplyOrchestrator:
    """Gates, dispatches and post-processes reply generation."""

    def __init__(
        self,
        store: ChatStore,
        ensure_credit_balance: EnsureCreditBalance,
        completion: CompletionProvider,
        introduction: ReplyStrategy | None = None,
    ):
        self.store = store
        self.ensure_credit_balance = ensure_credit_balance
        self.introduction = introduction or IntroductionStrategy()
        self.completion = CompletionStrategy(completion)

    def select_strategy(self, params: GenerateChatReplyParams) -> ReplyStrategy:
        if not has_spoken(params.agent_did, params.messages):
            logger.debug(f"No messages from {params.agent_did} yet, introducing myself")
            return self.introduction
        return self.completion

    async def generate_chat_reply(self, params: GenerateChatReplyParams) -> ChatCompletionResult:
        """Generate the reply of `params.agent_did` to the chat so far."""
        account = await self.store.fetch_account_fields(params.uid, ACCOUNT_REPLY_FIELDS)
        if not account:
            raise AccountNotFoundError(
                f"Unable to generate chat reply, cannot find user with id {params.uid}"
            )
        await self.ensure_credit_balance(params.uid, account)

        result = await self.select_strategy(params).generate(account, params)

        metadata = extract_resolution_metadata(result.structured_output)
        result.metadata = metadata
        if metadata is not None:
            result.reply.metadata = metadata
        return result

    async def apply_reply_resolution(self, key: AgentChatKey, result: ChatCompletionResult) -> None:
        """Record the resolution carried by the reply's structured output, if any.

        Metadata a provider set on the reply itself is ignored. An explicit
        None clears the user's recorded resolution.
        """
        update = ResolutionUpdate.from_metadata(result.metadata)
        if not update.is_set:
            return
        logger.debug(f"Updating chat resolution for {key}: {update.value}")
        await self.store.update_chat_resolution(key, user_resolution=update, peer_resolution=UNSET)
