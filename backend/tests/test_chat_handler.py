"""Tests for handling a full inbound chat turn."""

import pytest

from agentchat.errors import CollaboratorError, InsufficientCreditError, NotFoundError
from agentchat.services.chat_handler import handle_agent_chat_message, resolve_chat
from agentchat.services.completion import ScriptedCompletion
from agentchat_models import Account, ResolutionState

from conftest import (
    CHAT_KEY,
    PEER_AGENT_DID,
    USER_AGENT_DID,
    at,
    make_chat,
    make_message,
    make_params,
)


class TestResolveChat:
    """Test fetching or creating the chat for a turn."""

    @pytest.mark.asyncio
    async def test_creates_chat_seeded_with_message(self, store):
        message = make_message("Hi")

        chat, created = await resolve_chat(CHAT_KEY, message, store)

        assert created
        assert chat.history.messages == [message]
        assert store.call_names() == ["fetch_agent_chat", "ensure_agent_chat"]

    @pytest.mark.asyncio
    async def test_existing_chat_gets_history_initialized(self, store):
        store.add_chat(make_chat(None))

        chat, created = await resolve_chat(CHAT_KEY, make_message("Hi"), store)

        assert not created
        assert chat.history.messages == []


class TestHandleAgentChatMessage:
    """Test handle_agent_chat_message."""

    @pytest.mark.asyncio
    async def test_first_message_creates_chat_and_introduces(self, hooks, store):
        message = make_message("Hello, who are you?")

        result = await handle_agent_chat_message(make_params(message), hooks)

        assert result.reply.content == "My name is Dave. Nice to meet you!"
        assert result.reply.from_ == USER_AGENT_DID
        chat = store.chats[CHAT_KEY]
        assert chat.history.messages == [message, result.reply]
        assert chat.cost == pytest.approx(0.01)
        assert store.call_names() == [
            "fetch_agent_chat",
            "ensure_agent_chat",
            "fetch_account_fields",
            "record_chat_cost",
            "insert_chat_message",
        ]

    @pytest.mark.asyncio
    async def test_existing_chat_appends_and_completes(self, hooks, store):
        store.add_chat(
            make_chat([make_message("Hi", at(2024)), make_message("Hello", at(2024), from_=USER_AGENT_DID)])
        )
        message = make_message("What's new?")

        result = await handle_agent_chat_message(make_params(message), hooks)

        assert result.reply.content == "Tell me more..."
        messages = store.chats[CHAT_KEY].history.messages
        assert [m.content for m in messages] == ["Hi", "Hello", "What's new?", "Tell me more..."]
        _, (_, inserted, ignore_failure) = store.calls[1]
        assert inserted == message
        assert ignore_failure is True

    @pytest.mark.asyncio
    async def test_cost_accumulates_across_turns(self, hooks, store):
        await handle_agent_chat_message(make_params(make_message("one")), hooks)
        await handle_agent_chat_message(make_params(make_message("two")), hooks)
        await handle_agent_chat_message(make_params(make_message("three")), hooks)

        assert store.chats[CHAT_KEY].cost == pytest.approx(0.03)
        assert len(store.chats[CHAT_KEY].history.messages) == 6

    @pytest.mark.asyncio
    async def test_chat_without_stored_history(self, hooks, store):
        """Test that a chat with no history field is handled on every turn."""
        store.add_chat(make_chat(None))

        first = await handle_agent_chat_message(make_params(make_message("one")), hooks)
        second = await handle_agent_chat_message(make_params(make_message("two")), hooks)

        messages = store.chats[CHAT_KEY].history.messages
        assert messages is not None
        assert [m.content for m in messages] == ["one", first.reply.content, "two", second.reply.content]
        assert second.reply.content == "Tell me more..."

    @pytest.mark.asyncio
    async def test_unknown_recipient_agent(self, hooks, store):
        params = make_params(make_message("Hi"))
        params.envelope.to = "did:web:elsewhere.example:iam:7#agent-chat"

        with pytest.raises(NotFoundError):
            await handle_agent_chat_message(params, hooks)

        assert store.calls == []


class TestInboundResolution:
    """Test the peer's resolution carried by the inbound message."""

    @pytest.mark.asyncio
    async def test_explicit_none_clears_peer_resolution(self, hooks, store):
        chat = make_chat([])
        chat.peer_resolution = "resolved"
        store.add_chat(chat)

        await handle_agent_chat_message(
            make_params(make_message("Reopening", metadata={"resolution": None})), hooks
        )

        updates = [args for name, args in store.calls if name == "update_chat_resolution"]
        assert len(updates) == 1
        _, user_update, peer_update = updates[0]
        assert user_update.state == ResolutionState.UNSET
        assert peer_update.state == ResolutionState.CLEAR
        assert store.chats[CHAT_KEY].peer_resolution is None

    @pytest.mark.asyncio
    async def test_absent_resolution_makes_no_update(self, hooks, store):
        await handle_agent_chat_message(
            make_params(make_message("Just chatting", metadata={"mood": "fine"})), hooks
        )

        assert "update_chat_resolution" not in store.call_names()

    @pytest.mark.asyncio
    async def test_value_sets_peer_resolution(self, hooks, store):
        await handle_agent_chat_message(
            make_params(make_message("All done", metadata={"resolution": "resolved"})), hooks
        )

        chat = store.chats[CHAT_KEY]
        assert chat.peer_resolution == "resolved"
        assert chat.user_resolution is None


class TestReplyResolution:
    """Test the local agent's resolution carried by the reply."""

    @pytest.mark.asyncio
    async def test_reply_metadata_sets_user_resolution(self, hooks, store, completion):
        completion.content = 'Glad we sorted it.\n```json\n{"metadata": {"resolution": "resolved"}}\n```'
        store.add_chat(make_chat([make_message("Hi", at(2024)), make_message("Hello", at(2024), from_=USER_AGENT_DID)]))

        result = await handle_agent_chat_message(make_params(make_message("Thanks!")), hooks)

        assert result.reply.content == "Glad we sorted it."
        assert result.reply.metadata == {"resolution": "resolved"}
        chat = store.chats[CHAT_KEY]
        assert chat.user_resolution == "resolved"
        assert chat.peer_resolution is None
        assert store.call_names()[-1] == "update_chat_resolution"


class TestFailures:
    """Test that failures abort the turn without rollback."""

    @pytest.mark.asyncio
    async def test_insufficient_credit_keeps_inbound_message(self, hooks, store):
        store.accounts["7"] = Account(uid="7", name="Dave", credit=0.0)
        message = make_message("Anyone there?")

        with pytest.raises(InsufficientCreditError):
            await handle_agent_chat_message(make_params(message), hooks)

        assert store.chats[CHAT_KEY].history.messages == [message]
        assert "record_chat_cost" not in store.call_names()

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self, hooks, store):
        store.fail_on.add("record_chat_cost")
        message = make_message("Hi")

        with pytest.raises(CollaboratorError, match="record_chat_cost"):
            await handle_agent_chat_message(make_params(message), hooks)

        assert store.chats[CHAT_KEY].history.messages == [message]
        assert store.call_names()[-1] == "record_chat_cost"

    @pytest.mark.asyncio
    async def test_inbound_insert_failure_is_ignored(self, hooks, store):
        store.add_chat(make_chat([]))
        store.fail_on.add("insert_chat_message")

        with pytest.raises(CollaboratorError):
            await handle_agent_chat_message(make_params(make_message("Hi")), hooks)

        # the inbound insert is tolerated, the reply insert is not
        assert store.call_names().count("insert_chat_message") == 2
        assert store.call_names().count("record_chat_cost") == 1

    @pytest.mark.asyncio
    async def test_completion_failure_propagates(self, hooks, store):
        class BrokenCompletion(ScriptedCompletion):
            async def chat_completion(self, agent_did, messages):
                raise CollaboratorError("model unavailable")

        hooks.reply_orchestrator.completion.provider = BrokenCompletion()
        store.add_chat(make_chat([make_message("Hello", at(2024), from_=USER_AGENT_DID)]))

        with pytest.raises(CollaboratorError, match="model unavailable"):
            await handle_agent_chat_message(make_params(make_message("Hi")), hooks)

        assert "record_chat_cost" not in store.call_names()
        assert store.chats[CHAT_KEY].history.messages[-1].from_ == PEER_AGENT_DID
