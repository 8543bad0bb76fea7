"""Chat store implementations."""

from agentchat.db.base import ChatStore, UNSET, message_to_json
from agentchat.db.memory import InMemoryChatStore
from agentchat.db.postgres import Database, db

__all__ = [
    "ChatStore",
    "UNSET",
    "message_to_json",
    "InMemoryChatStore",
    "Database",
    "db",
]
