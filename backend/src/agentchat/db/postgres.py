"""PostgreSQL chat store."""

import json
import logging
import asyncpg
from typing import Any
from contextlib import asynccontextmanager

from agentchat_models import (
    Account,
    AgentChat,
    AgentChatKey,
    ChatMessage,
    ChatMessageHistory,
    ResolutionState,
    ResolutionUpdate,
)
from agentchat.config import settings
from agentchat.db.base import UNSET, message_to_json
from agentchat.errors import CollaboratorError

logger = logging.getLogger(__name__)


# SQL schema for chat tables
SCHEMA_SQL = """
-- Accounts (credit is maintained by the billing ledger)
CREATE TABLE IF NOT EXISTS accounts (
    uid TEXT PRIMARY KEY,
    name TEXT NOT NULL DEFAULT '',
    credit DOUBLE PRECISION
);

-- Agent chats, one per (uid, user agent, peer agent)
CREATE TABLE IF NOT EXISTS agent_chats (
    cid SERIAL PRIMARY KEY,
    uid TEXT NOT NULL,
    user_agent_did TEXT NOT NULL,
    peer_agent_did TEXT NOT NULL,
    created TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    cost DOUBLE PRECISION NOT NULL DEFAULT 0,
    aimodel TEXT,
    history JSONB,
    user_resolution JSONB,
    peer_resolution JSONB,
    UNIQUE (uid, user_agent_did, peer_agent_did)
);
CREATE INDEX IF NOT EXISTS idx_agent_chats_uid ON agent_chats(uid);
"""

ACCOUNT_FIELDS = ("uid", "name", "credit")

KEY_WHERE = "uid = $1 AND user_agent_did = $2 AND peer_agent_did = $3"


def _key_params(key: AgentChatKey) -> list[Any]:
    return [str(key.uid), key.user_agent_did, key.peer_agent_did]


def _load_json(value: Any) -> Any:
    if isinstance(value, str):
        return json.loads(value)
    return value


class Database:
    """PostgreSQL client implementing the chat store."""

    def __init__(self, database_url: str | None = None):
        self._database_url = database_url
        self._pool: asyncpg.Pool | None = None

    async def connect(self):
        """Create connection pool."""
        database_url = self._database_url or settings.database_url
        if not database_url:
            return
        self._pool = await asyncpg.create_pool(
            database_url,
            min_size=2,
            max_size=10,
        )

    async def disconnect(self):
        """Close connection pool."""
        if self._pool:
            await self._pool.close()
            self._pool = None

    @asynccontextmanager
    async def connection(self):
        """Get a connection from the pool.

        Driver and connection errors, including failures to acquire a
        connection, surface as CollaboratorError.
        """
        if not self._pool:
            raise RuntimeError("Database not connected")
        try:
            async with self._pool.acquire() as conn:
                yield conn
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            raise CollaboratorError(f"Chat store failure: {e}") from e

    async def ensure_tables_exist(self):
        """Create tables if they don't exist."""
        if not self._pool:
            return
        async with self.connection() as conn:
            await conn.execute(SCHEMA_SQL)

    # ============= Account Operations =============

    async def fetch_account_fields(
        self, uid: int | str, fields: str | None = None
    ) -> Account | None:
        """Fetch selected account columns, e.g. "uid,name,credit"."""
        columns = [f.strip() for f in (fields or ",".join(ACCOUNT_FIELDS)).split(",") if f.strip()]
        unknown = set(columns) - set(ACCOUNT_FIELDS)
        if unknown:
            raise ValueError(f"Unknown account fields: {', '.join(sorted(unknown))}")
        if "uid" not in columns:
            columns.insert(0, "uid")

        async with self.connection() as conn:
            row = await conn.fetchrow(
                f"SELECT {', '.join(columns)} FROM accounts WHERE uid = $1", str(uid)
            )
        if not row:
            return None
        return Account(**dict(row))

    # ============= Agent Chat Operations =============

    async def fetch_agent_chat(self, key: AgentChatKey) -> AgentChat | None:
        """Get the chat for a key."""
        async with self.connection() as conn:
            row = await conn.fetchrow(
                f"SELECT * FROM agent_chats WHERE {KEY_WHERE}", *_key_params(key)
            )
        if not row:
            return None
        return self._row_to_agent_chat(row)

    async def ensure_agent_chat(
        self, key: AgentChatKey, messages: list[ChatMessage] | None = None
    ) -> AgentChat:
        """Create the chat for a key unless it exists, then return it.

        An existing chat keeps its history; the seed messages are only used
        for a newly created row.
        """
        history = {"messages": [message_to_json(m) for m in messages or []]}
        async with self.connection() as conn:
            await conn.execute(
                f"""
                INSERT INTO agent_chats (uid, user_agent_did, peer_agent_did, history)
                VALUES ($1, $2, $3, $4)
                ON CONFLICT (uid, user_agent_did, peer_agent_did) DO NOTHING
                """,
                *_key_params(key),
                json.dumps(history),
            )
            row = await conn.fetchrow(
                f"SELECT * FROM agent_chats WHERE {KEY_WHERE}", *_key_params(key)
            )
        return self._row_to_agent_chat(row)

    async def insert_chat_message(
        self, key: AgentChatKey, message: ChatMessage, ignore_failure: bool = False
    ) -> None:
        """Append one message to the stored history."""
        try:
            async with self.connection() as conn:
                await conn.execute(
                    f"""
                    UPDATE agent_chats
                    SET history = jsonb_set(
                            COALESCE(history, '{{}}'::jsonb),
                            '{{messages}}',
                            COALESCE(history->'messages', '[]'::jsonb) || jsonb_build_array($4::jsonb)
                        ),
                        updated = NOW()
                    WHERE {KEY_WHERE}
                    """,
                    *_key_params(key),
                    json.dumps(message_to_json(message)),
                )
        except CollaboratorError as e:
            if not ignore_failure:
                raise
            logger.warning(f"Ignoring failure to insert chat message for {key}: {e}")

    async def update_chat_history(
        self, key: AgentChatKey, history: ChatMessageHistory
    ) -> None:
        """Replace the stored history."""
        data = {"messages": [message_to_json(m) for m in history.messages or []]}
        async with self.connection() as conn:
            await conn.execute(
                f"UPDATE agent_chats SET history = $4, updated = NOW() WHERE {KEY_WHERE}",
                *_key_params(key),
                json.dumps(data),
            )

    async def update_chat_resolution(
        self,
        key: AgentChatKey,
        user_resolution: ResolutionUpdate = UNSET,
        peer_resolution: ResolutionUpdate = UNSET,
    ) -> None:
        """Set or clear either side's resolution; unset sides are left alone."""
        updates = []
        params = _key_params(key)
        param_idx = len(params) + 1

        for column, update in (
            ("user_resolution", user_resolution),
            ("peer_resolution", peer_resolution),
        ):
            if update.state == ResolutionState.UNSET:
                continue
            updates.append(f"{column} = ${param_idx}")
            params.append(
                json.dumps(update.value) if update.state == ResolutionState.VALUE else None
            )
            param_idx += 1

        if updates:
            updates.append("updated = NOW()")
            async with self.connection() as conn:
                await conn.execute(
                    f"UPDATE agent_chats SET {', '.join(updates)} WHERE {KEY_WHERE}",
                    *params,
                )

    async def record_chat_cost(self, key: AgentChatKey, cost: float | None) -> None:
        """Add a reply's cost to the chat total."""
        if not cost:
            return
        async with self.connection() as conn:
            await conn.execute(
                f"UPDATE agent_chats SET cost = cost + $4, updated = NOW() WHERE {KEY_WHERE}",
                *_key_params(key),
                float(cost),
            )

    def _row_to_agent_chat(self, row: asyncpg.Record) -> AgentChat:
        history = _load_json(row["history"])
        return AgentChat(
            cid=row["cid"],
            uid=row["uid"],
            user_agent_did=row["user_agent_did"],
            peer_agent_did=row["peer_agent_did"],
            created=row["created"],
            updated=row["updated"],
            cost=row["cost"],
            aimodel=row["aimodel"],
            history=ChatMessageHistory.model_validate(history) if history is not None else None,
            user_resolution=_load_json(row["user_resolution"]),
            peer_resolution=_load_json(row["peer_resolution"]),
        )


# Global database instance
db = Database()
