"""Mapping between local users and the did:web agents hosted for them."""

from agentchat_models import DID
from agentchat.errors import NotFoundError

AGENT_FRAGMENT = "agent-chat"


class DidWebIdentity:
    """Agents hosted at did:web:<host>:iam:<uid>#agent-chat."""

    def __init__(self, host: str):
        self.host = host

    @property
    def prefix(self) -> str:
        return f"did:web:{self.host}:iam:"

    def create_user_agent_did(self, uid: int | str) -> DID:
        return f"{self.prefix}{uid}#{AGENT_FRAGMENT}"

    async def resolve_uid_from_agent_did(self, agent_did: DID) -> str:
        """Return the uid whose agent is `agent_did`."""
        document_id = agent_did.split("#", 1)[0]
        if not document_id.startswith(self.prefix):
            raise NotFoundError(f"Agent {agent_did} is not hosted on {self.host}")
        uid = document_id[len(self.prefix):]
        if not uid or ":" in uid:
            raise NotFoundError(f"Agent {agent_did} does not name a user")
        return uid
