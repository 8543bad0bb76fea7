"""FastAPI application serving agent chat."""

import logging
from fastapi import Depends, FastAPI, HTTPException, Header

from agentchat.config import settings
from agentchat.db import db
from agentchat.errors import (
    CollaboratorError,
    InsufficientCreditError,
    NotFoundError,
    ValidationError,
)
from agentchat.services.chat_handler import ChatHooks, handle_agent_chat_message
from agentchat.services.completion import build_completion_provider
from agentchat.services.credit import CreditGate
from agentchat.services.identity import DidWebIdentity
from agentchat.services.reply import ReplyOrchestrator
from agentchat_models import (
    AgentSession,
    ChatMessageEnvelope,
    HandleAgentChatMessageParams,
    HandleAgentChatMessageResult,
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Agent Chat API",
    description="Server side of agent to agent chat",
    version="0.1.0",
)


@app.on_event("startup")
async def startup_event():
    """Configure logging and connect to the database."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    await db.connect()
    await db.ensure_tables_exist()


@app.on_event("shutdown")
async def shutdown_event():
    """Clean up on shutdown."""
    await db.disconnect()


def get_chat_hooks() -> ChatHooks:
    """Wire the chat handler to the configured collaborators."""
    identity = DidWebIdentity(settings.did_web_host)
    return ChatHooks(
        resolve_uid_from_agent_did=identity.resolve_uid_from_agent_did,
        chat_store=db,
        reply_orchestrator=ReplyOrchestrator(
            store=db,
            ensure_credit_balance=CreditGate(settings.minimum_credit),
            completion=build_completion_provider(settings),
        ),
    )


# ============= Health & Info =============


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "Agent Chat API", "version": "0.1.0"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


# ============= Chat Endpoints =============


@app.post("/agent-chat", response_model=HandleAgentChatMessageResult)
async def agent_chat(
    envelope: ChatMessageEnvelope,
    agent_did: str | None = Header(alias="X-Agent-DID", default=None),
    hooks: ChatHooks = Depends(get_chat_hooks),
):
    """Handle a chat message from an authenticated peer agent.

    The X-Agent-DID header carries the peer agent DID, verified upstream.
    """
    if not agent_did:
        raise HTTPException(status_code=401, detail="Missing agent session")

    params = HandleAgentChatMessageParams(
        envelope=envelope,
        agent_session=AgentSession(agent_did=agent_did),
    )
    try:
        return await handle_agent_chat_message(params, hooks)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InsufficientCreditError as e:
        raise HTTPException(status_code=402, detail=str(e))
    except CollaboratorError as e:
        logger.error(f"Chat turn failed for {agent_did}: {e}")
        raise HTTPException(status_code=502, detail=str(e))


# ============= Run =============


def run():
    """Run the application."""
    import uvicorn

    uvicorn.run(
        "agentchat.api:app",
        host=settings.host,
        port=settings.port,
    )


if __name__ == "__main__":
    run()
