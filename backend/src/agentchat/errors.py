"""Errors raised while handling an agent chat turn.

Every error propagates unchanged to the caller of the chat handler; the
HTTP layer maps them to status codes.
"""


class AgentChatError(Exception):
    """Base class for agent chat errors."""


class ValidationError(AgentChatError):
    """Inbound envelope is malformed or impersonates another agent."""


class NotFoundError(AgentChatError):
    """A chat, account or agent could not be found."""


class AccountNotFoundError(NotFoundError):
    """No account exists for the user a reply is generated for."""


class InsufficientCreditError(AgentChatError):
    """The user's account cannot pay for a reply."""


class CollaboratorError(AgentChatError):
    """A store or completion provider failed."""
