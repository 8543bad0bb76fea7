"""Credit gate checked before a reply is generated."""

import logging

from agentchat_models import Account
from agentchat.errors import InsufficientCreditError

logger = logging.getLogger(__name__)


class CreditGate:
    """Requires an account to hold more than `minimum_credit`."""

    def __init__(self, minimum_credit: float = 0.0):
        self.minimum_credit = minimum_credit

    async def __call__(self, uid: int | str, account: Account | None = None) -> None:
        credit = account.credit if account else None
        if credit is None or credit <= self.minimum_credit:
            logger.info(f"Insufficient credit for user {uid}: {credit}")
            raise InsufficientCreditError(f"Insufficient credit for user {uid}")
