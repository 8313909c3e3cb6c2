"""Delivery of possession tokens to patients.

Real e-mail and SMS gateways plug in behind ``TokenDelivery``. The console
delivery is meant for local development: it logs that a message went out
and, outside production, the link or code itself.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from ignis_auth.auth.levels import AuthMethod
from ignis_auth.utils.identifiers import mask_identifier
from ignis_auth.utils.logging import get_logger

logger = get_logger(__name__)


def magic_link_url(frontend_url: str, raw_token: str) -> str:
    return f"{frontend_url.rstrip('/')}/auth/verify?token={raw_token}"


class TokenDelivery(ABC):
    """Sends a freshly issued token to its recipient."""

    @abstractmethod
    async def deliver(self, method: AuthMethod, recipient: str, raw_token: str) -> None:
        """Send the token over the channel that belongs to ``method``.

        Raises:
            TokenDeliveryError: if the gateway does not accept the message
        """


class ConsoleTokenDelivery(TokenDelivery):
    """Logs deliveries instead of sending them."""

    def __init__(self, frontend_url: str, reveal_tokens: bool = False):
        """Initialize console delivery.

        Args:
            frontend_url: Base URL magic links point to
            reveal_tokens: Log the link or code itself (never in production)
        """
        self.frontend_url = frontend_url
        self.reveal_tokens = reveal_tokens

    async def deliver(self, method: AuthMethod, recipient: str, raw_token: str) -> None:
        secret: Optional[str] = None
        if self.reveal_tokens:
            secret = (
                magic_link_url(self.frontend_url, raw_token)
                if method == AuthMethod.MAGIC_LINK
                else raw_token
            )
        logger.info(
            "token_delivered",
            method=method.value,
            recipient=mask_identifier(recipient),
            token=secret,
        )


@dataclass(frozen=True)
class DeliveredToken:
    method: AuthMethod
    recipient: str
    raw_token: str


class MemoryTokenDelivery(TokenDelivery):
    """Keeps delivered tokens in memory for tests and local tooling."""

    def __init__(self) -> None:
        self.sent: List[DeliveredToken] = []

    async def deliver(self, method: AuthMethod, recipient: str, raw_token: str) -> None:
        self.sent.append(DeliveredToken(method, recipient, raw_token))

    @property
    def last_token(self) -> Optional[str]:
        return self.sent[-1].raw_token if self.sent else None
