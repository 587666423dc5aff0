"""
Claim notifications.

After a claim is persisted the pipeline looks up the active communication
template for the resolved status and hands it to a dispatcher. Dispatch is
best-effort: dispatchers raise NotificationError and callers log it.
"""
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

import httpx
from sqlalchemy.orm import Session

from claimportal.core.config import settings
from claimportal.core.exceptions import NotificationError
from claimportal.core.logging import logger
from claimportal.db.models import CommunicationTemplate


@dataclass(frozen=True)
class ClaimNotification:
    """Payload sent for a persisted claim."""
    policy_id: str
    claim_id: str
    template_id: str
    status: str


def find_template(db: Session, status: str) -> Optional[CommunicationTemplate]:
    """Active claim template for a status, or None."""
    return (
        db.query(CommunicationTemplate)
        .filter(
            CommunicationTemplate.template_type == "claim",
            CommunicationTemplate.status == status,
            CommunicationTemplate.is_active.is_(True),
        )
        .order_by(CommunicationTemplate.created_at.desc())
        .first()
    )


class NotificationDispatcher(ABC):
    """Delivers claim notifications to an outbound channel."""

    @abstractmethod
    async def dispatch(self, notification: ClaimNotification) -> None:
        """
        Send one notification.

        Raises:
            NotificationError: delivery failed
        """
        pass


class LoggingNotificationDispatcher(NotificationDispatcher):
    """Development dispatcher, writes the notification to the log."""

    async def dispatch(self, notification: ClaimNotification) -> None:
        logger.info(f"Notification queued: {asdict(notification)}")


class WebhookNotificationDispatcher(NotificationDispatcher):
    """POSTs notifications to the configured webhook."""

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.timeout = timeout
        self._transport = transport

    async def dispatch(self, notification: ClaimNotification) -> None:
        payload: Dict[str, Any] = asdict(notification)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, json=payload)
                response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise NotificationError(f"Notification webhook failed: {exc}", payload)


_dispatcher: Optional[NotificationDispatcher] = None


def get_notification_dispatcher() -> NotificationDispatcher:
    """Get or create the notification dispatcher singleton."""
    global _dispatcher
    if _dispatcher is None:
        if settings.NOTIFICATION_WEBHOOK_URL:
            _dispatcher = WebhookNotificationDispatcher(settings.NOTIFICATION_WEBHOOK_URL)
        else:
            _dispatcher = LoggingNotificationDispatcher()
    return _dispatcher
