"""
AppHub Backend — Mail Transport Interface & Implementations
============================================================

What:  Abstract contract for handing a rendered email to a delivery provider,
       plus the two providers the backend ships with.
How:   The notification dispatcher renders a `MailMessage` and calls
       `transport.send(message)` from a background task. Transports raise
       NotificationDeliveryError on failure; retry and circuit breaking are
       the dispatcher's job, not the transport's.
Who:   Built once at startup by `build_mail_transport(settings)`.

Implementations:
    - LogMailTransport:  Writes the message to the log (development default)
    - HttpMailTransport: POSTs JSON to a mail relay API using httpx
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import httpx

from apphub.config import Settings
from apphub.exceptions import NotificationDeliveryError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MailMessage:
    """A fully rendered plain-text email."""
    to: str
    subject: str
    text: str


class MailTransport(ABC):
    """
    Contract:
        - send() either hands the message off or raises NotificationDeliveryError
        - the error's status_code tells the dispatcher whether a retry can
          help (no status, 429, 5xx) or not (other 4xx); see is_retryable()
    """

    @abstractmethod
    async def send(self, message: MailMessage) -> None:
        ...

    async def aclose(self) -> None:
        """Release any connections held by the transport."""
        return None


class LogMailTransport(MailTransport):
    """Logs every message instead of delivering it."""

    async def send(self, message: MailMessage) -> None:
        logger.info(
            "Mail (log transport) to=%s subject=%r\n%s",
            message.to,
            message.subject,
            message.text,
        )


class HttpMailTransport(MailTransport):
    """
    Delivers mail through an HTTP relay (any provider exposing a JSON send endpoint).

    Request:
        POST {api_url}
        Authorization: Bearer {api_key}
        {"from": ..., "to": ..., "subject": ..., "text": ...}

    Any 2xx response counts as accepted.
    """

    def __init__(
        self,
        api_url: str,
        sender: str,
        api_key: str = "",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_url = api_url
        self.sender = sender
        self._headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def send(self, message: MailMessage) -> None:
        payload = {
            "from": self.sender,
            "to": message.to,
            "subject": message.subject,
            "text": message.text,
        }
        try:
            response = await self._client.post(self.api_url, json=payload, headers=self._headers)
        except httpx.HTTPError as e:
            raise NotificationDeliveryError(
                message=f"Mail relay unreachable: {e}",
                context={"error_type": type(e).__name__},
            ) from e

        if response.is_success:
            return

        raise NotificationDeliveryError(
            message=f"Mail relay rejected the message with HTTP {response.status_code}",
            status_code=response.status_code,
        )

    async def aclose(self) -> None:
        await self._client.aclose()


def is_retryable(error: BaseException) -> bool:
    """Network failures, throttling and server errors are worth another attempt."""
    if not isinstance(error, NotificationDeliveryError):
        return False
    status = error.status_code
    return status is None or status == 429 or status >= 500


def build_mail_transport(config: Settings) -> MailTransport:
    """Select the transport named by MAIL_TRANSPORT."""
    if config.mail_transport == "http":
        return HttpMailTransport(
            api_url=config.mail_api_url,
            sender=config.mail_from,
            api_key=config.mail_api_key,
            timeout=config.mail_timeout,
        )
    return LogMailTransport()
