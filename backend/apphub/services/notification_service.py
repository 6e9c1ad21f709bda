"""
AppHub Backend — Notification Dispatcher
=========================================

What:  Best-effort email notifications for workflow transitions.
How:   Services call `notify(...)` (or `dispatch(Notification)`) AFTER their
       transaction has committed. The dispatcher renders the template for the
       notification kind and schedules delivery as a detached asyncio task:
       the caller never awaits it and never sees its outcome.
Who:   DeveloperRequestService and AppStatusService.

Delivery Pipeline (inside the background task):
    ┌──────────────┐    ┌─────────────┐    ┌────────────────┐    ┌───────────┐
    │ circuit open?│───▶│  transport  │───▶│ tenacity retry │───▶│  log only │
    │  → drop+warn │    │   .send()   │    │ (backoff+jitter)│   │ on failure│
    └──────────────┘    └─────────────┘    └────────────────┘    └───────────┘

    Nothing is ever retried on the request path, and no delivery failure is
    re-raised: a committed decision stays committed whatever the mail relay does.
"""

import asyncio
import enum
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from string import Template
from typing import Any, Callable, Dict, Optional, Set

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from apphub.config import settings
from apphub.services.mail_transport import (
    MailMessage,
    MailTransport,
    build_mail_transport,
    is_retryable,
)

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "mail"


class NotificationKind(str, enum.Enum):
    DEVELOPER_REQUEST_APPROVED = "developer-request-approved"
    DEVELOPER_REQUEST_REJECTED = "developer-request-rejected"
    APP_PUBLISHED = "app-published"
    APP_PRIVATE = "app-private"
    APP_SUSPENDED = "app-suspended"
    APP_ARCHIVED = "app-archived"


# Subject lines; the body lives in templates/mail/<kind>.txt
SUBJECTS: Dict[NotificationKind, str] = {
    NotificationKind.DEVELOPER_REQUEST_APPROVED: "Your AppHub developer request has been approved",
    NotificationKind.DEVELOPER_REQUEST_REJECTED: "About your AppHub developer request",
    NotificationKind.APP_PUBLISHED: "[AppHub] Your app \"$app_name\" is now published",
    NotificationKind.APP_PRIVATE: "[AppHub] Your app \"$app_name\" has been made private",
    NotificationKind.APP_SUSPENDED: "[AppHub] Your app \"$app_name\" has been suspended",
    NotificationKind.APP_ARCHIVED: "[AppHub] Your app \"$app_name\" has been archived",
}


@dataclass(frozen=True)
class Notification:
    """
    A tagged notification: the kind selects the template, the context fills it.

    Context keys used by the templates: `reason` (decision / status reasons),
    `app_name` (app notifications). `name` and the frontend links are added
    by the dispatcher.
    """
    kind: NotificationKind
    recipient_email: str
    recipient_name: str
    context: Dict[str, Any] = field(default_factory=dict)


class CircuitBreaker:
    """
    Stops calling a mail relay that keeps failing.

    State Machine:
        CLOSED    → failures counted; at `failure_threshold` → OPEN
        OPEN      → every delivery dropped until `recovery_timeout` elapses → HALF_OPEN
        HALF_OPEN → one delivery let through; success → CLOSED, failure → OPEN

    Not thread-safe; deliveries run on the single event loop of the process.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None
        self._clock = clock

    def allow_request(self) -> bool:
        if self.state == self.CLOSED:
            return True

        if self.state == self.OPEN:
            elapsed = self._clock() - (self.last_failure_time or 0)
            if elapsed >= self.recovery_timeout:
                logger.info("Mail circuit breaker transitioning to HALF_OPEN after %.1fs", elapsed)
                self.state = self.HALF_OPEN
                return True
            return False

        # HALF_OPEN: the probe delivery is already in flight or about to be
        return True

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Mail circuit breaker transitioning to CLOSED (relay recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = self._clock()

        if self.state == self.HALF_OPEN:
            logger.warning("Mail circuit breaker returning to OPEN (probe delivery failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Mail circuit breaker OPENING after %d consecutive failures",
                self.failure_count,
            )
            self.state = self.OPEN


class NotificationDispatcher:
    """
    Fire-and-forget notification delivery.

    Outstanding deliveries are tracked so they are not garbage-collected
    mid-flight and so shutdown (and tests) can `drain()` them.
    """

    def __init__(
        self,
        transport: MailTransport,
        frontend_url: str = "http://localhost:3000",
        retry_max_attempts: int = 3,
        retry_min_wait: float = 2,
        retry_max_wait: float = 10,
        circuit_breaker: Optional[CircuitBreaker] = None,
        template_dir: Path = TEMPLATE_DIR,
    ):
        self.transport = transport
        self.frontend_url = frontend_url.rstrip("/")
        self.retry_max_attempts = retry_max_attempts
        self.retry_min_wait = retry_min_wait
        self.retry_max_wait = retry_max_wait
        self.circuit_breaker = circuit_breaker or CircuitBreaker()
        self.template_dir = template_dir
        self._templates = self._load_templates(template_dir)
        self._tasks: Set[asyncio.Task] = set()

    # ── Public API ────────────────────────────────────────────────────────

    def notify(
        self,
        user_email: str,
        user_name: str,
        kind: NotificationKind,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Schedule a notification of `kind` to one recipient. Never raises."""
        self.dispatch(
            Notification(
                kind=kind,
                recipient_email=user_email,
                recipient_name=user_name,
                context=dict(context or {}),
            )
        )

    def dispatch(self, notification: Notification) -> None:
        """Render and schedule delivery of `notification`. Never raises."""
        try:
            message = self.render(notification)
            task = asyncio.get_running_loop().create_task(
                self._deliver(message, notification.kind)
            )
        except Exception as e:
            logger.error(
                "Could not schedule %s notification to %s: %s",
                notification.kind.value,
                notification.recipient_email,
                str(e),
                exc_info=True,
            )
            return

        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait until every scheduled delivery has finished (successfully or not)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()
        await self.transport.aclose()

    # ── Rendering ─────────────────────────────────────────────────────────

    def render(self, notification: Notification) -> MailMessage:
        """
        Fill the subject and body templates of `notification.kind`.

        Missing placeholders are left as-is rather than failing the mail.
        """
        variables = {
            "name": notification.recipient_name or "",
            "reason": "",
            "app_name": "",
            "app_details_url": f"{self.frontend_url}/my/apps",
            "new_app_url": f"{self.frontend_url}/my/apps/new",
            "contact_url": f"{self.frontend_url}/contact",
        }
        variables.update({k: "" if v is None else str(v) for k, v in notification.context.items()})

        body_template = self._templates.get(notification.kind)
        if body_template is None:
            raise LookupError(f"No mail template for {notification.kind.value}")
        subject = Template(SUBJECTS[notification.kind]).safe_substitute(variables)
        text = Template(body_template).safe_substitute(variables)
        return MailMessage(to=notification.recipient_email, subject=subject, text=text)

    @staticmethod
    def _load_templates(template_dir: Path) -> Dict[NotificationKind, str]:
        """Read every body template once; a missing file disables only its kind."""
        templates: Dict[NotificationKind, str] = {}
        for kind in NotificationKind:
            path = template_dir / f"{kind.value}.txt"
            try:
                templates[kind] = path.read_text(encoding="utf-8")
            except OSError as e:
                logger.error("Mail template %s could not be loaded: %s", path, str(e))
        return templates

    # ── Delivery (background task) ────────────────────────────────────────

    async def _deliver(self, message: MailMessage, kind: NotificationKind) -> None:
        if not self.circuit_breaker.allow_request():
            logger.warning(
                "Mail circuit open, dropping %s notification to %s",
                kind.value,
                message.to,
            )
            return

        start_time = time.perf_counter()
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception(is_retryable),
                stop=stop_after_attempt(self.retry_max_attempts),
                wait=wait_exponential_jitter(
                    initial=self.retry_min_wait,
                    max=self.retry_max_wait,
                    jitter=1 if self.retry_max_wait else 0,
                ),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    await self.transport.send(message)
        except Exception as e:
            self.circuit_breaker.record_failure()
            logger.error(
                "Failed to deliver %s notification to %s: %s",
                kind.value,
                message.to,
                str(e),
                exc_info=True,
            )
            return

        self.circuit_breaker.record_success()
        logger.info(
            "Delivered %s notification to %s in %.0fms",
            kind.value,
            message.to,
            (time.perf_counter() - start_time) * 1000,
        )


def build_notification_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher(
        transport=build_mail_transport(settings),
        frontend_url=settings.frontend_url,
        retry_max_attempts=settings.retry_max_attempts,
        retry_min_wait=settings.retry_min_wait,
        retry_max_wait=settings.retry_max_wait,
        circuit_breaker=CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        ),
    )


# ── Singleton Instance ────────────────────────────────────────────────────
notification_dispatcher = build_notification_dispatcher()
