"""
AppHub Backend — App Lifecycle Workflow
========================================

What:  Administrator-driven status changes of app listings.
How:   A blacklist of forbidden (current → target) transitions is checked
       before anything is written; anything not listed is allowed. After
       commit the creator is notified for the statuses they need to hear about.
Who:   PATCH /api/admin/apps/{app_id}/status.

Forbidden Transitions:
    current     │ may not move to
    ────────────┼────────────────
    DRAFT       │ (nothing forbidden)
    PUBLISHED   │ DRAFT
    ARCHIVED    │ PUBLISHED
    PRIVATE     │ PUBLISHED
    SUSPENDED   │ PUBLISHED
    PENDING_REVIEW, REJECTED are unlisted and forbid nothing.

    current == target is always allowed and writes nothing.

    The write is conditional on the status that was checked
    (UPDATE ... WHERE status = :current). If another change landed in
    between, the app is re-read and the table checked again.

Notifications (to the creator, after commit):
    PUBLISHED → app-published   PRIVATE   → app-private   (with reason)
    ARCHIVED  → app-archived    SUSPENDED → app-suspended (with reason)
"""

import logging
from datetime import datetime
from typing import Callable, Dict, FrozenSet, Optional, Union
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from apphub.database import unit_of_work, utc_now
from apphub.exceptions import (
    AppHubError,
    ConflictError,
    DatabaseError,
    InvalidArgumentError,
    InvalidTransitionError,
    NotFoundError,
)
from apphub.models.app import App, AppStatus
from apphub.models.user import User
from apphub.services.notification_service import (
    NotificationDispatcher,
    NotificationKind,
    notification_dispatcher,
)

logger = logging.getLogger(__name__)

DISALLOWED_TRANSITIONS: Dict[AppStatus, FrozenSet[AppStatus]] = {
    AppStatus.DRAFT: frozenset(),
    AppStatus.PUBLISHED: frozenset({AppStatus.DRAFT}),
    AppStatus.ARCHIVED: frozenset({AppStatus.PUBLISHED}),
    AppStatus.PRIVATE: frozenset({AppStatus.PUBLISHED}),
    AppStatus.SUSPENDED: frozenset({AppStatus.PUBLISHED}),
}

STATUS_NOTIFICATIONS: Dict[AppStatus, NotificationKind] = {
    AppStatus.PUBLISHED: NotificationKind.APP_PUBLISHED,
    AppStatus.PRIVATE: NotificationKind.APP_PRIVATE,
    AppStatus.ARCHIVED: NotificationKind.APP_ARCHIVED,
    AppStatus.SUSPENDED: NotificationKind.APP_SUSPENDED,
}

# Used when the administrator gives no reason
DEFAULT_STATUS_REASONS: Dict[AppStatus, str] = {
    AppStatus.PRIVATE: (
        "The app was found to conflict with our content policy. "
        "Please contact support for details."
    ),
    AppStatus.SUSPENDED: (
        "The app may violate our terms of service and has been temporarily suspended."
    ),
}


_MAX_ATTEMPTS = 3


def is_transition_allowed(current: AppStatus, target: AppStatus) -> bool:
    """True unless `target` is listed as forbidden for `current`."""
    if current == target:
        return True
    return target not in DISALLOWED_TRANSITIONS.get(current, frozenset())


class AppStatusService:

    def __init__(
        self,
        notifier: NotificationDispatcher = notification_dispatcher,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.notifier = notifier
        self._clock = clock

    async def change_status(
        self,
        db: AsyncSession,
        app_id: UUID,
        new_status: Union[AppStatus, str],
        reason: Optional[str] = None,
    ) -> App:
        """
        Move `app_id` to `new_status`.

        Args:
            db:         Async database session
            app_id:     App to change
            new_status: Target status
            reason:     Shown to the creator for PRIVATE / SUSPENDED

        Returns:
            The app, with its (possibly unchanged) status.

        Raises:
            InvalidArgumentError:   Unknown status
            NotFoundError:          App does not exist
            InvalidTransitionError: Transition is forbidden from the current status
            ConflictError:          Status changed concurrently on every attempt
        """
        try:
            new_status = AppStatus(new_status)
        except ValueError:
            raise InvalidArgumentError(message=f"Unknown app status '{new_status}'", field="status")

        try:
            for attempt in range(1, _MAX_ATTEMPTS + 1):
                async with unit_of_work(db):
                    app = await self._load(db, app_id)
                    if app is None:
                        raise NotFoundError(resource="app", resource_id=app_id)

                    current = app.status
                    if current == new_status:
                        logger.debug("App %s already %s; nothing to do", app_id, current.value)
                        return app

                    if not is_transition_allowed(current, new_status):
                        raise InvalidTransitionError(current.value, new_status.value)

                    result = await db.execute(
                        update(App)
                        .where(App.id == app_id, App.status == current)
                        .values(status=new_status, updated_at=self._clock())
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount == 1:
                        creator = await db.get(User, app.creator_id)
                        break

                logger.info(
                    "App %s changed concurrently (attempt %d); re-checking", app_id, attempt
                )
            else:
                raise ConflictError(
                    message="The app status keeps changing. Please try again.",
                    context={"app_id": str(app_id)},
                )

            await db.refresh(app)
            logger.info("App %s status %s → %s", app_id, current.value, new_status.value)

        except InvalidTransitionError as e:
            logger.warning("App %s: %s", app_id, e.message)
            raise
        except AppHubError:
            raise
        except Exception as e:
            logger.error("Error changing status of app %s: %s", app_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not change the app status. Please try again.",
                context={"app_id": str(app_id)},
            )

        kind = STATUS_NOTIFICATIONS.get(new_status)
        if kind is not None and creator is not None:
            context = {"app_name": app.name}
            if new_status in DEFAULT_STATUS_REASONS:
                context["reason"] = (
                    reason.strip() if reason and reason.strip() else DEFAULT_STATUS_REASONS[new_status]
                )
            self.notifier.notify(creator.email, creator.name, kind, context)
        return app

    async def _load(self, db: AsyncSession, app_id: UUID) -> Optional[App]:
        """Current row, bypassing the identity map; locked on backends that support it."""
        return await db.get(App, app_id, with_for_update=True, populate_existing=True)


# ── Singleton Instance ────────────────────────────────────────────────────
app_status_service = AppStatusService()
