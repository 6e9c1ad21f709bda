"""
AppHub Backend — Developer Request Workflow
============================================

What:  Users apply to become developers; administrators approve or reject.
How:   Each request is a tiny state machine (PENDING → APPROVED | REJECTED,
       both terminal). What a user "is" is never stored: it is folded from
       their whole request history by `effective_developer_status()`.
Who:   POST /api/me/developer-requests, GET /api/me/developer-status,
       PATCH /api/admin/developer-requests/{id}/status.

Gating (submit):
    effective status APPROVED       → ConflictError (already a developer)
    most recent request PENDING     → ConflictError (wait for the decision)
    anything else (none / REJECTED) → new PENDING request

Approval:
    request.status = APPROVED ─┐
    user.role = DEVELOPER      ├─ one unit of work: both or neither
    user.developer_name seeded ┘
    then, after commit, a best-effort notification to the requester.
"""

import enum
import logging
from datetime import datetime
from typing import Callable, Iterable, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from apphub.database import unit_of_work, utc_now
from apphub.exceptions import (
    AppHubError,
    ConflictError,
    DatabaseError,
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
)
from apphub.models.developer_request import DeveloperRequest, DeveloperRequestStatus
from apphub.models.user import User, UserRole
from apphub.services.notification_service import (
    NotificationDispatcher,
    NotificationKind,
    notification_dispatcher,
)

logger = logging.getLogger(__name__)

DEFAULT_APPROVAL_REASON = "Your track record as a developer has been confirmed."
DEFAULT_REJECTION_REASON = "Your application did not meet our criteria at this time."


class DeveloperStatus(str, enum.Enum):
    """A user's developer standing, derived from their request history."""
    APPROVED = "APPROVED"
    PENDING = "PENDING"
    REJECTED = "REJECTED"
    UNSUBMITTED = "UNSUBMITTED"


# Highest first
_PRECEDENCE = (
    DeveloperRequestStatus.APPROVED,
    DeveloperRequestStatus.PENDING,
    DeveloperRequestStatus.REJECTED,
)


def effective_developer_status(history: Iterable[DeveloperRequestStatus]) -> DeveloperStatus:
    """
    Fold a request history into one status.

    Precedence: APPROVED > PENDING > REJECTED > UNSUBMITTED (empty history).
    Order of `history` does not matter.

    Example:
        [REJECTED, PENDING] → PENDING
        [REJECTED, APPROVED, REJECTED] → APPROVED
    """
    seen = {DeveloperRequestStatus(status) for status in history}
    for status in _PRECEDENCE:
        if status in seen:
            return DeveloperStatus(status.value)
    return DeveloperStatus.UNSUBMITTED


class DeveloperRequestService:

    def __init__(
        self,
        notifier: NotificationDispatcher = notification_dispatcher,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.notifier = notifier
        self._clock = clock

    async def _history(self, db: AsyncSession, user_id: UUID) -> list:
        """Statuses of the user's requests, most recent first."""
        result = await db.execute(
            select(DeveloperRequest.status)
            .where(DeveloperRequest.user_id == user_id)
            .order_by(DeveloperRequest.created_at.desc())
        )
        return list(result.scalars().all())

    async def submit(
        self,
        db: AsyncSession,
        user_id: UUID,
        reason: str,
        portfolio_url: Optional[str] = None,
    ) -> DeveloperRequest:
        """
        File a new developer request for `user_id`.

        Raises:
            InvalidArgumentError: Blank reason
            NotFoundError:        User does not exist
            ConflictError:        Already approved, or a request is still pending
        """
        if reason is None or not reason.strip():
            raise InvalidArgumentError(message="A reason is required", field="reason")

        try:
            async with unit_of_work(db):
                if await db.get(User, user_id) is None:
                    raise NotFoundError(resource="user", resource_id=user_id)

                history = await self._history(db, user_id)
                if effective_developer_status(history) is DeveloperStatus.APPROVED:
                    raise ConflictError(
                        message="You are already an approved developer",
                        context={"status": DeveloperStatus.APPROVED.value},
                    )
                if history and history[0] == DeveloperRequestStatus.PENDING:
                    raise ConflictError(
                        message="A developer request is already awaiting review",
                        context={"status": DeveloperStatus.PENDING.value},
                    )

                request = DeveloperRequest(
                    user_id=user_id,
                    reason=reason.strip(),
                    portfolio_url=str(portfolio_url) if portfolio_url else None,
                    status=DeveloperRequestStatus.PENDING,
                    created_at=self._clock(),
                )
                db.add(request)

            logger.info("Developer request %s submitted by user %s", request.id, user_id)
            return request

        except ConflictError as e:
            logger.warning("Developer request by %s rejected: %s", user_id, e.message)
            raise
        except AppHubError:
            raise
        except Exception as e:
            logger.error("Error submitting developer request for %s: %s", user_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not submit the developer request. Please try again.",
                context={"user_id": str(user_id)},
            )

    async def decide(
        self,
        db: AsyncSession,
        request_id: UUID,
        decision: DeveloperRequestStatus,
        result_reason: Optional[str] = None,
    ) -> DeveloperRequest:
        """
        Approve or reject a pending request.

        On approval the requester becomes a DEVELOPER in the same transaction.
        A blank `result_reason` is replaced by the default text for the decision.

        Raises:
            InvalidArgumentError: `decision` is not APPROVED or REJECTED
            NotFoundError:        Request does not exist
            InvalidStateError:    Request was already decided
        """
        try:
            decision = DeveloperRequestStatus(decision)
        except ValueError:
            decision = None
        if decision not in (DeveloperRequestStatus.APPROVED, DeveloperRequestStatus.REJECTED):
            raise InvalidArgumentError(
                message="Decision must be APPROVED or REJECTED",
                field="status",
            )

        if not result_reason or not result_reason.strip():
            result_reason = (
                DEFAULT_APPROVAL_REASON
                if decision is DeveloperRequestStatus.APPROVED
                else DEFAULT_REJECTION_REASON
            )

        try:
            async with unit_of_work(db):
                request = await self._load(db, request_id)
                if request is None:
                    raise NotFoundError(resource="developer request", resource_id=request_id)
                if request.status != DeveloperRequestStatus.PENDING:
                    raise InvalidStateError(
                        message=f"Developer request was already {request.status.value.lower()}",
                        context={"status": request.status.value},
                    )

                # Only the first decision on a PENDING row matches
                result = await db.execute(
                    update(DeveloperRequest)
                    .where(
                        DeveloperRequest.id == request_id,
                        DeveloperRequest.status == DeveloperRequestStatus.PENDING,
                    )
                    .values(status=decision, result_reason=result_reason.strip())
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    raise InvalidStateError(
                        message="Developer request was decided concurrently",
                    )

                user = await db.get(User, request.user_id)
                if decision is DeveloperRequestStatus.APPROVED:
                    await self._elevate(db, user)
                await db.refresh(request)

            logger.info(
                "Developer request %s %s (user %s)",
                request_id, decision.value.lower(), user.id,
            )

        except InvalidStateError as e:
            logger.warning("Decision on developer request %s rejected: %s", request_id, e.message)
            raise
        except AppHubError:
            raise
        except Exception as e:
            logger.error("Error deciding developer request %s: %s", request_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not record the decision. Please try again.",
                context={"request_id": str(request_id)},
            )

        kind = (
            NotificationKind.DEVELOPER_REQUEST_APPROVED
            if decision is DeveloperRequestStatus.APPROVED
            else NotificationKind.DEVELOPER_REQUEST_REJECTED
        )
        self.notifier.notify(user.email, user.name, kind, {"reason": request.result_reason})
        return request

    async def _load(self, db: AsyncSession, request_id: UUID) -> Optional[DeveloperRequest]:
        return await db.get(
            DeveloperRequest, request_id, with_for_update=True, populate_existing=True
        )

    async def _elevate(self, db: AsyncSession, user: User) -> None:
        """Make `user` a developer; their display name seeds the public developer name."""
        user.role = UserRole.DEVELOPER
        if not user.developer_name:
            user.developer_name = user.name
        await db.flush()

    async def get_status(self, db: AsyncSession, user_id: UUID) -> DeveloperStatus:
        """
        Raises:
            NotFoundError: User does not exist
        """
        try:
            if await db.get(User, user_id) is None:
                raise NotFoundError(resource="user", resource_id=user_id)
            return effective_developer_status(await self._history(db, user_id))
        except AppHubError:
            raise
        except Exception as e:
            logger.error("Error reading developer status of %s: %s", user_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not load the developer status. Please try again.",
                context={"user_id": str(user_id)},
            )


# ── Singleton Instance ────────────────────────────────────────────────────
developer_request_service = DeveloperRequestService()
