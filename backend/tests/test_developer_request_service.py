"""
AppHub Backend — Developer Request Workflow Tests
==================================================

What we test:
    ✅ effective_developer_status precedence (pure)
    ✅ Submission gating: approved / pending → Conflict, rejected → new request
    ✅ Decisions: invalid decision, unknown request, already decided
    ✅ A decision committed by another session is never overturned
    ✅ Approval elevates the user in the same transaction (and only then)
    ✅ Notifications go out after commit, with default reasons
"""

from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from sqlalchemy import update

from apphub.exceptions import (
    ConflictError,
    DatabaseError,
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
    NotificationDeliveryError,
)
from apphub.models import DeveloperRequest, DeveloperRequestStatus, User, UserRole
from apphub.services.developer_request_service import (
    DEFAULT_APPROVAL_REASON,
    DEFAULT_REJECTION_REASON,
    DeveloperRequestService,
    DeveloperStatus,
    effective_developer_status,
)
from apphub.services.notification_service import NotificationDispatcher, NotificationKind

APPROVED = DeveloperRequestStatus.APPROVED
PENDING = DeveloperRequestStatus.PENDING
REJECTED = DeveloperRequestStatus.REJECTED


class TestEffectiveDeveloperStatus:

    @pytest.mark.parametrize(
        "history, expected",
        [
            ([], DeveloperStatus.UNSUBMITTED),
            ([REJECTED], DeveloperStatus.REJECTED),
            ([PENDING], DeveloperStatus.PENDING),
            ([REJECTED, PENDING], DeveloperStatus.PENDING),
            ([PENDING, REJECTED], DeveloperStatus.PENDING),
            ([REJECTED, APPROVED, REJECTED], DeveloperStatus.APPROVED),
            ([APPROVED, PENDING], DeveloperStatus.APPROVED),
            (["REJECTED", "REJECTED"], DeveloperStatus.REJECTED),
        ],
    )
    def test_precedence(self, history, expected):
        assert effective_developer_status(history) is expected


class TestSubmit:

    @pytest.fixture(autouse=True)
    def _service(self, clock, notifier):
        self.service = DeveloperRequestService(notifier=notifier, clock=clock)

    async def _add_request(self, db, user, status):
        request = DeveloperRequest(
            user_id=user.id,
            reason="history",
            status=status,
            created_at=self.service._clock(),
        )
        db.add(request)
        await db.commit()
        return request

    @pytest.mark.asyncio
    async def test_first_request_is_pending(self, db, make_user):
        user = await make_user()

        request = await self.service.submit(db, user.id, "  I build chatbots  ", "https://example.com/me")

        assert request.status == PENDING
        assert request.reason == "I build chatbots"
        assert request.portfolio_url == "https://example.com/me"
        assert await self.service.get_status(db, user.id) is DeveloperStatus.PENDING

    @pytest.mark.asyncio
    async def test_pending_request_blocks_new_one(self, db, make_user):
        user = await make_user()
        await self.service.submit(db, user.id, "first")

        with pytest.raises(ConflictError):
            await self.service.submit(db, user.id, "second")

    @pytest.mark.asyncio
    async def test_approved_history_blocks_new_one(self, db, make_user):
        user = await make_user()
        await self._add_request(db, user, APPROVED)
        await self._add_request(db, user, REJECTED)

        with pytest.raises(ConflictError):
            await self.service.submit(db, user.id, "again")

    @pytest.mark.asyncio
    async def test_rejected_user_may_reapply(self, db, make_user):
        user = await make_user()
        await self._add_request(db, user, REJECTED)

        request = await self.service.submit(db, user.id, "I improved my portfolio")

        assert request.status == PENDING

    @pytest.mark.asyncio
    async def test_blank_reason(self, db, make_user):
        user = await make_user()
        with pytest.raises(InvalidArgumentError):
            await self.service.submit(db, user.id, "   ")

    @pytest.mark.asyncio
    async def test_unknown_user(self, db):
        with pytest.raises(NotFoundError):
            await self.service.submit(db, uuid4(), "hello")

    @pytest.mark.asyncio
    async def test_status_of_new_user(self, db, make_user):
        user = await make_user()
        assert await self.service.get_status(db, user.id) is DeveloperStatus.UNSUBMITTED

    @pytest.mark.asyncio
    async def test_status_of_unknown_user(self, db):
        with pytest.raises(NotFoundError):
            await self.service.get_status(db, uuid4())


class TestDecide:

    @pytest.fixture(autouse=True)
    def _service(self, clock, notifier):
        self.notifier = notifier
        self.service = DeveloperRequestService(notifier=notifier, clock=clock)

    @pytest.mark.asyncio
    async def test_approve_elevates_user(self, db, make_user, session_factory):
        user = await make_user(name="Ada Lovelace", email="ada@example.com")
        request = await self.service.submit(db, user.id, "I build chatbots")

        decided = await self.service.decide(db, request.id, APPROVED, "Great portfolio")

        assert decided.status == APPROVED
        assert decided.result_reason == "Great portfolio"
        async with session_factory() as fresh:
            stored = await fresh.get(User, user.id)
            assert stored.role == UserRole.DEVELOPER
            assert stored.developer_name == "Ada Lovelace"
        self.notifier.notify.assert_called_once_with(
            "ada@example.com",
            "Ada Lovelace",
            NotificationKind.DEVELOPER_REQUEST_APPROVED,
            {"reason": "Great portfolio"},
        )

    @pytest.mark.asyncio
    async def test_approve_keeps_existing_developer_name(self, db, make_user, session_factory):
        user = await make_user(developer_name="Ada Labs")
        request = await self.service.submit(db, user.id, "reason")

        await self.service.decide(db, request.id, APPROVED)

        async with session_factory() as fresh:
            assert (await fresh.get(User, user.id)).developer_name == "Ada Labs"

    @pytest.mark.asyncio
    async def test_approval_without_reason_uses_default(self, db, make_user):
        user = await make_user()
        request = await self.service.submit(db, user.id, "reason")

        decided = await self.service.decide(db, request.id, "APPROVED", None)

        assert decided.result_reason == DEFAULT_APPROVAL_REASON

    @pytest.mark.asyncio
    async def test_reject_leaves_role_untouched(self, db, make_user, session_factory):
        user = await make_user(email="bob@example.com", name="Bob")
        request = await self.service.submit(db, user.id, "reason")

        decided = await self.service.decide(db, request.id, REJECTED, "  ")

        assert decided.status == REJECTED
        assert decided.result_reason == DEFAULT_REJECTION_REASON
        async with session_factory() as fresh:
            assert (await fresh.get(User, user.id)).role == UserRole.USER
        self.notifier.notify.assert_called_once_with(
            "bob@example.com",
            "Bob",
            NotificationKind.DEVELOPER_REQUEST_REJECTED,
            {"reason": DEFAULT_REJECTION_REASON},
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("decision", [PENDING, "MAYBE"])
    async def test_invalid_decision(self, db, decision):
        with pytest.raises(InvalidArgumentError):
            await self.service.decide(db, uuid4(), decision)

    @pytest.mark.asyncio
    async def test_unknown_request(self, db):
        with pytest.raises(NotFoundError):
            await self.service.decide(db, uuid4(), APPROVED)

    @pytest.mark.asyncio
    async def test_decided_request_cannot_be_decided_again(self, db, make_user):
        user = await make_user()
        request = await self.service.submit(db, user.id, "reason")
        await self.service.decide(db, request.id, REJECTED)
        self.notifier.reset_mock()

        with pytest.raises(InvalidStateError):
            await self.service.decide(db, request.id, APPROVED)
        self.notifier.notify.assert_not_called()

    @pytest.mark.asyncio
    async def test_approval_is_atomic(self, db, make_user, session_factory, monkeypatch):
        """A failure after the role change is flushed rolls back the decision too."""
        user = await make_user()
        request = await self.service.submit(db, user.id, "reason")
        # The rollback expires every instance in `db`
        request_id, user_id = request.id, user.id

        async def failing_elevate(session, target):
            target.role = UserRole.DEVELOPER
            await session.flush()
            raise RuntimeError("connection lost")

        monkeypatch.setattr(self.service, "_elevate", failing_elevate)

        with pytest.raises(DatabaseError):
            await self.service.decide(db, request_id, APPROVED)

        async with session_factory() as fresh:
            assert (await fresh.get(DeveloperRequest, request_id)).status == PENDING
            assert (await fresh.get(User, user_id)).role == UserRole.USER
        self.notifier.notify.assert_not_called()

    @pytest.mark.asyncio
    async def test_stale_session_cannot_overturn_a_rejection(self, db, make_user, session_factory, clock):
        user = await make_user()
        request = await self.service.submit(db, user.id, "reason")
        request_id, user_id = request.id, user.id
        other_admin = DeveloperRequestService(notifier=self.notifier, clock=clock)
        async with session_factory() as other:
            await other_admin.decide(other, request_id, REJECTED, "Not yet")
        self.notifier.reset_mock()

        # `db` still holds the request as PENDING in its identity map
        with pytest.raises(InvalidStateError):
            await self.service.decide(db, request_id, APPROVED)

        async with session_factory() as fresh:
            assert (await fresh.get(DeveloperRequest, request_id)).status == REJECTED
            assert (await fresh.get(User, user_id)).role == UserRole.USER
        self.notifier.notify.assert_not_called()

    @pytest.mark.asyncio
    async def test_decision_landing_between_check_and_write(self, db, make_user, session_factory, monkeypatch):
        user = await make_user()
        request = await self.service.submit(db, user.id, "reason")
        request_id, user_id = request.id, user.id
        real_load = self.service._load

        async def load_then_reject_elsewhere(session, rid):
            loaded = await real_load(session, rid)
            async with session_factory() as other:
                await other.execute(
                    update(DeveloperRequest)
                    .where(DeveloperRequest.id == rid)
                    .values(status=REJECTED, result_reason="Not yet")
                )
                await other.commit()
            return loaded

        monkeypatch.setattr(self.service, "_load", load_then_reject_elsewhere)

        with pytest.raises(InvalidStateError):
            await self.service.decide(db, request_id, APPROVED)

        async with session_factory() as fresh:
            stored = await fresh.get(DeveloperRequest, request_id)
            assert stored.status == REJECTED
            assert stored.result_reason == "Not yet"
            assert (await fresh.get(User, user_id)).role == UserRole.USER
        self.notifier.notify.assert_not_called()

    @pytest.mark.asyncio
    async def test_notification_failure_does_not_undo_decision(self, db, make_user, session_factory, caplog):
        transport = AsyncMock()
        transport.send.side_effect = NotificationDeliveryError(status_code=503)
        dispatcher = NotificationDispatcher(
            transport=transport,
            retry_max_attempts=2,
            retry_min_wait=0,
            retry_max_wait=0,
        )
        service = DeveloperRequestService(notifier=dispatcher, clock=self.service._clock)
        user = await make_user()
        request = await service.submit(db, user.id, "reason")

        decided = await service.decide(db, request.id, APPROVED)
        await dispatcher.drain()

        assert decided.status == APPROVED
        assert transport.send.await_count == 2
        assert "Failed to deliver developer-request-approved" in caplog.text
        async with session_factory() as fresh:
            assert (await fresh.get(DeveloperRequest, request.id)).status == APPROVED
            assert (await fresh.get(User, user.id)).role == UserRole.DEVELOPER
