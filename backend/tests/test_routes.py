"""
AppHub Backend — API Route Tests
=================================

What:  End-to-end tests through the FastAPI app with httpx.AsyncClient.
How:   Seed rows come from the make_user / make_app factories; the request
       session is bound to the per-test SQLite database (see conftest.py).

What we test:
    ✅ Toggle endpoints wrap the entity, or null when it was removed
    ✅ Status codes and error codes of the exception hierarchy
    ✅ X-User-Id is required and must be a UUID
    ✅ Folder list, paged folder contents and liked apps (X-Total-Count)
    ✅ Admin workflow endpoints
    ✅ Health check
"""

from uuid import uuid4

import pytest

from apphub.models import AppStatus, UserRole


def as_user(user) -> dict:
    return {"X-User-Id": str(user.id)}


class TestAuthentication:

    @pytest.mark.asyncio
    async def test_missing_header(self, test_client):
        response = await test_client.get("/api/me/developer-status")

        assert response.status_code == 401
        assert response.json()["error"] == "unauthenticated"

    @pytest.mark.asyncio
    async def test_malformed_header(self, test_client):
        response = await test_client.get(
            "/api/me/developer-status", headers={"X-User-Id": "not-a-uuid"}
        )

        assert response.status_code == 401
        assert response.json()["message"] == "Malformed X-User-Id header"

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, test_client):
        response = await test_client.get(
            "/api/me/developer-status", headers={"X-Request-ID": "abc123"}
        )

        assert response.headers["X-Request-ID"] == "abc123"
        assert response.json()["request_id"] == "abc123"


class TestBookmarkRoutes:

    @pytest.mark.asyncio
    async def test_toggle_on_and_off(self, test_client, make_user, make_app):
        user = await make_user()
        app = await make_app()
        body = {"app_id": str(app.id), "folder_name": "Later"}

        added = await test_client.post("/api/me/bookmarks/toggle", json=body, headers=as_user(user))
        removed = await test_client.post("/api/me/bookmarks/toggle", json=body, headers=as_user(user))

        assert added.status_code == 200
        assert added.json()["bookmark"]["app_id"] == str(app.id)
        assert removed.status_code == 200
        assert removed.json() == {"bookmark": None}

    @pytest.mark.asyncio
    async def test_both_folder_arguments(self, test_client, make_user, make_app):
        user = await make_user()
        app = await make_app()

        response = await test_client.post(
            "/api/me/bookmarks/toggle",
            json={"app_id": str(app.id), "folder_id": str(uuid4()), "folder_name": "Later"},
            headers=as_user(user),
        )

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_argument"

    @pytest.mark.asyncio
    async def test_unknown_app(self, test_client, make_user):
        user = await make_user()

        response = await test_client.post(
            "/api/me/bookmarks/toggle",
            json={"app_id": str(uuid4()), "folder_name": "Later"},
            headers=as_user(user),
        )

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"


    @pytest.mark.asyncio
    async def test_unknown_user(self, test_client, make_app):
        app = await make_app()

        response = await test_client.post(
            "/api/me/bookmarks/toggle",
            json={"app_id": str(app.id), "folder_name": "Later"},
            headers={"X-User-Id": str(uuid4())},
        )

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"
    @pytest.mark.asyncio
    async def test_folders_for_app(self, test_client, make_user, make_app):
        user = await make_user()
        app = await make_app()
        await test_client.post(
            "/api/me/bookmarks/toggle",
            json={"app_id": str(app.id), "folder_name": "Later"},
            headers=as_user(user),
        )
        await test_client.post("/api/me/bookmark-folders", json={"name": "Tools"}, headers=as_user(user))

        response = await test_client.get(f"/api/me/apps/{app.id}/bookmark-folders", headers=as_user(user))

        assert response.status_code == 200
        folders = response.json()["folders"]
        assert [(f["name"], f["is_bookmarked"]) for f in folders] == [("Later", True), ("Tools", False)]


class TestFolderRoutes:

    @pytest.mark.asyncio
    async def test_create_then_duplicate(self, test_client, make_user):
        user = await make_user()

        created = await test_client.post("/api/me/bookmark-folders", json={"name": "Later"}, headers=as_user(user))
        duplicate = await test_client.post("/api/me/bookmark-folders", json={"name": "Later"}, headers=as_user(user))

        assert created.status_code == 201
        assert created.json()["is_default"] is False
        assert duplicate.status_code == 409
        assert duplicate.json()["error"] == "duplicate_name"

    @pytest.mark.asyncio
    async def test_rename_and_delete(self, test_client, make_user):
        user = await make_user()
        created = await test_client.post("/api/me/bookmark-folders", json={"name": "Later"}, headers=as_user(user))
        folder_id = created.json()["id"]

        renamed = await test_client.patch(
            f"/api/me/bookmark-folders/{folder_id}", json={"name": "Reading"}, headers=as_user(user)
        )
        deleted = await test_client.delete(f"/api/me/bookmark-folders/{folder_id}", headers=as_user(user))
        again = await test_client.delete(f"/api/me/bookmark-folders/{folder_id}", headers=as_user(user))

        assert renamed.json()["name"] == "Reading"
        assert deleted.status_code == 204
        assert again.status_code == 404

    @pytest.mark.asyncio
    async def test_default_folder_is_protected(self, test_client, make_user, session_factory):
        from apphub.services.folder_service import folder_service

        user = await make_user()
        async with session_factory() as session:
            default = await folder_service.create_default_folder(session, user.id)

        rename = await test_client.patch(
            f"/api/me/bookmark-folders/{default.id}", json={"name": "Other"}, headers=as_user(user)
        )
        delete = await test_client.delete(f"/api/me/bookmark-folders/{default.id}", headers=as_user(user))

        assert rename.status_code == 403
        assert rename.json()["error"] == "forbidden"
        assert delete.status_code == 403

    @pytest.mark.asyncio
    async def test_folder_list_and_paged_contents(self, test_client, make_user, make_app):
        user = await make_user()
        first, second = await make_app(name="One"), await make_app(name="Two")
        for app in (first, second):
            await test_client.post(
                "/api/me/bookmarks/toggle",
                json={"app_id": str(app.id), "folder_name": "Later"},
                headers=as_user(user),
            )

        listing = await test_client.get("/api/me/bookmark-folders", headers=as_user(user))
        folders = listing.json()["folders"]
        assert [(f["name"], f["bookmark_count"]) for f in folders] == [("Later", 2)]

        url = f"/api/me/bookmark-folders/{folders[0]['id']}/bookmarks"
        page = await test_client.get(url, params={"limit": 1}, headers=as_user(user))
        rest = await test_client.get(
            url, params={"limit": 1, "cursor": page.json()["next_cursor"]}, headers=as_user(user)
        )

        assert page.status_code == 200
        assert page.headers["X-Total-Count"] == "2"
        assert [b["app_id"] for b in page.json()["bookmarks"]] == [str(second.id)]
        assert page.json()["has_more"] is True
        assert [b["app_id"] for b in rest.json()["bookmarks"]] == [str(first.id)]
        assert rest.json()["has_more"] is False

    @pytest.mark.asyncio
    async def test_paged_contents_of_foreign_folder(self, test_client, make_user):
        alice = await make_user(name="Alice")
        bob = await make_user(name="Bob")
        created = await test_client.post("/api/me/bookmark-folders", json={"name": "Later"}, headers=as_user(alice))

        response = await test_client.get(
            f"/api/me/bookmark-folders/{created.json()['id']}/bookmarks", headers=as_user(bob)
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_malformed_cursor(self, test_client, make_user):
        user = await make_user()
        created = await test_client.post("/api/me/bookmark-folders", json={"name": "Later"}, headers=as_user(user))

        response = await test_client.get(
            f"/api/me/bookmark-folders/{created.json()['id']}/bookmarks",
            params={"cursor": "last tuesday"},
            headers=as_user(user),
        )

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_argument"


class TestRatingRoutes:

    @pytest.mark.asyncio
    async def test_rate_and_summarize(self, test_client, make_user, make_app):
        alice = await make_user(name="Alice")
        bob = await make_user(name="Bob")
        app = await make_app()

        liked = await test_client.post(f"/api/me/apps/{app.id}/rating", json={"type": "LIKE"}, headers=as_user(alice))
        await test_client.post(f"/api/me/apps/{app.id}/rating", json={"type": "DISLIKE"}, headers=as_user(bob))
        summary = await test_client.get(f"/api/apps/{app.id}/ratings")

        assert liked.json()["rating"]["type"] == "LIKE"
        assert summary.json() == {"app_id": str(app.id), "like_count": 1, "dislike_count": 1}

    @pytest.mark.asyncio
    async def test_same_type_twice_clears(self, test_client, make_user, make_app):
        user = await make_user()
        app = await make_app()

        await test_client.post(f"/api/me/apps/{app.id}/rating", json={"type": "LIKE"}, headers=as_user(user))
        cleared = await test_client.post(f"/api/me/apps/{app.id}/rating", json={"type": "LIKE"}, headers=as_user(user))

        assert cleared.json() == {"rating": None}

    @pytest.mark.asyncio
    async def test_summary_of_unknown_app(self, test_client):
        response = await test_client.get(f"/api/apps/{uuid4()}/ratings")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_rating_by_unknown_user(self, test_client, make_app):
        app = await make_app()

        response = await test_client.post(
            f"/api/me/apps/{app.id}/rating", json={"type": "LIKE"}, headers={"X-User-Id": str(uuid4())}
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_liked_apps(self, test_client, make_user, make_app):
        user = await make_user()
        published = await make_app(status=AppStatus.PUBLISHED, name="Shown")
        draft = await make_app(status=AppStatus.DRAFT, name="Draft")
        for app in (published, draft):
            await test_client.post(f"/api/me/apps/{app.id}/rating", json={"type": "LIKE"}, headers=as_user(user))

        response = await test_client.get("/api/me/liked-apps", headers=as_user(user))

        assert response.status_code == 200
        assert response.headers["X-Total-Count"] == "1"
        body = response.json()
        assert [(a["name"], a["like_count"], a["dislike_count"]) for a in body["apps"]] == [("Shown", 1, 0)]
        assert body["has_more"] is False
        assert body["next_cursor"] is None


class TestDeveloperRequestRoutes:

    @pytest.mark.asyncio
    async def test_submit_and_decide(self, test_client, make_user, session_factory):
        from apphub.models import User

        user = await make_user()
        admin = await make_user(name="Admin", role=UserRole.ADMINISTRATOR)

        submitted = await test_client.post(
            "/api/me/developer-requests",
            json={"reason": "I build chatbots", "portfolio_url": "https://example.com/me"},
            headers=as_user(user),
        )
        second = await test_client.post(
            "/api/me/developer-requests", json={"reason": "again"}, headers=as_user(user)
        )
        pending = await test_client.get("/api/me/developer-status", headers=as_user(user))

        assert submitted.status_code == 201
        assert submitted.json()["status"] == "PENDING"
        assert second.status_code == 409
        assert second.json()["error"] == "conflict"
        assert pending.json() == {"status": "PENDING"}

        request_id = submitted.json()["id"]
        decided = await test_client.patch(
            f"/api/admin/developer-requests/{request_id}/status",
            json={"status": "APPROVED"},
            headers=as_user(admin),
        )
        redecided = await test_client.patch(
            f"/api/admin/developer-requests/{request_id}/status",
            json={"status": "REJECTED"},
            headers=as_user(admin),
        )
        approved = await test_client.get("/api/me/developer-status", headers=as_user(user))

        assert decided.status_code == 200
        assert decided.json()["status"] == "APPROVED"
        assert redecided.status_code == 409
        assert redecided.json()["error"] == "invalid_state"
        assert approved.json() == {"status": "APPROVED"}
        async with session_factory() as fresh:
            assert (await fresh.get(User, user.id)).role == UserRole.DEVELOPER

    @pytest.mark.asyncio
    async def test_pending_is_not_a_decision(self, test_client, make_user):
        admin = await make_user(role=UserRole.ADMINISTRATOR)

        response = await test_client.patch(
            f"/api/admin/developer-requests/{uuid4()}/status",
            json={"status": "PENDING"},
            headers=as_user(admin),
        )

        assert response.status_code == 400


class TestAppStatusRoutes:

    @pytest.mark.asyncio
    async def test_publish_then_forbidden_transition(self, test_client, make_user, make_app):
        admin = await make_user(role=UserRole.ADMINISTRATOR)
        app = await make_app(status=AppStatus.PENDING_REVIEW)

        published = await test_client.patch(
            f"/api/admin/apps/{app.id}/status", json={"status": "PUBLISHED"}, headers=as_user(admin)
        )
        to_draft = await test_client.patch(
            f"/api/admin/apps/{app.id}/status", json={"status": "DRAFT"}, headers=as_user(admin)
        )

        assert published.status_code == 200
        assert published.json()["status"] == "PUBLISHED"
        assert to_draft.status_code == 409
        body = to_draft.json()
        assert body["error"] == "invalid_transition"
        assert body["details"] == {"current_status": "PUBLISHED", "target_status": "DRAFT"}

    @pytest.mark.asyncio
    async def test_unknown_app(self, test_client, make_user):
        admin = await make_user(role=UserRole.ADMINISTRATOR)

        response = await test_client.patch(
            f"/api/admin/apps/{uuid4()}/status", json={"status": "PUBLISHED"}, headers=as_user(admin)
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_unknown_status_is_rejected_by_schema(self, test_client, make_user, make_app):
        admin = await make_user(role=UserRole.ADMINISTRATOR)
        app = await make_app()

        response = await test_client.patch(
            f"/api/admin/apps/{app.id}/status", json={"status": "LIVE"}, headers=as_user(admin)
        )

        assert response.status_code == 422


class TestHealth:

    @pytest.mark.asyncio
    async def test_healthy(self, test_client, engine, monkeypatch):
        monkeypatch.setattr("apphub.routes.health.engine", engine)

        response = await test_client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
        assert body["mail"] == "closed"
