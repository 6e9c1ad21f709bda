"""
AppHub Backend — Bookmark Toggle Service
=========================================

What:  Idempotent create-or-remove of a (user, app, folder) bookmark.
How:   One call = one unit of work. The folder is chosen by id or by name;
       naming a folder that does not exist creates it in the same
       transaction as the bookmark.
Who:   POST /api/me/bookmarks/toggle.

Toggle Flow:
    ┌────────────┐   ┌────────────┐   ┌────────────────┐   ┌──────────────────┐
    │ validate   │──▶│ user + app │──▶│ resolve folder │──▶│ bookmark exists? │
    │ id XOR name│   │ (NotFound) │   │ id │ name+create│   │ yes→delete, None │
    └────────────┘   └────────────┘   └────────────────┘   │ no →insert, row  │
                                                            └──────────────────┘

Races (reconciled through the unique constraints, never surfaced):
    - Two requests name the same new folder: the loser's folder insert
      violates (owner_id, name); its transaction is rolled back and the toggle
      runs once more against the folder the winner created.
    - Two requests add the same bookmark: the loser's insert violates
      (owner_id, app_id, folder_id); the bookmark that won is returned.

Folders are never deleted by a toggle, so toggling a bookmark off leaves an
implicitly created folder in place.
"""

import logging
from datetime import datetime
from typing import Callable, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from apphub.database import unit_of_work, utc_now
from apphub.exceptions import AppHubError, DatabaseError, InvalidArgumentError, NotFoundError
from apphub.models.app import App
from apphub.models.bookmark import Bookmark, BookmarkFolder
from apphub.models.user import User
from apphub.services.folder_service import FolderService, folder_service, normalize_folder_name

logger = logging.getLogger(__name__)

# Folder insert race: at most one retry of the whole toggle
_MAX_ATTEMPTS = 2


class BookmarkService:
    """Bookmark toggling. Folder lookups are delegated to FolderService."""

    def __init__(
        self,
        folders: FolderService = folder_service,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.folders = folders
        self._clock = clock

    async def toggle(
        self,
        db: AsyncSession,
        owner_id: UUID,
        app_id: UUID,
        folder_id: Optional[UUID] = None,
        folder_name: Optional[str] = None,
    ) -> Optional[Bookmark]:
        """
        Add `app_id` to the folder if it is not there, remove it if it is.

        Args:
            db:          Async database session
            owner_id:    Acting user
            app_id:      App to (un)bookmark
            folder_id:   Existing folder of the owner, OR
            folder_name: Folder name; created if the owner has none by that name

        Returns:
            The new Bookmark, or None when the toggle removed an existing one.

        Raises:
            InvalidArgumentError: Both or neither of folder_id/folder_name, or a blank name
            NotFoundError:        User or app missing; folder_id missing or not owned
            DatabaseError:        Unexpected database failure
        """
        if (folder_id is None) == (folder_name is None):
            raise InvalidArgumentError(
                message="Provide exactly one of folder_id or folder_name",
                context={"folder_id": folder_id is not None, "folder_name": folder_name is not None},
            )
        name = normalize_folder_name(folder_name, field="folder_name") if folder_name is not None else None

        try:
            for attempt in range(1, _MAX_ATTEMPTS + 1):
                stage = "folder"
                resolved_folder_id: Optional[UUID] = None
                try:
                    async with unit_of_work(db):
                        if await db.get(User, owner_id) is None:
                            raise NotFoundError(resource="user", resource_id=owner_id)
                        if await db.get(App, app_id) is None:
                            raise NotFoundError(resource="app", resource_id=app_id)

                        folder = await self._resolve_folder(db, owner_id, folder_id, name)
                        resolved_folder_id = folder.id

                        stage = "bookmark"
                        existing = await self._find_bookmark(db, owner_id, app_id, folder.id)
                        if existing is not None:
                            await db.delete(existing)
                            result = None
                        else:
                            result = Bookmark(
                                owner_id=owner_id,
                                app_id=app_id,
                                folder_id=folder.id,
                                created_at=self._clock(),
                            )
                            db.add(result)
                            await db.flush()
                except IntegrityError:
                    if stage == "folder" and attempt < _MAX_ATTEMPTS:
                        logger.info(
                            "Folder %r was created concurrently for user %s; retrying toggle",
                            name,
                            owner_id,
                        )
                        continue
                    if stage == "bookmark" and resolved_folder_id is not None:
                        winner = await self._find_bookmark(db, owner_id, app_id, resolved_folder_id)
                        if winner is not None:
                            logger.info(
                                "Bookmark of app %s was created concurrently; returning it",
                                app_id,
                            )
                            return winner
                    raise

                if result is None:
                    logger.info(
                        "Bookmark removed: user=%s app=%s folder=%s",
                        owner_id, app_id, resolved_folder_id,
                    )
                else:
                    logger.info(
                        "Bookmark added: user=%s app=%s folder=%s",
                        owner_id, app_id, resolved_folder_id,
                    )
                return result

            raise DatabaseError(context={"reason": "folder resolution did not converge"})

        except AppHubError:
            raise
        except Exception as e:
            logger.error(
                "Error toggling bookmark (user=%s app=%s): %s",
                owner_id, app_id, str(e),
                exc_info=True,
            )
            raise DatabaseError(
                message="Could not update the bookmark. Please try again.",
                context={"app_id": str(app_id)},
            )

    # ── Helpers ───────────────────────────────────────────────────────────

    async def _resolve_folder(
        self,
        db: AsyncSession,
        owner_id: UUID,
        folder_id: Optional[UUID],
        name: Optional[str],
    ) -> BookmarkFolder:
        if folder_id is not None:
            return await self.folders.get_owned_folder(db, owner_id, folder_id)

        folder = await self.folders.find_by_name(db, owner_id, name)
        if folder is not None:
            return folder

        folder = BookmarkFolder(
            owner_id=owner_id,
            name=name,
            is_default=False,
            created_at=self._clock(),
        )
        db.add(folder)
        # Surface a (owner_id, name) violation now, before the bookmark write
        await db.flush()
        logger.info("Bookmark folder %r created implicitly for user %s", name, owner_id)
        return folder

    async def _find_bookmark(
        self, db: AsyncSession, owner_id: UUID, app_id: UUID, folder_id: UUID
    ) -> Optional[Bookmark]:
        result = await db.execute(
            select(Bookmark).where(
                Bookmark.owner_id == owner_id,
                Bookmark.app_id == app_id,
                Bookmark.folder_id == folder_id,
            )
        )
        return result.scalar_one_or_none()


# ── Singleton Instance ────────────────────────────────────────────────────
bookmark_service = BookmarkService()
