"""
AppHub Backend — Bookmark Folder Service
=========================================

What:  Owns bookmark folders: the per-user default folder, create, rename,
       delete, the folder list with bookmark counts, paged folder
       contents, and the "save to folder" listing for one app.
How:   Every write runs inside `unit_of_work(db)`. Name uniqueness is checked
       up front for a clear error and enforced by the
       (owner_id, name) unique constraint when two requests race.
Who:   routes/me.py; BookmarkService resolves folders through it; account
       registration calls create_default_folder().

Folder Rules:
    - Every owner has exactly one default folder; it cannot be renamed or deleted
    - Names are unique per owner (exact, case-sensitive match after trimming
      surrounding whitespace)
    - A folder that belongs to someone else is reported as not found
    - Deleting a folder deletes its bookmarks in the same transaction
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from apphub.config import settings
from apphub.database import unit_of_work, utc_now
from apphub.exceptions import (
    AppHubError,
    DatabaseError,
    DuplicateNameError,
    ForbiddenError,
    InvalidArgumentError,
    NotFoundError,
)
from apphub.models.app import App
from apphub.models.bookmark import Bookmark, BookmarkFolder
from apphub.models.user import User
from apphub.services.pagination import (
    DEFAULT_PAGE_SIZE,
    Page,
    build_page,
    check_limit,
    parse_cursor,
)

logger = logging.getLogger(__name__)


def normalize_folder_name(name: Optional[str], field: str = "name") -> str:
    """Trim a folder name; blank names are rejected."""
    if name is None or not name.strip():
        raise InvalidArgumentError(message="Folder name must not be blank", field=field)
    return name.strip()


class FolderService:
    """
    Bookmark folder operations.

    Stateless apart from configuration: the session is passed to every call.
    """

    def __init__(
        self,
        default_folder_name: str = settings.default_bookmark_folder_name,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.default_folder_name = default_folder_name
        self._clock = clock

    # ── Lookups (also used by BookmarkService) ────────────────────────────

    async def get_owned_folder(
        self, db: AsyncSession, owner_id: UUID, folder_id: UUID
    ) -> BookmarkFolder:
        """Folder `folder_id` if it belongs to `owner_id`, else NotFoundError."""
        folder = await db.get(BookmarkFolder, folder_id)
        if folder is None or folder.owner_id != owner_id:
            raise NotFoundError(resource="bookmark folder", resource_id=folder_id)
        return folder

    async def find_by_name(
        self, db: AsyncSession, owner_id: UUID, name: str
    ) -> Optional[BookmarkFolder]:
        result = await db.execute(
            select(BookmarkFolder).where(
                BookmarkFolder.owner_id == owner_id,
                BookmarkFolder.name == name,
            )
        )
        return result.scalar_one_or_none()

    async def get_default_folder(
        self, db: AsyncSession, owner_id: UUID
    ) -> Optional[BookmarkFolder]:
        result = await db.execute(
            select(BookmarkFolder).where(
                BookmarkFolder.owner_id == owner_id,
                BookmarkFolder.is_default.is_(True),
            )
        )
        return result.scalar_one_or_none()

    # ── Operations ────────────────────────────────────────────────────────

    async def create_default_folder(self, db: AsyncSession, owner_id: UUID) -> BookmarkFolder:
        """
        Give `owner_id` their default folder. Called once at registration;
        calling it again returns the existing default folder.

        Raises:
            NotFoundError:      The user does not exist
            DuplicateNameError: The owner already has a regular folder with
                                the default folder's name
        """
        try:
            try:
                async with unit_of_work(db):
                    if await db.get(User, owner_id) is None:
                        raise NotFoundError(resource="user", resource_id=owner_id)

                    existing = await self.get_default_folder(db, owner_id)
                    if existing is not None:
                        return existing

                    folder = BookmarkFolder(
                        owner_id=owner_id,
                        name=self.default_folder_name,
                        is_default=True,
                        created_at=self._clock(),
                    )
                    db.add(folder)
            except IntegrityError:
                # A concurrent registration step may have created it
                existing = await self.get_default_folder(db, owner_id)
                if existing is not None:
                    return existing
                raise DuplicateNameError(self.default_folder_name)

            logger.info("Default bookmark folder created for user %s", owner_id)
            return folder

        except AppHubError:
            raise
        except Exception as e:
            logger.error("Error creating default folder for %s: %s", owner_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not create the default bookmark folder. Please try again.",
                context={"owner_id": str(owner_id)},
            )

    async def create_folder(self, db: AsyncSession, owner_id: UUID, name: str) -> BookmarkFolder:
        """
        Create a regular (non-default) folder.

        Raises:
            InvalidArgumentError: Blank name
            DuplicateNameError:   The owner already has a folder with this name
        """
        name = normalize_folder_name(name)
        try:
            try:
                async with unit_of_work(db):
                    if await self.find_by_name(db, owner_id, name) is not None:
                        raise DuplicateNameError(name)
                    folder = BookmarkFolder(
                        owner_id=owner_id,
                        name=name,
                        is_default=False,
                        created_at=self._clock(),
                    )
                    db.add(folder)
            except IntegrityError:
                if await self.find_by_name(db, owner_id, name) is not None:
                    raise DuplicateNameError(name)
                raise

            logger.info("Bookmark folder %s created for user %s", folder.id, owner_id)
            return folder

        except DuplicateNameError:
            logger.warning("Folder name %r already used by user %s", name, owner_id)
            raise
        except AppHubError:
            raise
        except Exception as e:
            logger.error("Error creating folder for %s: %s", owner_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not create the bookmark folder. Please try again.",
                context={"owner_id": str(owner_id)},
            )

    async def rename_folder(
        self, db: AsyncSession, owner_id: UUID, folder_id: UUID, new_name: str
    ) -> BookmarkFolder:
        """
        Rename one of the owner's folders. Renaming to the current name succeeds
        without writing.

        Raises:
            InvalidArgumentError: Blank name
            NotFoundError:        Folder missing or owned by someone else
            ForbiddenError:       Folder is the default folder
            DuplicateNameError:   Another folder of the owner has `new_name`
        """
        new_name = normalize_folder_name(new_name)
        try:
            try:
                async with unit_of_work(db):
                    folder = await self.get_owned_folder(db, owner_id, folder_id)
                    if folder.is_default:
                        raise ForbiddenError(
                            message="The default bookmark folder cannot be renamed",
                            context={"folder_id": str(folder_id)},
                        )
                    if folder.name == new_name:
                        return folder

                    other = await self.find_by_name(db, owner_id, new_name)
                    if other is not None:
                        raise DuplicateNameError(new_name)

                    old_name = folder.name
                    folder.name = new_name
            except IntegrityError:
                raise DuplicateNameError(new_name)

            logger.info("Bookmark folder %s renamed %r → %r", folder_id, old_name, new_name)
            return folder

        except (ForbiddenError, DuplicateNameError) as e:
            logger.warning("Rename of folder %s rejected: %s", folder_id, e.message)
            raise
        except AppHubError:
            raise
        except Exception as e:
            logger.error("Error renaming folder %s: %s", folder_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not rename the bookmark folder. Please try again.",
                context={"folder_id": str(folder_id)},
            )

    async def delete_folder(self, db: AsyncSession, owner_id: UUID, folder_id: UUID) -> None:
        """
        Delete one of the owner's folders together with every bookmark in it.

        Raises:
            NotFoundError:  Folder missing or owned by someone else
            ForbiddenError: Folder is the default folder
        """
        try:
            async with unit_of_work(db):
                folder = await self.get_owned_folder(db, owner_id, folder_id)
                if folder.is_default:
                    raise ForbiddenError(
                        message="The default bookmark folder cannot be deleted",
                        context={"folder_id": str(folder_id)},
                    )
                result = await db.execute(delete(Bookmark).where(Bookmark.folder_id == folder.id))
                await db.delete(folder)

            logger.info(
                "Bookmark folder %s deleted with %d bookmark(s)",
                folder_id,
                result.rowcount or 0,
            )

        except ForbiddenError as e:
            logger.warning("Delete of folder %s rejected: %s", folder_id, e.message)
            raise
        except AppHubError:
            raise
        except Exception as e:
            logger.error("Error deleting folder %s: %s", folder_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not delete the bookmark folder. Please try again.",
                context={"folder_id": str(folder_id)},
            )

    async def list_folders_for_app(
        self, db: AsyncSession, owner_id: UUID, app_id: UUID
    ) -> List[Tuple[BookmarkFolder, bool]]:
        """
        The owner's folders, each paired with whether `app_id` is bookmarked in it.

        Order: default folder first, then by creation time.

        Query plan:
            folders:    WHERE owner_id = :owner  → idx on bookmark_folders.owner_id
            bookmarked: WHERE owner_id = :owner AND app_id = :app → idx on bookmarks.app_id

        Raises:
            NotFoundError: The app does not exist
        """
        try:
            if await db.get(App, app_id) is None:
                raise NotFoundError(resource="app", resource_id=app_id)

            folders = (
                await db.execute(
                    select(BookmarkFolder)
                    .where(BookmarkFolder.owner_id == owner_id)
                    .order_by(
                        BookmarkFolder.is_default.desc(),
                        BookmarkFolder.created_at.asc(),
                        BookmarkFolder.name.asc(),
                    )
                )
            ).scalars().all()

            bookmarked = set(
                (
                    await db.execute(
                        select(Bookmark.folder_id).where(
                            Bookmark.owner_id == owner_id,
                            Bookmark.app_id == app_id,
                        )
                    )
                ).scalars().all()
            )

            return [(folder, folder.id in bookmarked) for folder in folders]

        except AppHubError:
            raise
        except Exception as e:
            logger.error("Error listing folders for app %s: %s", app_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not load bookmark folders. Please try again.",
                context={"app_id": str(app_id)},
            )

    async def list_folders(
        self, db: AsyncSession, owner_id: UUID
    ) -> List[Tuple[BookmarkFolder, int]]:
        """
        The owner's folders, each paired with its bookmark count.

        Order: default folder first, then fullest first, then oldest first.
        """
        bookmark_count = func.count(Bookmark.id).label("bookmark_count")
        try:
            rows = await db.execute(
                select(BookmarkFolder, bookmark_count)
                .outerjoin(Bookmark, Bookmark.folder_id == BookmarkFolder.id)
                .where(BookmarkFolder.owner_id == owner_id)
                .group_by(BookmarkFolder.id)
                .order_by(
                    BookmarkFolder.is_default.desc(),
                    bookmark_count.desc(),
                    BookmarkFolder.created_at.asc(),
                )
            )
            return [(folder, count) for folder, count in rows.all()]

        except Exception as e:
            logger.error("Error listing folders of %s: %s", owner_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not load bookmark folders. Please try again.",
                context={"owner_id": str(owner_id)},
            )

    async def list_bookmarks_in_folder(
        self,
        db: AsyncSession,
        owner_id: UUID,
        folder_id: UUID,
        limit: int = DEFAULT_PAGE_SIZE,
        cursor: Optional[str] = None,
    ) -> Page[Bookmark]:
        """
        One page of the bookmarks in a folder, newest first.

        Args:
            limit:  Page size (1-100)
            cursor: ISO timestamp of the last bookmark on the previous page

        Raises:
            InvalidArgumentError: Bad limit or malformed cursor
            NotFoundError:        Folder missing or owned by someone else
        """
        limit = check_limit(limit)
        cursor_dt = parse_cursor(cursor)
        try:
            folder = await self.get_owned_folder(db, owner_id, folder_id)

            query = select(Bookmark).where(Bookmark.folder_id == folder.id)
            if cursor_dt is not None:
                query = query.where(Bookmark.created_at < cursor_dt)
            query = query.order_by(Bookmark.created_at.desc()).limit(limit + 1)
            bookmarks = list((await db.execute(query)).scalars().all())

            total_count = (
                await db.execute(
                    select(func.count(Bookmark.id)).where(Bookmark.folder_id == folder.id)
                )
            ).scalar_one()

            return build_page(bookmarks, limit, total_count, lambda b: b.created_at)

        except AppHubError:
            raise
        except Exception as e:
            logger.error("Error listing bookmarks in folder %s: %s", folder_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not load bookmarks. Please try again.",
                context={"folder_id": str(folder_id)},
            )


# ── Singleton Instance ────────────────────────────────────────────────────
folder_service = FolderService()
