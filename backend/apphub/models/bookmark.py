"""
AppHub Backend — Bookmark Folder & Bookmark Models
===================================================

What:  ORM models for `bookmark_folders` and `bookmarks`.
Who:   FolderService owns folders; BookmarkService creates/removes bookmarks.

Table Design:
    bookmark_folders  UNIQUE (owner_id, name)
        Every owner has exactly one folder with is_default = true, created at
        registration. It can never be renamed or deleted.

    bookmarks         UNIQUE (owner_id, app_id, folder_id)
        An app can sit in several folders of the same owner, at most once
        per folder. Rows are inserted or deleted, never updated.

    Both unique constraints double as the concurrency signal: a violation on
    insert means a concurrent request got there first.
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String, UniqueConstraint, Uuid, false, text
from sqlalchemy.orm import Mapped, mapped_column

from apphub.database import Base, utc_now


class BookmarkFolder(Base):
    __tablename__ = "bookmark_folders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Case-sensitive; uniqueness is exact-match per owner
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    is_default: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        UniqueConstraint("owner_id", "name", name="uq_bookmark_folders_owner_name"),
    )

    def __repr__(self) -> str:
        return f"<BookmarkFolder(id={self.id}, name='{self.name}', default={self.is_default})>"


class Bookmark(Base):
    __tablename__ = "bookmarks"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    app_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("apps.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    folder_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("bookmark_folders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        UniqueConstraint(
            "owner_id", "app_id", "folder_id",
            name="uq_bookmarks_owner_app_folder",
        ),
    )

    def __repr__(self) -> str:
        return f"<Bookmark(app_id={self.app_id}, folder_id={self.folder_id})>"
