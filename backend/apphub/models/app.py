"""
AppHub Backend — App Listing SQLAlchemy Model
==============================================

What:  ORM model for the `apps` table (an AI-app listing published by a developer).
Who:   AppStatusService mutates `status`; toggle services only check existence.

Only the columns the workflow needs are mapped. Description, thumbnails,
tags and categories follow ordinary CRUD rules and live in the catalog module.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Index, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from apphub.database import Base, utc_now


class AppStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PENDING_REVIEW = "PENDING_REVIEW"
    PUBLISHED = "PUBLISHED"
    PRIVATE = "PRIVATE"
    ARCHIVED = "ARCHIVED"
    SUSPENDED = "SUSPENDED"
    REJECTED = "REJECTED"


class App(Base):
    """
    An app listing.

    The initial status is chosen by whoever creates the listing; every
    change afterwards must go through AppStatusService so the transition
    table is enforced.
    """

    __tablename__ = "apps"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    creator_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    status: Mapped[AppStatus] = mapped_column(
        Enum(AppStatus, name="app_status", native_enum=False, length=32),
        nullable=False,
        default=AppStatus.DRAFT,
        server_default=text("'DRAFT'"),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("idx_apps_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<App(id={self.id}, status='{self.status.value}')>"
