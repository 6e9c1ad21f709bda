"""
AppHub Backend — Rating SQLAlchemy Model
=========================================

What:  ORM model for the `ratings` table.
How:   UNIQUE (owner_id, app_id): at most one rating per user per app.
       No row means "not rated"; RatingService creates, flips or deletes it.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, UniqueConstraint, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from apphub.database import Base, utc_now


class RatingType(str, enum.Enum):
    LIKE = "LIKE"
    DISLIKE = "DISLIKE"


class Rating(Base):
    __tablename__ = "ratings"

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

    type: Mapped[RatingType] = mapped_column(
        Enum(RatingType, name="rating_type", native_enum=False, length=16),
        nullable=False,
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
        UniqueConstraint("owner_id", "app_id", name="uq_ratings_owner_app"),
    )

    def __repr__(self) -> str:
        return f"<Rating(app_id={self.app_id}, type='{self.type.value}')>"
