"""
AppHub Backend — Developer Request SQLAlchemy Model
====================================================

What:  ORM model for `developer_requests`, a user's application to become a developer.

Lifecycle:
    1. Created by the user (status = PENDING)
    2. Decided once by an administrator: PENDING → APPROVED | REJECTED
    3. Never deleted; the full history derives the user's developer status

Query Patterns:
    - History of one user, newest first:
      WHERE user_id = :id ORDER BY created_at DESC
      → idx_developer_requests_user_created
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Enum, ForeignKey, Index, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from apphub.database import Base, utc_now


class DeveloperRequestStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class DeveloperRequest(Base):
    __tablename__ = "developer_requests"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    reason: Mapped[str] = mapped_column(Text, nullable=False)
    portfolio_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)

    status: Mapped[DeveloperRequestStatus] = mapped_column(
        Enum(DeveloperRequestStatus, name="developer_request_status", native_enum=False, length=16),
        nullable=False,
        default=DeveloperRequestStatus.PENDING,
        server_default=text("'PENDING'"),
    )

    # Administrator's explanation, shown to the requester in the decision mail
    result_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("idx_developer_requests_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<DeveloperRequest(id={self.id}, status='{self.status.value}')>"
