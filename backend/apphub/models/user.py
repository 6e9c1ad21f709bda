"""
AppHub Backend — User SQLAlchemy Model
=======================================

What:  The subset of the `users` table the engagement engine depends on.
Who:   Read by every service (owner existence, mail recipient); written only
       by DeveloperRequestService when a request is approved.

Registration, passwords, avatars and subscriptions belong to the account
module and are not mapped here.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Enum, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from apphub.database import Base, utc_now


class UserRole(str, enum.Enum):
    USER = "USER"
    DEVELOPER = "DEVELOPER"
    ADMINISTRATOR = "ADMINISTRATOR"


class User(Base):
    """
    A marketplace account.

    Role lifecycle:
        USER → DEVELOPER only as a side effect of an approved developer
        request. ADMINISTRATOR accounts are provisioned out of band.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    # Display name; seeds developer_name on approval
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, name="user_role", native_enum=False, length=32),
        nullable=False,
        default=UserRole.USER,
        server_default=text("'USER'"),
    )

    # Public name shown on published apps; NULL until the user becomes a developer
    developer_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, role='{self.role.value}')>"
