"""Create engagement and workflow tables

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  users, apps, bookmark_folders, bookmarks, ratings, developer_requests.
How:   Portable column types (sa.Uuid, TIMESTAMP WITH TIME ZONE, enums stored
       as strings) so the same migration runs on PostgreSQL and SQLite.

The unique constraints are load-bearing: the services rely on them to
detect concurrent creates (folders by name, bookmarks, ratings).

Rollback: downgrade() drops every table (destructive).
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.TIMESTAMP(timezone=True),
        server_default=sa.text("CURRENT_TIMESTAMP"),
        nullable=False,
    )


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("role", sa.String(32), server_default=sa.text("'USER'"), nullable=False),
        sa.Column("developer_name", sa.String(100), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )

    op.create_table(
        "apps",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("creator_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("status", sa.String(32), server_default=sa.text("'DRAFT'"), nullable=False),
        _created_at(),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["creator_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_apps_creator_id", "apps", ["creator_id"])
    op.create_index("idx_apps_status", "apps", ["status"])

    op.create_table(
        "bookmark_folders",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("owner_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("is_default", sa.Boolean(), server_default=sa.false(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("owner_id", "name", name="uq_bookmark_folders_owner_name"),
    )
    op.create_index("ix_bookmark_folders_owner_id", "bookmark_folders", ["owner_id"])

    op.create_table(
        "bookmarks",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("owner_id", sa.Uuid(), nullable=False),
        sa.Column("app_id", sa.Uuid(), nullable=False),
        sa.Column("folder_id", sa.Uuid(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["app_id"], ["apps.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["folder_id"], ["bookmark_folders.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "owner_id", "app_id", "folder_id",
            name="uq_bookmarks_owner_app_folder",
        ),
    )
    op.create_index("ix_bookmarks_app_id", "bookmarks", ["app_id"])
    op.create_index("ix_bookmarks_folder_id", "bookmarks", ["folder_id"])

    op.create_table(
        "ratings",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("owner_id", sa.Uuid(), nullable=False),
        sa.Column("app_id", sa.Uuid(), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        _created_at(),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["app_id"], ["apps.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("owner_id", "app_id", name="uq_ratings_owner_app"),
    )
    op.create_index("ix_ratings_app_id", "ratings", ["app_id"])

    op.create_table(
        "developer_requests",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("portfolio_url", sa.String(2048), nullable=True),
        sa.Column("status", sa.String(16), server_default=sa.text("'PENDING'"), nullable=False),
        sa.Column("result_reason", sa.Text(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_developer_requests_user_created",
        "developer_requests",
        ["user_id", "created_at"],
    )


def downgrade() -> None:
    op.drop_index("idx_developer_requests_user_created", table_name="developer_requests")
    op.drop_table("developer_requests")
    op.drop_index("ix_ratings_app_id", table_name="ratings")
    op.drop_table("ratings")
    op.drop_index("ix_bookmarks_folder_id", table_name="bookmarks")
    op.drop_index("ix_bookmarks_app_id", table_name="bookmarks")
    op.drop_table("bookmarks")
    op.drop_index("ix_bookmark_folders_owner_id", table_name="bookmark_folders")
    op.drop_table("bookmark_folders")
    op.drop_index("idx_apps_status", table_name="apps")
    op.drop_index("ix_apps_creator_id", table_name="apps")
    op.drop_table("apps")
    op.drop_table("users")
