"""
AppHub Backend — Engagement Schemas
====================================

What:  Request/response models for bookmark toggling, bookmark folders, ratings
       and the paged "my bookmarks" / "my likes" lists.
Who:   routes/me.py. Services return ORM rows; routes convert them with
       `Model.model_validate(row)` (from_attributes).

Toggle responses wrap the entity in an object so "toggled off" is an explicit
`null` rather than an empty 204:
    {"bookmark": {...}}   created
    {"bookmark": null}    removed
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from apphub.models.app import AppStatus
from apphub.models.rating import RatingType


# ══════════════════════════════════════════════════════════════════════════
# Bookmarks & Folders
# ══════════════════════════════════════════════════════════════════════════


class BookmarkFolderResponse(BaseModel):
    id: uuid.UUID
    name: str
    is_default: bool = Field(description="The owner's immutable default folder")
    created_at: datetime

    model_config = {"from_attributes": True}


class BookmarkFolderWithStatus(BookmarkFolderResponse):
    """A folder plus whether the app in question is saved in it."""
    is_bookmarked: bool


class BookmarkFolderListResponse(BaseModel):
    folders: List[BookmarkFolderWithStatus]


class BookmarkFolderSummary(BookmarkFolderResponse):
    bookmark_count: int = Field(ge=0)


class BookmarkFolderSummaryListResponse(BaseModel):
    """The caller's folders: default first, then by bookmark count."""
    folders: List[BookmarkFolderSummary]


class BookmarkResponse(BaseModel):
    id: uuid.UUID
    app_id: uuid.UUID
    folder_id: uuid.UUID
    created_at: datetime

    model_config = {"from_attributes": True}


class BookmarkPageResponse(BaseModel):
    """
    One page of a folder's bookmarks, newest first.

    next_cursor is the created_at of the last item; send it back as `cursor`
    for the next page. Null when there are no more pages.
    """
    bookmarks: List[BookmarkResponse]
    total_count: int = Field(description="Bookmarks in the folder")
    next_cursor: Optional[str] = None
    has_more: bool


class BookmarkToggleRequest(BaseModel):
    """
    Exactly one of `folder_id` / `folder_name` selects the folder.

    Naming a folder that does not exist yet creates it. The exactly-one rule
    is enforced by BookmarkService (InvalidArgumentError → 400) so the
    service behaves the same whether it is called over HTTP or not.
    """
    app_id: uuid.UUID
    folder_id: Optional[uuid.UUID] = None
    folder_name: Optional[str] = Field(default=None, max_length=100)


class BookmarkToggleResponse(BaseModel):
    bookmark: Optional[BookmarkResponse] = Field(
        description="The created bookmark, or null when the toggle removed it"
    )


class FolderCreateRequest(BaseModel):
    name: str = Field(max_length=100)


class FolderRenameRequest(BaseModel):
    name: str = Field(max_length=100)


# ══════════════════════════════════════════════════════════════════════════
# Ratings
# ══════════════════════════════════════════════════════════════════════════


class RatingResponse(BaseModel):
    id: uuid.UUID
    app_id: uuid.UUID
    type: RatingType
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class RateRequest(BaseModel):
    type: RatingType


class RatingToggleResponse(BaseModel):
    rating: Optional[RatingResponse] = Field(
        description="The current rating, or null when the toggle removed it"
    )


class RatingSummaryResponse(BaseModel):
    app_id: uuid.UUID
    like_count: int = Field(ge=0)
    dislike_count: int = Field(ge=0)


class LikedAppResponse(BaseModel):
    app_id: uuid.UUID
    name: str
    status: AppStatus
    liked_at: datetime
    like_count: int = Field(ge=0)
    dislike_count: int = Field(ge=0)


class LikedAppPageResponse(BaseModel):
    """Published apps the caller likes, most recently liked first."""
    apps: List[LikedAppResponse]
    total_count: int
    next_cursor: Optional[str] = None
    has_more: bool
