"""
AppHub Backend — Current-User Routes
=====================================

What:  Bookmark, folder, rating and developer-request endpoints acting on
       behalf of the user identified by `X-User-Id`.
How:   Validate the body with pydantic, forward to the service, convert the
       returned ORM rows to response schemas. No business rules here.

Endpoints:
    POST   /api/me/bookmarks/toggle
    GET    /api/me/apps/{app_id}/bookmark-folders
    GET    /api/me/bookmark-folders
    GET    /api/me/bookmark-folders/{folder_id}/bookmarks
    POST   /api/me/bookmark-folders
    PATCH  /api/me/bookmark-folders/{folder_id}
    DELETE /api/me/bookmark-folders/{folder_id}
    POST   /api/me/apps/{app_id}/rating
    GET    /api/apps/{app_id}/ratings
    GET    /api/me/liked-apps
    POST   /api/me/developer-requests
    GET    /api/me/developer-status
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from apphub.database import get_db_session
from apphub.dependencies import get_current_user_id
from apphub.schemas.common import ErrorResponse
from apphub.schemas.engagement import (
    BookmarkFolderListResponse,
    BookmarkFolderResponse,
    BookmarkFolderSummary,
    BookmarkFolderSummaryListResponse,
    BookmarkFolderWithStatus,
    BookmarkPageResponse,
    BookmarkResponse,
    BookmarkToggleRequest,
    BookmarkToggleResponse,
    FolderCreateRequest,
    FolderRenameRequest,
    LikedAppPageResponse,
    LikedAppResponse,
    RateRequest,
    RatingResponse,
    RatingSummaryResponse,
    RatingToggleResponse,
)
from apphub.schemas.workflow import (
    DeveloperRequestResponse,
    DeveloperRequestSubmit,
    DeveloperStatusResponse,
)
from apphub.services.bookmark_service import bookmark_service
from apphub.services.developer_request_service import developer_request_service
from apphub.services.folder_service import folder_service
from apphub.services.rating_service import rating_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Me"])

_COMMON_ERRORS = {
    400: {"description": "Invalid argument", "model": ErrorResponse},
    401: {"description": "Missing or malformed X-User-Id", "model": ErrorResponse},
    404: {"description": "Not found or not owned", "model": ErrorResponse},
}


# ── Bookmarks ─────────────────────────────────────────────────────────────

@router.post(
    "/me/bookmarks/toggle",
    response_model=BookmarkToggleResponse,
    responses=_COMMON_ERRORS,
    summary="Add or remove an app from a bookmark folder",
)
async def toggle_bookmark(
    body: BookmarkToggleRequest,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> BookmarkToggleResponse:
    """
    `{"bookmark": {...}}` when the app was added, `{"bookmark": null}` when it
    was removed. Naming a folder that does not exist creates it.
    """
    bookmark = await bookmark_service.toggle(
        db=db,
        owner_id=user_id,
        app_id=body.app_id,
        folder_id=body.folder_id,
        folder_name=body.folder_name,
    )
    return BookmarkToggleResponse(
        bookmark=BookmarkResponse.model_validate(bookmark) if bookmark else None
    )


@router.get(
    "/me/apps/{app_id}/bookmark-folders",
    response_model=BookmarkFolderListResponse,
    responses=_COMMON_ERRORS,
    summary="List the user's folders with the app's bookmark state in each",
)
async def list_folders_for_app(
    app_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> BookmarkFolderListResponse:
    rows = await folder_service.list_folders_for_app(db=db, owner_id=user_id, app_id=app_id)
    return BookmarkFolderListResponse(
        folders=[
            BookmarkFolderWithStatus(
                **BookmarkFolderResponse.model_validate(folder).model_dump(),
                is_bookmarked=is_bookmarked,
            )
            for folder, is_bookmarked in rows
        ]
    )


# ── Folders ───────────────────────────────────────────────────────────────

@router.get(
    "/me/bookmark-folders",
    response_model=BookmarkFolderSummaryListResponse,
    responses=_COMMON_ERRORS,
    summary="List the user's bookmark folders with bookmark counts",
)
async def list_folders(
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> BookmarkFolderSummaryListResponse:
    rows = await folder_service.list_folders(db=db, owner_id=user_id)
    return BookmarkFolderSummaryListResponse(
        folders=[
            BookmarkFolderSummary(
                **BookmarkFolderResponse.model_validate(folder).model_dump(),
                bookmark_count=count,
            )
            for folder, count in rows
        ]
    )


@router.get(
    "/me/bookmark-folders/{folder_id}/bookmarks",
    response_model=BookmarkPageResponse,
    responses=_COMMON_ERRORS,
    summary="Page through the bookmarks in one folder",
)
async def list_bookmarks_in_folder(
    folder_id: UUID,
    response: Response,
    limit: int = Query(default=20, ge=1, le=100, description="Items per page (max 100)"),
    cursor: str | None = Query(
        default=None,
        description="next_cursor of the previous page (ISO 8601). Omit for the first page.",
    ),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> BookmarkPageResponse:
    page = await folder_service.list_bookmarks_in_folder(
        db=db, owner_id=user_id, folder_id=folder_id, limit=limit, cursor=cursor
    )
    response.headers["X-Total-Count"] = str(page.total_count)
    return BookmarkPageResponse(
        bookmarks=[BookmarkResponse.model_validate(b) for b in page.items],
        total_count=page.total_count,
        next_cursor=page.next_cursor,
        has_more=page.has_more,
    )


@router.post(
    "/me/bookmark-folders",
    response_model=BookmarkFolderResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**_COMMON_ERRORS, 409: {"description": "Name already used", "model": ErrorResponse}},
    summary="Create a bookmark folder",
)
async def create_folder(
    body: FolderCreateRequest,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> BookmarkFolderResponse:
    folder = await folder_service.create_folder(db=db, owner_id=user_id, name=body.name)
    return BookmarkFolderResponse.model_validate(folder)


@router.patch(
    "/me/bookmark-folders/{folder_id}",
    response_model=BookmarkFolderResponse,
    responses={
        **_COMMON_ERRORS,
        403: {"description": "Default folder", "model": ErrorResponse},
        409: {"description": "Name already used", "model": ErrorResponse},
    },
    summary="Rename a bookmark folder",
)
async def rename_folder(
    folder_id: UUID,
    body: FolderRenameRequest,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> BookmarkFolderResponse:
    folder = await folder_service.rename_folder(
        db=db, owner_id=user_id, folder_id=folder_id, new_name=body.name
    )
    return BookmarkFolderResponse.model_validate(folder)


@router.delete(
    "/me/bookmark-folders/{folder_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={**_COMMON_ERRORS, 403: {"description": "Default folder", "model": ErrorResponse}},
    summary="Delete a bookmark folder and its bookmarks",
)
async def delete_folder(
    folder_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await folder_service.delete_folder(db=db, owner_id=user_id, folder_id=folder_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ── Ratings ───────────────────────────────────────────────────────────────

@router.post(
    "/me/apps/{app_id}/rating",
    response_model=RatingToggleResponse,
    responses=_COMMON_ERRORS,
    summary="Like or dislike an app (sending the same type again removes it)",
)
async def rate_app(
    app_id: UUID,
    body: RateRequest,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> RatingToggleResponse:
    rating = await rating_service.toggle(
        db=db, owner_id=user_id, app_id=app_id, rating_type=body.type
    )
    return RatingToggleResponse(
        rating=RatingResponse.model_validate(rating) if rating else None
    )


@router.get(
    "/apps/{app_id}/ratings",
    response_model=RatingSummaryResponse,
    responses={404: {"description": "App not found", "model": ErrorResponse}},
    summary="Like and dislike counts of an app",
)
async def rating_summary(
    app_id: UUID,
    db: AsyncSession = Depends(get_db_session),
) -> RatingSummaryResponse:
    counts = await rating_service.summarize(db=db, app_id=app_id)
    return RatingSummaryResponse(app_id=app_id, **counts)


@router.get(
    "/me/liked-apps",
    response_model=LikedAppPageResponse,
    responses=_COMMON_ERRORS,
    summary="Page through the published apps the user likes",
)
async def list_liked_apps(
    response: Response,
    limit: int = Query(default=20, ge=1, le=100, description="Items per page (max 100)"),
    cursor: str | None = Query(
        default=None,
        description="next_cursor of the previous page (ISO 8601). Omit for the first page.",
    ),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> LikedAppPageResponse:
    page = await rating_service.list_liked_apps(
        db=db, owner_id=user_id, limit=limit, cursor=cursor
    )
    response.headers["X-Total-Count"] = str(page.total_count)
    return LikedAppPageResponse(
        apps=[
            LikedAppResponse(
                app_id=item.app.id,
                name=item.app.name,
                status=item.app.status,
                liked_at=item.liked_at,
                like_count=item.like_count,
                dislike_count=item.dislike_count,
            )
            for item in page.items
        ],
        total_count=page.total_count,
        next_cursor=page.next_cursor,
        has_more=page.has_more,
    )


# ── Developer Requests ────────────────────────────────────────────────────

@router.post(
    "/me/developer-requests",
    response_model=DeveloperRequestResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        **_COMMON_ERRORS,
        409: {"description": "Already approved or a request is pending", "model": ErrorResponse},
    },
    summary="Apply to become a developer",
)
async def submit_developer_request(
    body: DeveloperRequestSubmit,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> DeveloperRequestResponse:
    request = await developer_request_service.submit(
        db=db,
        user_id=user_id,
        reason=body.reason,
        portfolio_url=str(body.portfolio_url) if body.portfolio_url else None,
    )
    return DeveloperRequestResponse.model_validate(request)


@router.get(
    "/me/developer-status",
    response_model=DeveloperStatusResponse,
    responses=_COMMON_ERRORS,
    summary="The user's developer status derived from their request history",
)
async def developer_status(
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> DeveloperStatusResponse:
    current = await developer_request_service.get_status(db=db, user_id=user_id)
    return DeveloperStatusResponse(status=current.value)
