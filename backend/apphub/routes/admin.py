"""
AppHub Backend — Administrator Routes
======================================

What:  Moderation endpoints: app status changes and developer request decisions.
How:   Thin wrappers over AppStatusService and DeveloperRequestService.
       Role checks belong to the platform's auth layer in front of this
       router; the acting id is still required so decisions are attributable
       in the log.

Endpoints:
    PATCH /api/admin/apps/{app_id}/status
    PATCH /api/admin/developer-requests/{request_id}/status
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from apphub.database import get_db_session
from apphub.dependencies import get_current_user_id
from apphub.schemas.common import ErrorResponse
from apphub.schemas.workflow import (
    AppStatusChangeRequest,
    AppStatusResponse,
    DeveloperRequestDecision,
    DeveloperRequestResponse,
)
from apphub.services.app_status_service import app_status_service
from apphub.services.developer_request_service import developer_request_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.patch(
    "/apps/{app_id}/status",
    response_model=AppStatusResponse,
    responses={
        401: {"description": "Missing or malformed X-User-Id", "model": ErrorResponse},
        404: {"description": "App not found", "model": ErrorResponse},
        409: {"description": "Transition not allowed", "model": ErrorResponse},
    },
    summary="Change an app's status",
)
async def change_app_status(
    app_id: UUID,
    body: AppStatusChangeRequest,
    admin_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> AppStatusResponse:
    logger.info("Admin %s requests app %s → %s", admin_id, app_id, body.status.value)
    app = await app_status_service.change_status(
        db=db, app_id=app_id, new_status=body.status, reason=body.reason
    )
    return AppStatusResponse.model_validate(app)


@router.patch(
    "/developer-requests/{request_id}/status",
    response_model=DeveloperRequestResponse,
    responses={
        400: {"description": "Decision is not APPROVED or REJECTED", "model": ErrorResponse},
        401: {"description": "Missing or malformed X-User-Id", "model": ErrorResponse},
        404: {"description": "Request not found", "model": ErrorResponse},
        409: {"description": "Request already decided", "model": ErrorResponse},
    },
    summary="Approve or reject a developer request",
)
async def decide_developer_request(
    request_id: UUID,
    body: DeveloperRequestDecision,
    admin_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> DeveloperRequestResponse:
    logger.info("Admin %s decides developer request %s: %s", admin_id, request_id, body.status.value)
    request = await developer_request_service.decide(
        db=db,
        request_id=request_id,
        decision=body.status,
        result_reason=body.result_reason,
    )
    return DeveloperRequestResponse.model_validate(request)
