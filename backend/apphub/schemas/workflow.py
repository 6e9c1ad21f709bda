"""
AppHub Backend — Workflow Schemas
==================================

What:  Request/response models for developer requests and app status changes.
Who:   routes/me.py (submit, status) and routes/admin.py (decide, change status).
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, HttpUrl

from apphub.models.app import AppStatus
from apphub.models.developer_request import DeveloperRequestStatus


# ══════════════════════════════════════════════════════════════════════════
# Developer Requests
# ══════════════════════════════════════════════════════════════════════════


class DeveloperRequestResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    reason: str
    portfolio_url: Optional[str] = None
    status: DeveloperRequestStatus
    result_reason: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class DeveloperRequestSubmit(BaseModel):
    reason: str = Field(max_length=5000, description="Why the user wants to publish apps")
    portfolio_url: Optional[HttpUrl] = Field(default=None, description="Link to prior work")


class DeveloperRequestDecision(BaseModel):
    """
    `status` is typed as the full request enum so that PENDING reaches the
    service and is rejected there as an invalid decision (400), not as a
    schema error (422).
    """
    status: DeveloperRequestStatus
    result_reason: Optional[str] = Field(default=None, max_length=5000)


class DeveloperStatusResponse(BaseModel):
    status: str = Field(description="APPROVED, PENDING, REJECTED or UNSUBMITTED")


# ══════════════════════════════════════════════════════════════════════════
# App Status
# ══════════════════════════════════════════════════════════════════════════


class AppStatusChangeRequest(BaseModel):
    status: AppStatus
    reason: Optional[str] = Field(
        default=None,
        max_length=2000,
        description="Shown to the creator when an app is made private or suspended",
    )


class AppStatusResponse(BaseModel):
    id: uuid.UUID
    name: str
    status: AppStatus
    updated_at: datetime

    model_config = {"from_attributes": True}
