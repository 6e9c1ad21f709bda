"""
AppHub Backend — Shared Response Schemas
=========================================

What:  Error envelope returned by every failing endpoint and the /health payload.
"""

from typing import Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standardized error body.

    Example:
        {
            "error": "duplicate_name",
            "message": "A bookmark folder named 'Later' already exists",
            "details": {"name": "Later"},
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """
    Service health. The database is critical (unhealthy when down); an open
    mail circuit only degrades the service, since notifications are best-effort.
    """
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    mail: str = Field(description="Mail delivery circuit: closed, half_open, open")
    pending_notifications: int = Field(description="Deliveries still in flight")
    uptime_seconds: float = Field(description="Seconds since service started")
