"""
Common schema types used across the API.
"""

from typing import Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
    code: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response. Never carries secrets."""

    status: str = "ok"
    version: str
    database: str = "connected"
    ai_configured: bool = False
    environment: str = "development"
