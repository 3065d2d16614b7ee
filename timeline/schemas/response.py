"""Generic response schemas"""

from pydantic import BaseModel, Field
from typing import Dict, Optional
from datetime import datetime


class ErrorResponse(BaseModel):
    """Error response schema"""
    error: str
    message: Optional[str] = None
    request_id: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response schema"""
    status: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    dependencies: dict


class UsageResponse(BaseModel):
    """Daily usage snapshot"""
    period_start: datetime
    usage: Dict[str, int]
    limits: Dict[str, int]
    remaining: Dict[str, int]
