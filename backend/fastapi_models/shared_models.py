"""
Shared Pydantic models
Base responses used by every router
"""

from typing import Literal, Optional
from datetime import datetime
from pydantic import BaseModel, Field


class BaseResponse(BaseModel):
    """Base response model for all API responses"""
    success: bool = True
    message: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.now)


class HealthResponse(BaseModel):
    """Service health check response"""
    status: Literal['healthy', 'degraded', 'unhealthy']
    service: str
