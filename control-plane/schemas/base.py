# control-plane/schemas/base.py
"""
Base schemas for API responses
"""

from pydantic import BaseModel, Field, ConfigDict
from typing import TypeVar, Generic, Optional, List
from datetime import datetime

T = TypeVar("T")


class BaseResponse(BaseModel, Generic[T]):
    """
    Standard API response wrapper
    Used for operations without a resource body (deletes)
    """
    success: bool = True
    message: str = "Operation successful"
    data: Optional[T] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    model_config = ConfigDict(from_attributes=True)


class ErrorResponse(BaseModel):
    """
    Standard error response
    Used for 4xx and 5xx responses
    """
    success: bool = False
    error: str
    error_code: str
    details: Optional[dict] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": False,
                "error": "Gateway 7f1c0a52-4a8e-4d3b-9a55-0c2e1f6b9d10 not found",
                "error_code": "NOT_FOUND",
                "details": {"kind": "gateway", "id": "7f1c0a52-4a8e-4d3b-9a55-0c2e1f6b9d10"},
                "timestamp": "2025-12-26T10:00:00Z"
            }
        }
    )


class ListResponse(BaseModel, Generic[T]):
    """List endpoint body"""
    items: List[T]
    total: int


class IPAMStatsResponse(BaseModel):
    total_blocks: int
    used: int
    available: int
    next_free: Optional[str] = None
    utilization_percent: float


class HealthResponse(BaseModel):
    """Health check response"""
    status: str = "healthy"
    service: str = "control-plane"
    version: str = "0.1.0"
    uptime_seconds: Optional[float] = None
    database: str = "connected"
    timestamp: datetime = Field(default_factory=datetime.utcnow)
