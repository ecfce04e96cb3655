"""Common DTOs for API responses and error handling."""
from __future__ import annotations

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response model."""
    detail: str = Field(..., description="Error message describing what went wrong")


class InsufficientCreditsResponse(ErrorResponse):
    """Returned with 402 when the balance cannot cover an operation."""
    required: int = Field(..., description="Credits the operation costs", example=2)
    available: int = Field(..., description="Credits currently on the account", example=1)


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Health status", example="healthy")


class RootResponse(BaseModel):
    """Root endpoint response model."""
    status: str = Field(..., description="API status", example="ok")
    service: str = Field(..., description="Service name", example="imagegenie-backend")
    version: str = Field(..., description="API version", example="0.1.0")
