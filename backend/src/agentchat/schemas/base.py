"""
Shared response schemas
"""

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel

DataT = TypeVar("DataT")


class HealthResponse(BaseModel):
    status: str
    version: str


class ErrorResponse(BaseModel):
    """Error body of the chat endpoint."""

    error: str
    details: Optional[str] = None
    stack: Optional[str] = None


class SuccessResponse(BaseModel, Generic[DataT]):
    """Generic success response wrapper for single item"""

    success: bool = True
    message: str = "Success"
    data: DataT


class DeleteResponse(BaseModel):
    success: bool = True
