"""Common Pydantic v2 schemas shared across the API.

Every location endpoint answers with the ``ApiResponse`` envelope, errors
included.
"""

from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Standard response envelope."""

    success: bool = Field(description="Whether the request succeeded")
    message: str = Field(default="", description="Human-readable outcome")
    data: T | None = Field(default=None, description="Payload, null on failure or no match")
    errors: list[str] | None = Field(default=None, description="Client-safe error messages")

    @classmethod
    def ok(cls, data: T | None, message: str = "") -> "ApiResponse[T]":
        return cls(success=True, message=message, data=data, errors=None)

    @classmethod
    def fail(cls, message: str, errors: list[str] | None = None) -> "ApiResponse[T]":
        return cls(success=False, message=message, data=None, errors=errors)
