"""Request and response bodies of the HTTP API."""

from typing import Any, Optional

from pydantic import BaseModel, Field

from fintracker.models.expense import UserProfile


class LoginRequest(BaseModel):
    username: str = Field(..., max_length=100)
    password: str = Field(..., max_length=200)


class LoginResponse(BaseModel):
    success: bool = True
    token: str
    user: UserProfile


class VerifyResponse(BaseModel):
    success: bool = True
    user: UserProfile


class CategoriesResponse(BaseModel):
    categories: list[str]


class ErrorResponse(BaseModel):
    """Body of every non-2xx response."""

    success: bool = False
    error: str
    issues: Optional[list[dict[str, Any]]] = None
