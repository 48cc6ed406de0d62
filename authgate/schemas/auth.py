"""Pydantic schemas for the authentication endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import BaseModel, Field

TOKEN_TYPE = "Bearer"


class LoginRequest(BaseModel):
    """Credentials submitted to the login endpoint."""

    username_or_email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=1024)
    device_info: str | None = Field(
        default=None,
        max_length=255,
        description="Optional client/device description stored with the refresh token.",
    )


class SignUpRequest(BaseModel):
    """New account details. Every self-registered account gets ``ROLE_USER``."""

    username: str = Field(..., min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_.-]+$")
    email: str = Field(..., max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(..., min_length=8, max_length=1024)
    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)


class TokenRefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1, max_length=500)


class LogoutRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1, max_length=500)


class LoginResponse(BaseModel):
    """Access + refresh tokens and a summary of the authenticated user."""

    access_token: str
    refresh_token: str
    token_type: str = TOKEN_TYPE
    expires_in: int = Field(..., description="Access token lifetime in seconds.")
    id: int
    username: str
    email: str
    roles: List[str] = Field(default_factory=list)


class TokenRefreshResponse(BaseModel):
    """New access token paired with the unchanged refresh token."""

    access_token: str
    refresh_token: str
    token_type: str = TOKEN_TYPE
    expires_in: int


class MessageResponse(BaseModel):
    message: str


class UserView(BaseModel):
    """Read-mostly projection of a user, rebuilt from the durable store on miss."""

    id: int
    username: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    enabled: bool = True
    roles: List[str] = Field(default_factory=list)
    permissions: List[str] = Field(default_factory=list)


class SessionView(BaseModel):
    """Active refresh token as shown to its owner. Never carries the token value."""

    id: int
    device_info: str | None = None
    ip_address: str | None = None
    created_at: datetime
    expires_at: datetime
