"""Authentication Pydantic schemas for request/response validation."""

from typing import Optional

from pydantic import BaseModel


class CredentialsRequest(BaseModel):
    """Email/password pair for login and registration.

    Format checks run in the router (validate_credentials) so that the
    client gets per-field messages instead of a schema error.
    """
    email: str
    password: str


class LoginRequest(CredentialsRequest):
    """Request model for user login."""


class RegisterRequest(CredentialsRequest):
    """Request model for user registration."""


class AuthResponse(BaseModel):
    """Response model for successful authentication."""
    user_id: str
    email: str
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None


class SessionResponse(BaseModel):
    """Response model for session check."""
    authenticated: bool
    user_id: Optional[str] = None
    email: Optional[str] = None


class RefreshResponse(BaseModel):
    """Response model for token refresh."""
    success: bool
    message: Optional[str] = None


class LogoutResponse(BaseModel):
    """Response model for logout."""
    success: bool
    message: str = "Logged out successfully"
