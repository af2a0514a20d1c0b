"""Schemas for authentication endpoints."""

from pydantic import BaseModel


class RegisterRequest(BaseModel):
    """Schema for account registration.

    Email shape and password length are validated by the account service.
    """

    email: str
    password: str


class LoginRequest(BaseModel):
    """Schema for login."""

    email: str
    password: str


class AccountInfo(BaseModel):
    """Schema for account info in auth responses."""

    id: str
    email: str
    is_verified: bool

    model_config = {"from_attributes": True}


class LoginResponse(BaseModel):
    """Schema for a successful login."""

    token: str
    token_type: str = "bearer"
    id: str
    email: str


class MessageResponse(BaseModel):
    """Schema for simple message response."""

    message: str
