"""
Nexus Compliance - Authentication Schemas

Pydantic schemas for authentication requests and responses.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


# ===========================================
# REQUEST SCHEMAS
# ===========================================

def _check_password_strength(v: str) -> str:
    if len(v) < 8:
        raise ValueError('Password must be at least 8 characters')
    if not any(c.isupper() for c in v):
        raise ValueError('Password must contain at least one uppercase letter')
    if not any(c.islower() for c in v):
        raise ValueError('Password must contain at least one lowercase letter')
    if not any(c.isdigit() for c in v):
        raise ValueError('Password must contain at least one digit')
    return v


class UserRegisterRequest(BaseModel):
    """
    Schema for user registration request.

    Without organization_id a new firm is created from organization_name
    (or the user's name) and the user becomes its managing partner.
    Users joining an existing firm start as staff accountants.
    """
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=100)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone_number: Optional[str] = Field(None, max_length=20)
    organization_name: Optional[str] = Field(None, min_length=1, max_length=255)
    organization_id: Optional[UUID] = None

    @field_validator('password')
    @classmethod
    def password_strength(cls, v: str) -> str:
        """Validate password strength."""
        return _check_password_strength(v)


class UserLoginRequest(BaseModel):
    """Schema for user login request."""
    email: EmailStr
    password: str


class TokenRefreshRequest(BaseModel):
    """Schema for token refresh request."""
    refresh_token: str


class PasswordChangeRequest(BaseModel):
    """Schema for password change request."""
    current_password: str
    new_password: str = Field(..., min_length=8, max_length=100)

    @field_validator('new_password')
    @classmethod
    def password_strength(cls, v: str) -> str:
        return _check_password_strength(v)


class ProfileUpdateRequest(BaseModel):
    """Schema for profile update request."""
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone_number: Optional[str] = Field(None, max_length=20)


# ===========================================
# RESPONSE SCHEMAS
# ===========================================

class TokenResponse(BaseModel):
    """Schema for token response."""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds


class UserResponse(BaseModel):
    """Schema for user response."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    first_name: str
    last_name: str
    phone_number: Optional[str] = None
    role: Optional[str] = None
    is_active: bool
    organization_id: Optional[UUID] = None
    last_login: Optional[datetime] = None
    created_at: datetime

    @field_validator('role', mode='before')
    @classmethod
    def role_value(cls, v: Any) -> Any:
        return v.value if isinstance(v, Enum) else v


class OrganizationResponse(BaseModel):
    """Schema for organization response."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    slug: str
    description: Optional[str] = None
    is_active: bool = True
    created_at: datetime


class UserWithTokenResponse(BaseModel):
    """Schema for user response with tokens."""
    user: UserResponse
    organization: Optional[OrganizationResponse] = None
    tokens: TokenResponse


class CurrentUserResponse(BaseModel):
    """Schema for current user with organization."""
    user: UserResponse
    organization: Optional[OrganizationResponse] = None


class MessageResponse(BaseModel):
    """Generic message response."""
    message: str
    success: bool = True
