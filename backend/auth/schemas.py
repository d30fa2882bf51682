# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for the auth endpoints."""

from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator


# -- Requests --------------------------------------------------------------


class RegisterRequest(BaseModel):
    username: str = Field(min_length=3, max_length=30)
    email: EmailStr
    password: str

    @field_validator("username")
    @classmethod
    def username_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Username cannot be blank")
        return v.strip()


class LoginRequest(BaseModel):
    email: str
    password: str
    device_id: str = Field(min_length=1, max_length=255)


# -- Responses -------------------------------------------------------------


class UserInfoResponse(BaseModel):
    """Public account fields – the password hash and TOTP secret never leave the server."""

    id: int
    username: str
    email: str
    role: str
    device_id: Optional[str] = None
    is_logged_in: bool
    is_verified: bool
    totp_enabled: bool

    model_config = {"from_attributes": True}


class EnrollmentMaterialResponse(BaseModel):
    secret_uri: str
    qr_data_url: str

    model_config = {"from_attributes": True}


class RegisterResponse(BaseModel):
    message: str
    user: UserInfoResponse


class LoginResponse(BaseModel):
    message: str
    token: str
    token_type: str = "bearer"
    requires_two_factor: bool
    # Full session only
    user: Optional[UserInfoResponse] = None
    # Partial session only
    enrollment_material: Optional[EnrollmentMaterialResponse] = None


class MessageResponse(BaseModel):
    message: str
