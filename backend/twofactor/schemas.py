# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for the two-factor endpoints."""

from typing import Optional

from pydantic import BaseModel, Field

from auth.schemas import UserInfoResponse


class VerifyRequest(BaseModel):
    code: str = Field(max_length=10)


class SetupResponse(BaseModel):
    secret_uri: str    # otpauth:// URI, for manual entry
    qr_data_url: str   # data:image/png;base64,... for scanning


class VerifyResponse(BaseModel):
    message: str
    # Present only when the verification completed a pending login
    token: Optional[str] = None
    token_type: Optional[str] = None
    user: Optional[UserInfoResponse] = None
