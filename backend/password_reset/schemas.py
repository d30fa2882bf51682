# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for the password-reset endpoints."""

from pydantic import BaseModel, EmailStr


class ResetRequest(BaseModel):
    email: EmailStr
    bot_check_proof: str


class ResetCompleteRequest(BaseModel):
    token: str
    new_password: str


class TokenLookupResponse(BaseModel):
    token: str
