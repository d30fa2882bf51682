# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Two-factor endpoints – /auth/2fa/setup and /auth/2fa/verify.

* setup needs a full session (device lock applies).
* verify accepts either a full session or the partial credential handed
  out by /auth/login while enrollment is pending.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from auth.schemas import UserInfoResponse
from core.security import (
    SessionClaims,
    SessionTokenCodec,
    get_client_ip,
    get_current_user,
    get_session_claims,
    get_token_codec,
)
from database import get_db
from models.user import User
from twofactor import service
from twofactor.schemas import SetupResponse, VerifyRequest, VerifyResponse

router = APIRouter(prefix="/auth/2fa", tags=["2fa"])


@router.post("/setup", response_model=SetupResponse)
def setup(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Generate a secret and return its otpauth URI plus a QR image."""
    material = service.setup(db, current_user, request_ip=get_client_ip(request))
    return SetupResponse(secret_uri=material.secret_uri, qr_data_url=material.qr_data_url)


@router.post("/verify", response_model=VerifyResponse, response_model_exclude_none=True)
def verify(
    body: VerifyRequest,
    request: Request,
    claims: SessionClaims = Depends(get_session_claims),
    db: Session = Depends(get_db),
    codec: SessionTokenCodec = Depends(get_token_codec),
):
    """Enable two-factor with a current TOTP code."""
    result = service.verify(db, codec, claims, body.code, request_ip=get_client_ip(request))
    if result.token is None:
        return VerifyResponse(message="Two-factor authentication enabled")
    return VerifyResponse(
        message="Two-factor authentication enabled",
        token=result.token,
        token_type="bearer",
        user=UserInfoResponse.model_validate(result.user),
    )
