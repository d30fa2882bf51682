# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Password-reset endpoints – no session required.

* request-password-reset answers the same way for known and unknown emails
  unless ``RESET_UNIFORM_RESPONSE`` is switched off.
* fetch-token exists only for development (``EXPOSE_RESET_TOKEN_LOOKUP``);
  in production the token travels by email.
"""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from auth.schemas import MessageResponse
from core.config import settings
from core.errors import NotFound
from core.recaptcha import RecaptchaVerifier, get_bot_verifier
from core.security import get_client_ip
from database import get_db
from password_reset import service
from password_reset.schemas import ResetCompleteRequest, ResetRequest, TokenLookupResponse

router = APIRouter(prefix="/auth", tags=["password-reset"])

_REQUEST_ACCEPTED = "If the account exists, password reset instructions have been sent."


@router.post("/request-password-reset", response_model=MessageResponse)
def request_password_reset(
    body: ResetRequest,
    request: Request,
    db: Session = Depends(get_db),
    verifier: RecaptchaVerifier = Depends(get_bot_verifier),
):
    service.request_reset(
        db,
        verifier,
        email=body.email,
        bot_check_proof=body.bot_check_proof,
        request_ip=get_client_ip(request),
    )
    return MessageResponse(message=_REQUEST_ACCEPTED)


@router.get("/fetch-token", response_model=TokenLookupResponse)
def fetch_token(
    email: str = Query(..., min_length=3),
    db: Session = Depends(get_db),
):
    if not settings.expose_reset_token_lookup:
        raise NotFound()
    return TokenLookupResponse(token=service.latest_token(db, email))


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(
    body: ResetCompleteRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    service.complete_reset(db, body.token, body.new_password, request_ip=get_client_ip(request))
    return MessageResponse(message="Password reset successful")
