# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Auth endpoints – register, login, logout, current-user info.

Security notes
--------------
* Login returns the *same* error message whether the email doesn't exist or
  the password is wrong.  This prevents user-enumeration attacks.
* Logout and /me go through ``get_current_user``, so a token from a device
  that has since been displaced gets ``device_mismatch`` rather than acting
  on the account.
"""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from auth import service
from auth.schemas import (
    EnrollmentMaterialResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RegisterRequest,
    RegisterResponse,
    UserInfoResponse,
)
from core.security import SessionTokenCodec, get_client_ip, get_current_user, get_token_codec
from database import get_db
from models.user import User

router = APIRouter(prefix="/auth", tags=["auth"])


# ---------------------------------------------------------------------------
# POST /auth/register
# ---------------------------------------------------------------------------


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(body: RegisterRequest, request: Request, db: Session = Depends(get_db)):
    """Create a ``normal`` account.  409 if the email is taken."""
    user = service.register(
        db,
        username=body.username,
        email=body.email,
        password=body.password,
        request_ip=get_client_ip(request),
    )
    return RegisterResponse(message="Registration successful", user=UserInfoResponse.model_validate(user))


# ---------------------------------------------------------------------------
# POST /auth/login
# ---------------------------------------------------------------------------


@router.post("/login", response_model=LoginResponse, response_model_exclude_none=True)
def login(
    body: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
    codec: SessionTokenCodec = Depends(get_token_codec),
):
    """
    Authenticate and return a signed token bound to ``device_id``.

    While two-factor enrollment is pending the token is a partial
    credential and ``requires_two_factor`` is true.
    """
    result = service.login(
        db,
        codec,
        email=body.email,
        password=body.password,
        device_id=body.device_id,
        request_ip=get_client_ip(request),
    )
    if result.requires_two_factor:
        return LoginResponse(
            message="Two-factor verification required",
            token=result.token,
            requires_two_factor=True,
            enrollment_material=EnrollmentMaterialResponse(
                secret_uri=result.enrollment.secret_uri,
                qr_data_url=result.enrollment.qr_data_url,
            ),
        )
    return LoginResponse(
        message="Login successful",
        token=result.token,
        requires_two_factor=False,
        user=UserInfoResponse.model_validate(result.user),
    )


# ---------------------------------------------------------------------------
# POST /auth/logout
# ---------------------------------------------------------------------------


@router.post("/logout", response_model=MessageResponse)
def logout(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Clear the device binding; the next login may come from any device."""
    service.end_session(db, current_user.id, actor_id=current_user.id, request_ip=get_client_ip(request))
    return MessageResponse(message="Logged out successfully")


# ---------------------------------------------------------------------------
# GET /auth/me
# ---------------------------------------------------------------------------


@router.get("/me", response_model=UserInfoResponse)
def me(current_user: User = Depends(get_current_user)):
    """Return the authenticated user's public profile (no secrets)."""
    return current_user
