# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
TOTP primitives (RFC 6238, 30 s step, 6 digits) for the two-factor flow.

* secret generation            (pyotp)
* otpauth:// provisioning URI  (pyotp)
* QR rendering as a data URL   (qrcode + Pillow)
* code verification with ±1 step clock-skew tolerance
"""

import base64
import io
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import pyotp
import qrcode

# One step before / after the current one
VALID_WINDOW = 1


@dataclass(frozen=True)
class EnrollmentMaterial:
    secret_uri: str    # otpauth://totp/...
    qr_data_url: str   # data:image/png;base64,...


def new_secret() -> str:
    """Fresh 160-bit base32 secret."""
    return pyotp.random_base32(length=32)


def provisioning_uri(secret: str, account_label: str, issuer: str) -> str:
    return pyotp.TOTP(secret).provisioning_uri(name=account_label, issuer_name=issuer)


def qr_data_url(payload: str) -> str:
    """PNG QR code of *payload*, inlined as a ``data:`` URL for the client."""
    qr = qrcode.QRCode(version=None, box_size=8, border=4)
    qr.add_data(payload)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


def enrollment_material(secret: str, account_label: str, issuer: str) -> EnrollmentMaterial:
    uri = provisioning_uri(secret, account_label, issuer)
    return EnrollmentMaterial(secret_uri=uri, qr_data_url=qr_data_url(uri))


def verify_code(secret: str, code: str, at: Optional[datetime] = None) -> bool:
    """
    True if *code* is the TOTP for *secret* in the current step or one step
    either side.  Malformed input is just ``False``.
    """
    code = (code or "").strip().replace(" ", "")
    if not code.isdigit():
        return False
    return pyotp.TOTP(secret).verify(code, for_time=at, valid_window=VALID_WINDOW)
