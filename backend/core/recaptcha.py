# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Bot-check collaborator – Google reCAPTCHA v3 ``siteverify``.

The verifier fails closed: a timeout, a transport error, a non-2xx reply or
an unparsable body is an ``ExternalServiceFailure``, never a pass.
"""

from dataclasses import dataclass
from typing import Optional

import httpx

from core.config import settings
from core.errors import ExternalServiceFailure
from core.logger import logger


@dataclass(frozen=True)
class BotCheckResult:
    success: bool
    score: float

    def passes(self, min_score: float) -> bool:
        return self.success and self.score >= min_score


class RecaptchaVerifier:
    def __init__(
        self,
        secret: str,
        verify_url: str,
        timeout: float,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._secret = secret
        self._verify_url = verify_url
        self._timeout = timeout
        self._transport = transport

    def verify(self, proof: str, remote_ip: Optional[str] = None) -> BotCheckResult:
        if not self._secret:
            logger.error("reCAPTCHA secret is not configured – rejecting bot check")
            raise ExternalServiceFailure("Bot verification is not available")

        form = {"secret": self._secret, "response": proof}
        if remote_ip:
            form["remoteip"] = remote_ip

        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.post(self._verify_url, data=form)
                response.raise_for_status()
                body = response.json()
        except httpx.TimeoutException:
            logger.warning("reCAPTCHA verification timed out after %.1fs", self._timeout)
            raise ExternalServiceFailure("Bot verification timed out")
        except httpx.HTTPError as exc:
            logger.warning("reCAPTCHA verification failed: %s", type(exc).__name__)
            raise ExternalServiceFailure("Bot verification is not available")
        except ValueError:
            logger.warning("reCAPTCHA returned a non-JSON body")
            raise ExternalServiceFailure("Bot verification is not available")

        if not isinstance(body, dict):
            raise ExternalServiceFailure("Bot verification is not available")

        try:
            score = float(body.get("score", 0.0))
        except (TypeError, ValueError):
            score = 0.0
        return BotCheckResult(success=bool(body.get("success")), score=score)


def get_bot_verifier() -> RecaptchaVerifier:
    """FastAPI dependency; tests override it with a stub."""
    return RecaptchaVerifier(
        secret=settings.recaptcha_secret,
        verify_url=settings.recaptcha_verify_url,
        timeout=settings.external_timeout_seconds,
    )
