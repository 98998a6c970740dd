"""reCAPTCHA server-side verification."""

from __future__ import annotations

import logging

import httpx

from registration.core.config import RecaptchaSettings

logger = logging.getLogger(__name__)


class RecaptchaClient:
    """Verify tokens produced by the reCAPTCHA widget on the registration form."""

    def __init__(
        self,
        settings: RecaptchaSettings,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._timeout = timeout
        self._transport = transport

    async def verify(self, token: str | None) -> bool:
        """Return True only when Google confirms the token."""
        if not token:
            return False
        if not self._settings.secret_key:
            logger.error("RECAPTCHA_SECRET_KEY is not set; rejecting submission.")
            return False

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    str(self._settings.verify_url),
                    data={"secret": self._settings.secret_key, "response": token},
                )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Error verifying reCAPTCHA: %s", exc)
            return False

        if not payload.get("success"):
            logger.info("reCAPTCHA rejected token: %s", payload.get("error-codes"))
            return False
        return True


__all__ = ["RecaptchaClient"]
