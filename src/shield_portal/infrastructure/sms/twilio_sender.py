"""SMS delivery through the Twilio REST API."""
from __future__ import annotations

import logging

import httpx

from shield_portal.application.ports.sms import SmsMessage, SmsResult

logger = logging.getLogger(__name__)


class TwilioSmsSender:
    """Implements application.ports.sms.SmsSender."""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        *,
        base_url: str = "https://api.twilio.com",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._account_sid = account_sid
        self._from_number = from_number
        self._client = httpx.AsyncClient(
            base_url=base_url,
            auth=(account_sid, auth_token),
            timeout=timeout,
            transport=transport,
        )

    @property
    def is_configured(self) -> bool:
        return True

    async def send(self, message: SmsMessage) -> SmsResult:
        to = message.to if message.to.startswith("+") else f"+{message.to}"
        try:
            resp = await self._client.post(
                f"/2010-04-01/Accounts/{self._account_sid}/Messages.json",
                data={"To": to, "From": self._from_number, "Body": message.body},
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning("Twilio rejected SMS to %s: HTTP %d", to, exc.response.status_code)
            return SmsResult(success=False, error=_twilio_error(exc.response))
        except httpx.HTTPError as exc:
            logger.warning("Twilio request failed: %s", exc)
            return SmsResult(success=False, error=str(exc) or "Failed to send SMS")

        sid = resp.json().get("sid")
        logger.info("SMS sent to %s (sid=%s)", to, sid)
        return SmsResult(success=True, sid=sid)

    async def aclose(self) -> None:
        await self._client.aclose()


def _twilio_error(response: httpx.Response) -> str:
    try:
        return str(response.json().get("message") or "Failed to send SMS")
    except ValueError:
        return "Failed to send SMS"


class UnconfiguredSmsSender:
    """Used when no SMS credentials are configured (development mode)."""

    @property
    def is_configured(self) -> bool:
        return False

    async def send(self, message: SmsMessage) -> SmsResult:
        logger.debug("SMS not configured, would send to %s: %s", message.to, message.body)
        return SmsResult(success=False, error="SMS provider not configured, running in development mode")

    async def aclose(self) -> None:
        return None
