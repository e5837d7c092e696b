"""Twilio Messages API client."""
import logging
from typing import List, Optional

import httpx
from pydantic import BaseModel

from app.core.errors import ProviderError

logger = logging.getLogger(__name__)


class SendResult(BaseModel):
    """What the provider told us about an accepted message."""

    success: bool
    sid: Optional[str] = None
    status: Optional[str] = None


class TwilioSmsClient:
    """Sends SMS/MMS through Twilio's REST API."""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        http_client: httpx.AsyncClient,
        api_base: str = "https://api.twilio.com/2010-04-01",
        status_callback_url: Optional[str] = None,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.http_client = http_client
        self.api_base = api_base.rstrip("/")
        self.status_callback_url = status_callback_url

    @property
    def configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    async def send_sms(
        self, to: str, body: str, media_urls: Optional[List[str]] = None
    ) -> SendResult:
        """
        Send one message.

        Args:
            to: Destination in E.164 form
            body: Message text
            media_urls: Public URLs of attachments (turns it into an MMS)

        Returns:
            SendResult with the provider-assigned sid

        Raises:
            ProviderError: Twilio is not configured, unreachable, or rejected the message
        """
        if not self.configured:
            raise ProviderError("Twilio not configured")

        data = {"To": to, "From": self.from_number, "Body": body}
        if media_urls:
            data["MediaUrl"] = list(media_urls)
        if self.status_callback_url:
            data["StatusCallback"] = self.status_callback_url

        url = f"{self.api_base}/Accounts/{self.account_sid}/Messages.json"
        try:
            response = await self.http_client.post(
                url, data=data, auth=(self.account_sid, self.auth_token)
            )
        except httpx.HTTPError as e:
            logger.error(f"[SMS] Twilio request failed - to: {to}, error: {type(e).__name__}: {e}")
            raise ProviderError(f"Failed to send SMS: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if response.status_code >= 400:
            message = payload.get("message") or "Failed to send SMS"
            logger.error(f"[SMS] Twilio rejected message - to: {to}, status: {response.status_code}, {message}")
            raise ProviderError(message, status_code=response.status_code)

        logger.info(f"[SMS] Sent message to {to} - sid: {payload.get('sid')}")
        return SendResult(success=True, sid=payload.get("sid"), status=payload.get("status"))
