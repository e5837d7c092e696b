"""Outbound messaging."""
import logging
from typing import List, Optional

from app.core.errors import ProviderError
from app.db.models import Message
from app.services.messaging.sms_client import TwilioSmsClient
from app.services.messaging.store import MessageStore
from app.services.phone.normalizer import format_e164, is_matchable, normalize_phone

logger = logging.getLogger(__name__)


class MessagingService:
    """Sends a message and keeps the local row honest about the outcome."""

    def __init__(self, store: MessageStore, sms_client: TwilioSmsClient):
        self.store = store
        self.sms_client = sms_client

    async def send(self, to: str, body: str, media_urls: Optional[List[str]] = None) -> Message:
        """
        Send an SMS/MMS.

        The row is stored as ``sending`` first, then moved to ``sent`` with the
        provider sid, or to ``failed`` with the provider's error (which is
        re-raised).
        """
        if not is_matchable(normalize_phone(to)):
            raise ValueError(f"Unusable phone number: {to!r}")
        destination = format_e164(to)

        message = await self.store.create_outbound(destination, body, media_urls)
        try:
            result = await self.sms_client.send_sms(destination, body, media_urls)
        except ProviderError as e:
            await self.store.mark_failed(message.id, e.message)
            raise
        return await self.store.mark_sent(message.id, result.sid)
