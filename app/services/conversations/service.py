"""Inbox operations on top of the message store."""
import logging
from typing import List, Optional
from zoneinfo import ZoneInfo

from app.core.config import Settings, settings as default_settings
from app.services.contacts.hints import ContactHints, extract_contact_hints
from app.services.contacts.resolver import ContactResolver
from app.services.conversations.aggregator import ConversationAggregator
from app.services.conversations.models import Conversation
from app.services.messaging.store import MessageStore
from app.services.phone.normalizer import conversation_key

logger = logging.getLogger(__name__)


class ConversationService:
    """Builds the conversation list/thread views and applies inbox actions."""

    def __init__(
        self,
        store: MessageStore,
        resolver: ContactResolver,
        settings: Settings = default_settings,
    ):
        self.store = store
        self.resolver = resolver
        self.settings = settings
        self.aggregator = ConversationAggregator(ZoneInfo(settings.timezone))

    async def list_conversations(
        self, focus_phone: Optional[str] = None, include_archived: bool = False
    ) -> List[Conversation]:
        """
        Conversation list over the most recent ``message_window`` messages.

        The full history of ``focus_phone`` is always included.
        """
        messages = await self.store.load_window(self.settings.message_window)
        if focus_phone:
            # a deep-linked thread may be older than the window
            loaded = {m.id for m in messages}
            thread = await self.store.messages_for_phone(focus_phone)
            messages.extend(m for m in thread if m.id not in loaded)
        phones = {m.customer_phone for m in messages}
        if focus_phone:
            phones.add(focus_phone)
        contacts = await self.resolver.resolve_many(phones)
        conversations = self.aggregator.build(
            messages, contacts, focus_phone=focus_phone, include_archived=include_archived
        )
        logger.debug(
            f"[CONVERSATIONS] Built {len(conversations)} conversations from {len(messages)} messages"
        )
        return conversations

    async def get_conversation(self, raw_phone: str) -> Conversation:
        """
        Full thread for one number, regardless of the list window.

        Archived threads resolve too; the result is marked visible for this
        request only.
        """
        messages = await self.store.messages_for_phone(raw_phone)
        contacts = await self.resolver.resolve_many([raw_phone])
        key = conversation_key(raw_phone)
        if not messages:
            return self.aggregator.empty_shell(raw_phone, contacts.get(key))
        conversation = self.aggregator.build_one(key, messages, contacts.get(key))
        conversation.visible = True
        return conversation

    async def archive(self, raw_phone: str) -> List[int]:
        return await self.store.archive_conversation(raw_phone)

    async def mark_read(self, raw_phone: str) -> List[int]:
        return await self.store.mark_conversation_read(raw_phone)

    async def contact_hints(self, raw_phone: str) -> ContactHints:
        """Name/email suggestions from the caller's own messages, newest first."""
        messages = await self.store.messages_for_phone(raw_phone)
        inbound = [m.body for m in reversed(messages) if m.direction == "inbound"]
        return extract_contact_hints(inbound)
