"""Groups the flat message log into per-contact conversations.

Pure and stateless: every read rebuilds the conversations from the loaded
message window, O(messages) per call. Raising ``message_window`` raises that
cost linearly.
"""
from collections import defaultdict
from datetime import datetime, timezone, tzinfo
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from app.db.models import Message
from app.services.contacts.resolver import ContactIdentity
from app.services.conversations.models import Conversation, ThreadMessage
from app.services.phone.normalizer import (
    conversation_key,
    conversation_phone,
    format_display,
    is_matchable,
)


def _sort_key(message: Message):
    return (message.created_at or datetime.min, message.id or 0)


class ConversationAggregator:
    """Builds Conversation views from Message rows."""

    def __init__(self, tz: tzinfo = timezone.utc):
        self.tz = tz

    def local_time(self, timestamp: datetime) -> datetime:
        """Stored timestamps are naive UTC."""
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return timestamp.astimezone(self.tz)

    def group(self, messages: Iterable[Message]) -> Dict[str, List[Message]]:
        """
        Group by raw phone, then merge raw groups whose canonical keys collide.

        ``2405551234`` and ``+1 (240) 555-1234`` end up in the same group.
        """
        by_raw: Dict[str, List[Message]] = defaultdict(list)
        for message in messages:
            by_raw[message.customer_phone or ""].append(message)

        merged: Dict[str, List[Message]] = defaultdict(list)
        for raw_phone, group in by_raw.items():
            merged[conversation_key(raw_phone)].extend(group)
        return dict(merged)

    def build(
        self,
        messages: Iterable[Message],
        contacts: Optional[Mapping[str, ContactIdentity]] = None,
        focus_phone: Optional[str] = None,
        include_archived: bool = False,
    ) -> List[Conversation]:
        """
        Build the inbox.

        Args:
            messages: Message rows in any order
            contacts: Canonical key -> identity, for display names
            focus_phone: A number the user navigated to directly; its
                conversation is always returned (empty if it has no messages,
                visible even if archived) without touching stored flags
            include_archived: Also return fully archived conversations

        Returns:
            Conversations, most recent activity first. Hidden ones are only
            included when ``include_archived`` is set, with ``visible=False``.
        """
        contacts = contacts or {}
        groups = self.group(messages)
        focus_key = conversation_key(focus_phone) if focus_phone else None

        conversations = []
        for key, group in groups.items():
            conversation = self.build_one(key, group, contacts.get(key))
            if key == focus_key:
                conversation.visible = True
            if conversation.visible or include_archived:
                conversations.append(conversation)

        if focus_key is not None and focus_key not in groups:
            conversations.append(self.empty_shell(focus_phone, contacts.get(focus_key)))

        def order(conversation: Conversation):
            is_focus = conversation_key(conversation.phone) == focus_key
            return (is_focus, conversation.last_message_at or datetime.min)

        conversations.sort(key=order, reverse=True)
        return conversations

    def build_one(
        self,
        key: str,
        group: Sequence[Message],
        identity: Optional[ContactIdentity] = None,
    ) -> Conversation:
        """Build one conversation from every message sharing a key."""
        newest_first = sorted(group, key=_sort_key, reverse=True)
        latest = newest_first[0] if newest_first else None

        thread: List[ThreadMessage] = []
        previous_day = None
        for message in reversed(newest_first):
            local_day = self.local_time(message.created_at).date()
            thread.append(
                ThreadMessage(
                    id=message.id,
                    direction=message.direction,
                    channel=message.channel or "sms",
                    body=message.body or "",
                    media_urls=message.media_urls,
                    status=message.status or "received",
                    read=bool(message.read),
                    archived=bool(message.archived),
                    created_at=message.created_at,
                    local_date=local_day,
                    day_divider=local_day != previous_day,
                )
            )
            previous_day = local_day

        unread = sum(
            1
            for m in group
            if m.direction == "inbound" and not m.read and not m.archived
        )
        archived = bool(group) and all(m.archived for m in group)
        raw_phones = sorted({m.customer_phone for m in group if m.customer_phone})
        if is_matchable(key):
            phone = key
        else:
            phone = conversation_phone(raw_phones[0]) if raw_phones else ""

        return Conversation(
            phone=phone,
            display_phone=format_display(phone),
            display_name=self._display_name(phone, newest_first, identity),
            customer_id=identity.customer_id if identity else None,
            contact_name=identity.contact_name if identity else None,
            raw_phones=raw_phones,
            last_message=latest.body if latest else None,
            last_message_at=latest.created_at if latest else None,
            last_direction=latest.direction if latest else None,
            message_count=len(group),
            unread_count=unread,
            archived=archived,
            visible=not archived,
            messages=thread,
        )

    def empty_shell(self, raw_phone: str, identity: Optional[ContactIdentity] = None) -> Conversation:
        """A conversation with no messages yet (e.g. opened from a call)."""
        phone = conversation_phone(raw_phone)
        return Conversation(
            phone=phone,
            display_phone=format_display(phone),
            display_name=self._display_name(phone, [], identity),
            customer_id=identity.customer_id if identity else None,
            contact_name=identity.contact_name if identity else None,
            raw_phones=[raw_phone] if raw_phone else [],
            visible=True,
        )

    @staticmethod
    def _display_name(
        phone: str, newest_first: Sequence[Message], identity: Optional[ContactIdentity]
    ) -> str:
        if identity is not None:
            return identity.label
        for message in newest_first:
            if message.customer_name:
                return message.customer_name
        return format_display(phone)
