"""Conversation read models."""
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel


class ThreadMessage(BaseModel):
    """A message as rendered inside a thread."""

    id: int
    direction: str
    channel: str
    body: str
    media_urls: Optional[List[str]] = None
    status: str
    read: bool
    archived: bool
    created_at: datetime
    local_date: date
    day_divider: bool  # first message of its local calendar day


class ConversationSummary(BaseModel):
    """One row of the inbox list."""

    phone: str  # canonical key (raw string for unmatchable numbers)
    display_phone: str
    display_name: str
    customer_id: Optional[int] = None
    contact_name: Optional[str] = None
    raw_phones: List[str] = []
    last_message: Optional[str] = None
    last_message_at: Optional[datetime] = None
    last_direction: Optional[str] = None
    message_count: int = 0
    unread_count: int = 0
    archived: bool = False  # every message archived
    visible: bool = True  # shown in the list for this request


class Conversation(ConversationSummary):
    """A full thread, oldest message first."""

    messages: List[ThreadMessage] = []
