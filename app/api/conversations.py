"""Inbox API endpoints."""
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from app.core.dependencies import get_conversation_service, get_messaging_service
from app.services.contacts.hints import ContactHints
from app.services.conversations.models import Conversation, ConversationSummary
from app.services.conversations.service import ConversationService
from app.services.messaging.service import MessagingService

router = APIRouter()
logger = logging.getLogger(__name__)


class SendMessageRequest(BaseModel):
    """Outbound message request."""
    to: str
    message: str = Field(min_length=1)
    media_urls: List[str] = []


class MessageResponse(BaseModel):
    """Stored message response model."""
    id: int
    direction: str
    channel: str
    customer_phone: str
    body: str
    status: str
    provider_sid: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class FlagUpdateResponse(BaseModel):
    """Result of an archive/read action."""
    phone: str
    message_ids: List[int]


@router.get("/api/conversations", response_model=List[ConversationSummary])
async def list_conversations(
    request: Request,
    phone: Optional[str] = None,
    include_archived: bool = False,
    service: ConversationService = Depends(get_conversation_service),
):
    """
    Conversation list.

    ``phone`` deep-links to one number: its conversation is included (and
    listed first) even if archived or empty.
    """
    logger.info(f"[CONVERSATIONS] List requested - phone: {phone}, include_archived: {include_archived}")
    return await service.list_conversations(focus_phone=phone, include_archived=include_archived)


@router.get("/api/conversations/{phone}", response_model=Conversation)
async def get_conversation(
    phone: str,
    service: ConversationService = Depends(get_conversation_service),
):
    """Full thread for one number, oldest message first."""
    return await service.get_conversation(phone)


@router.post("/api/conversations/{phone}/archive", response_model=FlagUpdateResponse)
async def archive_conversation(
    phone: str,
    service: ConversationService = Depends(get_conversation_service),
):
    """Archive every message for this number."""
    ids = await service.archive(phone)
    return FlagUpdateResponse(phone=phone, message_ids=ids)


@router.post("/api/conversations/{phone}/read", response_model=FlagUpdateResponse)
async def mark_conversation_read(
    phone: str,
    service: ConversationService = Depends(get_conversation_service),
):
    """Mark unread inbound messages for this number as read."""
    ids = await service.mark_read(phone)
    return FlagUpdateResponse(phone=phone, message_ids=ids)


@router.get("/api/conversations/{phone}/contact-hints", response_model=ContactHints)
async def get_contact_hints(
    phone: str,
    service: ConversationService = Depends(get_conversation_service),
):
    """Suggested name/email for the link form. Never saved automatically."""
    return await service.contact_hints(phone)


@router.post("/api/messages", response_model=MessageResponse)
async def send_message(
    body: SendMessageRequest,
    service: MessagingService = Depends(get_messaging_service),
):
    """Send an SMS/MMS. Provider failures return 502 and leave the row as failed."""
    logger.info(f"[SEND SMS] Sending message to {body.to}")
    try:
        return await service.send(body.to, body.message, body.media_urls or None)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
