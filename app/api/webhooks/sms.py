"""Twilio messaging webhook endpoints."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Form, HTTPException, Request
from fastapi.responses import Response

from app.core.dependencies import get_message_store
from app.core.security import require_twilio_signature
from app.services.calls.twiml import XML_HEADER
from app.services.messaging.store import MessageStore

router = APIRouter(dependencies=[Depends(require_twilio_signature)])
logger = logging.getLogger(__name__)

# Twilio allows up to ten attachments per message
MAX_MEDIA = 10


def media_urls_from_form(form, num_media: int) -> List[str]:
    urls = []
    for index in range(min(num_media, MAX_MEDIA)):
        url = form.get(f"MediaUrl{index}")
        if url:
            urls.append(str(url))
    return urls


@router.post("/sms/incoming")
async def handle_incoming_sms(
    request: Request,
    From: Optional[str] = Form(None),
    To: Optional[str] = Form(None),
    Body: str = Form(""),
    MessageSid: Optional[str] = Form(None),
    NumMedia: int = Form(0),
    store: MessageStore = Depends(get_message_store),
):
    """
    Handle an inbound SMS/MMS.

    Stores the message (deduplicated on MessageSid) and replies with empty
    TwiML, i.e. no auto-reply.
    """
    form = await request.form()
    media_urls = media_urls_from_form(form, NumMedia)
    if not From or (not Body and not media_urls):
        logger.warning(f"[INBOUND SMS] Missing required fields - MessageSid: {MessageSid}")
        raise HTTPException(status_code=400, detail="Missing required fields")

    logger.info(
        f"[INBOUND SMS] Message from {From} to {To} - MessageSid: {MessageSid}, "
        f"media: {len(media_urls)}"
    )
    try:
        await store.record_inbound(
            from_phone=From, body=Body, media_urls=media_urls, provider_sid=MessageSid
        )
    except Exception as e:
        logger.error(
            f"[INBOUND SMS] Error saving message - MessageSid: {MessageSid}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
    return Response(content=f"{XML_HEADER}<Response></Response>", media_type="application/xml")


@router.post("/sms/status")
async def handle_sms_status(
    request: Request,
    MessageSid: str = Form(...),
    MessageStatus: str = Form(...),
    ErrorMessage: Optional[str] = Form(None),
    ErrorCode: Optional[str] = Form(None),
    store: MessageStore = Depends(get_message_store),
):
    """Handle delivery status callbacks for outbound messages."""
    logger.info(f"[SMS STATUS] {MessageSid} -> {MessageStatus}")
    error = ErrorMessage or (f"Twilio error {ErrorCode}" if ErrorCode else None)
    try:
        await store.update_delivery_status(MessageSid, MessageStatus, error)
    except Exception as e:
        logger.error(
            f"[SMS STATUS] Error updating status - MessageSid: {MessageSid}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
    return Response(content="OK", media_type="text/plain")
