"""Twilio voice webhook endpoints."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Form, Query, Request
from fastapi.responses import Response

from app.core.dependencies import get_base_url, get_call_state_machine
from app.core.errors import ConfigurationError
from app.core.security import require_twilio_signature
from app.services.calls.state_machine import CallStateMachine, parse_seconds
from app.services.calls.twiml import CallbackUrls

router = APIRouter(dependencies=[Depends(require_twilio_signature)])
logger = logging.getLogger(__name__)


def twiml_response(twiml: str) -> Response:
    return Response(content=twiml, media_type="application/xml")


def ok_response() -> Response:
    return Response(content="OK", media_type="text/plain")


def _client(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@router.post("/voice/incoming")
async def handle_incoming_call(
    request: Request,
    CallSid: str = Form(...),
    From: str = Form(""),
    To: Optional[str] = Form(None),
    machine: CallStateMachine = Depends(get_call_state_machine),
):
    """
    Handle incoming call from Twilio.

    Logs the call and rings every enabled team phone at once.
    """
    logger.info(
        f"[INCOMING CALL] Received incoming call webhook - CallSid: {CallSid}, "
        f"From: {From}, To: {To}, Client: {_client(request)}"
    )
    base_url = get_base_url(request)
    try:
        twiml = await machine.handle_incoming(CallSid, From, To, base_url)
    except ConfigurationError:
        logger.error(f"[INCOMING CALL] No team phones configured - CallSid: {CallSid}")
        raise
    except Exception as e:
        logger.error(
            f"[INCOMING CALL] Error processing incoming call - CallSid: {CallSid}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
        # Still give the caller a way to leave a message
        urls = CallbackUrls(base_url)
        twiml = machine.twiml.voicemail_prompt(
            action_url=urls.voicemail(CallSid, From),
            max_length=machine.settings.voicemail_max_length_seconds,
        )
    return twiml_response(twiml)


@router.post("/voice/status")
async def handle_leg_status(
    request: Request,
    callSid: str = Query(...),
    CallStatus: str = Form(...),
    To: Optional[str] = Form(None),
    CallDuration: Optional[str] = Form(None),
    machine: CallStateMachine = Depends(get_call_state_machine),
):
    """
    Handle status updates for one dialed team phone.

    Always acknowledged with 200 so Twilio never retries.
    """
    logger.info(
        f"[LEG STATUS] Received leg status - CallSid: {callSid}, "
        f"CallStatus: {CallStatus}, To: {To}, Duration: {CallDuration}"
    )
    try:
        await machine.handle_leg_status(callSid, CallStatus, To, parse_seconds(CallDuration))
    except Exception as e:
        logger.error(
            f"[LEG STATUS] Error handling leg status - CallSid: {callSid}, "
            f"CallStatus: {CallStatus}, Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
    return ok_response()


@router.post("/voice/complete")
async def handle_dial_complete(
    request: Request,
    callSid: str = Query(...),
    caller: str = Query("", alias="from"),
    customerName: Optional[str] = Query(None),
    DialCallStatus: Optional[str] = Form(None),
    DialCallDuration: Optional[str] = Form(None),
    machine: CallStateMachine = Depends(get_call_state_machine),
):
    """
    Handle the end of the parallel dial.

    Answered calls are finalized; anything else goes to voicemail.
    """
    logger.info(
        f"[DIAL COMPLETE] Dial finished - CallSid: {callSid}, "
        f"DialCallStatus: {DialCallStatus}, Duration: {DialCallDuration}"
    )
    base_url = get_base_url(request)
    try:
        twiml = await machine.handle_dial_complete(
            callSid,
            DialCallStatus,
            parse_seconds(DialCallDuration),
            caller,
            customerName or None,
            base_url,
        )
    except Exception as e:
        logger.error(
            f"[DIAL COMPLETE] Error finalizing dial - CallSid: {callSid}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
        twiml = machine.twiml.empty()
    return twiml_response(twiml)


@router.post("/voice/voicemail")
async def handle_voicemail(
    request: Request,
    callSid: str = Query(...),
    caller: Optional[str] = Query(None, alias="from"),
    customerName: Optional[str] = Query(None),
    RecordingUrl: Optional[str] = Form(None),
    RecordingDuration: Optional[str] = Form(None),
    TranscriptionText: Optional[str] = Form(None),
    machine: CallStateMachine = Depends(get_call_state_machine),
):
    """Handle a finished voicemail recording."""
    logger.info(
        f"[VOICEMAIL] Voicemail received - CallSid: {callSid}, "
        f"RecordingUrl: {RecordingUrl}, Duration: {RecordingDuration}"
    )
    try:
        twiml = await machine.handle_voicemail(
            callSid,
            caller,
            customerName or None,
            RecordingUrl,
            parse_seconds(RecordingDuration),
            TranscriptionText,
        )
    except Exception as e:
        logger.error(
            f"[VOICEMAIL] Error storing voicemail - CallSid: {callSid}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
        twiml = machine.twiml.closing()
    return twiml_response(twiml)


@router.post("/voice/transcription")
async def handle_transcription(
    request: Request,
    callSid: str = Query(...),
    caller: Optional[str] = Query(None, alias="from"),
    customerName: Optional[str] = Query(None),
    TranscriptionText: Optional[str] = Form(None),
    TranscriptionStatus: Optional[str] = Form(None),
    machine: CallStateMachine = Depends(get_call_state_machine),
):
    """Handle Twilio's asynchronous voicemail transcription."""
    logger.info(
        f"[VOICEMAIL] Transcription callback - CallSid: {callSid}, Status: {TranscriptionStatus}"
    )
    try:
        await machine.handle_transcription(
            callSid, caller, customerName or None, TranscriptionText, TranscriptionStatus
        )
    except Exception as e:
        logger.error(
            f"[VOICEMAIL] Error storing transcription - CallSid: {callSid}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
    return ok_response()
