"""Call read models, one variant per lifecycle state."""
from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from app.db.models import Call


class CallBase(BaseModel):
    """Fields every call carries regardless of state."""

    model_config = ConfigDict(from_attributes=True)

    call_sid: str
    direction: str
    caller_phone: Optional[str] = None
    caller_name: Optional[str] = None
    receiver_phone: Optional[str] = None
    version: int
    started_at: datetime
    updated_at: datetime


class RingingCall(CallBase):
    status: Literal["ringing"]


class InProgressCall(CallBase):
    status: Literal["in-progress"]
    answered_by: Optional[str] = None


class CompletedCall(CallBase):
    status: Literal["completed"]
    answered_by: Optional[str] = None
    duration: int = 0
    recording_url: Optional[str] = None
    ended_at: Optional[datetime] = None


class MissedCall(CallBase):
    status: Literal["missed"]
    ended_at: Optional[datetime] = None


class VoicemailCall(CallBase):
    status: Literal["voicemail"]
    duration: int = 0
    recording_url: Optional[str] = None
    voicemail_url: Optional[str] = None
    ended_at: Optional[datetime] = None


CallView = Annotated[
    Union[RingingCall, InProgressCall, CompletedCall, MissedCall, VoicemailCall],
    Field(discriminator="status"),
]

_call_view_adapter = TypeAdapter(CallView)


def to_call_view(call: Call) -> CallView:
    """Project a Call row onto the variant for its current status."""
    data = {
        "call_sid": call.call_sid,
        "direction": call.direction,
        "caller_phone": call.caller_phone,
        "caller_name": call.caller_name,
        "receiver_phone": call.receiver_phone,
        "version": call.version,
        "started_at": call.started_at,
        "updated_at": call.updated_at,
        "status": call.status,
        "answered_by": call.answered_by,
        "duration": call.duration or 0,
        "recording_url": call.recording_url,
        "voicemail_url": call.voicemail_url,
        "ended_at": call.ended_at,
    }
    return _call_view_adapter.validate_python(data)
