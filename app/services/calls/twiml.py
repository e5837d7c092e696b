"""TwiML generation for the call-forwarding flow."""
from typing import Iterable, Optional
from urllib.parse import urlencode


def escape_xml(text: str) -> str:
    """Escape XML special characters (text nodes and attribute values)."""
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&apos;")
    )


XML_HEADER = '<?xml version="1.0" encoding="UTF-8"?>'


class CallbackUrls:
    """Absolute callback URLs Twilio is told to hit for one call."""

    def __init__(self, base_url: str, prefix: str = "/webhooks/voice"):
        self.root = f"{base_url.rstrip('/')}{prefix}"

    def _url(self, path: str, **params: Optional[str]) -> str:
        query = urlencode({k: v for k, v in params.items() if v is not None})
        return f"{self.root}/{path}?{query}" if query else f"{self.root}/{path}"

    def leg_status(self, call_sid: str) -> str:
        return self._url("status", callSid=call_sid)

    def dial_complete(self, call_sid: str, caller: str, caller_name: Optional[str] = None) -> str:
        return self._url("complete", callSid=call_sid, **{"from": caller}, customerName=caller_name)

    def voicemail(self, call_sid: str, caller: str, caller_name: Optional[str] = None) -> str:
        return self._url("voicemail", callSid=call_sid, **{"from": caller}, customerName=caller_name)

    def transcription(self, call_sid: str, caller: str, caller_name: Optional[str] = None) -> str:
        return self._url(
            "transcription", callSid=call_sid, **{"from": caller}, customerName=caller_name
        )


class TwiMLBuilder:
    """Builds the TwiML documents returned from the voice webhooks."""

    def __init__(self, business_name: str, voice: str = "alice"):
        self.business_name = business_name
        self.voice = voice

    def _say(self, text: str) -> str:
        return f'<Say voice="{escape_xml(self.voice)}">{escape_xml(text)}</Say>'

    def empty(self) -> str:
        """Acknowledge without further instructions."""
        return f"{XML_HEADER}<Response></Response>"

    def dial(
        self,
        numbers: Iterable[str],
        caller_id: Optional[str],
        timeout: int,
        action_url: str,
        status_callback_url: str,
    ) -> str:
        """
        Ring every number at once; the first leg to answer wins.

        Args:
            numbers: Team phone numbers to ring in parallel
            caller_id: Number shown to the team (the business line)
            timeout: Seconds to ring before giving up
            action_url: Fan-out-complete callback
            status_callback_url: Per-leg status callback

        Returns:
            TwiML XML string
        """
        number_elements = "\n    ".join(
            f'<Number statusCallback="{escape_xml(status_callback_url)}" '
            f'statusCallbackEvent="initiated ringing answered completed">'
            f"{escape_xml(number)}</Number>"
            for number in numbers
        )
        caller_id_attr = f' callerId="{escape_xml(caller_id)}"' if caller_id else ""
        return f"""{XML_HEADER}
<Response>
  <Dial{caller_id_attr} timeout="{timeout}" action="{escape_xml(action_url)}">
    {number_elements}
  </Dial>
</Response>"""

    def voicemail_prompt(
        self,
        action_url: str,
        max_length: int,
        transcribe_callback_url: Optional[str] = None,
    ) -> str:
        """Apologize, then record a transcribed voicemail."""
        prompt = (
            f"Thank you for calling {self.business_name}. We're currently unavailable. "
            "Please leave a message after the beep and we'll get back to you as soon as possible."
        )
        transcribe_attr = (
            f' transcribeCallback="{escape_xml(transcribe_callback_url)}"'
            if transcribe_callback_url
            else ""
        )
        return f"""{XML_HEADER}
<Response>
  {self._say(prompt)}
  <Record maxLength="{max_length}" action="{escape_xml(action_url)}" transcribe="true"{transcribe_attr} playBeep="true" />
  {self._say("We did not receive a recording. Goodbye.")}
</Response>"""

    def closing(self) -> str:
        """Thank the caller and hang up."""
        return f"""{XML_HEADER}
<Response>
  {self._say("Thank you for your message. We'll get back to you shortly. Goodbye.")}
  <Hangup />
</Response>"""
