"""Voicemail transcription fallback."""
import logging
from typing import Optional, Tuple

import httpx
from openai import AsyncOpenAI

from app.core.errors import ProviderError

logger = logging.getLogger(__name__)


class VoicemailTranscriber:
    """Transcribes a Twilio recording with OpenAI Whisper."""

    def __init__(
        self,
        api_key: str,
        http_client: httpx.AsyncClient,
        twilio_auth: Optional[Tuple[str, str]] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.client = client or AsyncOpenAI(api_key=api_key)
        self.http_client = http_client
        self.twilio_auth = twilio_auth

    async def transcribe(self, recording_url: str) -> str:
        """
        Fetch a recording and transcribe it.

        Args:
            recording_url: Twilio RecordingUrl (without extension)

        Returns:
            Transcribed text
        """
        try:
            response = await self.http_client.get(f"{recording_url}.wav", auth=self.twilio_auth)
            response.raise_for_status()
            transcript = await self.client.audio.transcriptions.create(
                model="whisper-1",
                file=("voicemail.wav", response.content, "audio/wav"),
            )
        except Exception as e:
            raise ProviderError(f"Transcription failed: {e}") from e
        return transcript.text
