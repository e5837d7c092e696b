"""Unit tests for the Whisper voicemail transcriber."""
from unittest.mock import AsyncMock, Mock

import httpx
import pytest

from app.core.errors import ProviderError
from app.services.calls.transcriber import VoicemailTranscriber


def make_transcriber(handler, text="Hi, call me back"):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    openai_client = Mock()
    openai_client.audio.transcriptions.create = AsyncMock(return_value=Mock(text=text))
    transcriber = VoicemailTranscriber(
        "sk-test", http_client, twilio_auth=("ACtest", "secret"), client=openai_client
    )
    return transcriber, openai_client.audio.transcriptions.create


class TestVoicemailTranscriber:
    """Test recording download and transcription."""

    @pytest.mark.asyncio
    async def test_transcribes_wav_recording(self):
        requested = []

        def handler(request):
            requested.append(str(request.url))
            return httpx.Response(200, content=b"RIFF....WAVE")

        transcriber, create = make_transcriber(handler)

        text = await transcriber.transcribe("https://api.twilio.com/rec/RE1")

        assert text == "Hi, call me back"
        assert requested == ["https://api.twilio.com/rec/RE1.wav"]
        create.assert_awaited_once()
        assert create.await_args.kwargs["model"] == "whisper-1"
        assert create.await_args.kwargs["file"][1] == b"RIFF....WAVE"

    @pytest.mark.asyncio
    async def test_download_failure_raises_provider_error(self):
        transcriber, create = make_transcriber(lambda request: httpx.Response(404))

        with pytest.raises(ProviderError):
            await transcriber.transcribe("https://api.twilio.com/rec/RE1")
        create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_whisper_failure_raises_provider_error(self):
        transcriber, create = make_transcriber(lambda request: httpx.Response(200, content=b"x"))
        create.side_effect = RuntimeError("rate limited")

        with pytest.raises(ProviderError):
            await transcriber.transcribe("https://api.twilio.com/rec/RE1")
