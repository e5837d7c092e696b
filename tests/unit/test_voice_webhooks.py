"""Tests for the Twilio voice webhook endpoints."""
import xml.etree.ElementTree as ET

import pytest
from sqlalchemy import select

from app.db.models import Message
from app.services.calls.state_machine import CallStateMachine

CALLER = "+12405551234"
BUSINESS = "+13015550100"


def parse(response):
    assert response.headers["content-type"].startswith("application/xml")
    return ET.fromstring(response.content)


async def current_call(test_db, call_sid="CA1"):
    return await CallStateMachine(test_db).get_call(call_sid)


class TestIncomingCallWebhook:
    """Test POST /webhooks/voice/incoming."""

    @pytest.mark.asyncio
    async def test_rings_team_phones(self, client, add_team_phones, test_db):
        await add_team_phones(("Alex", "+12405550001"), ("Sam", "+12405550002"))

        response = await client.post(
            "/webhooks/voice/incoming", data={"CallSid": "CA1", "From": CALLER, "To": BUSINESS}
        )

        assert response.status_code == 200
        dial = parse(response).find("Dial")
        assert [n.text for n in dial.findall("Number")] == ["+12405550001", "+12405550002"]
        assert dial.findall("Number")[0].get("statusCallback") == (
            "http://testserver/webhooks/voice/status?callSid=CA1"
        )
        assert dial.get("action").startswith("http://testserver/webhooks/voice/complete?callSid=CA1")
        assert (await current_call(test_db)).status == "ringing"

    @pytest.mark.asyncio
    async def test_no_team_phones_returns_503(self, client):
        response = await client.post(
            "/webhooks/voice/incoming", data={"CallSid": "CA1", "From": CALLER, "To": BUSINESS}
        )

        assert response.status_code == 503
        assert response.json()["detail"] == "No team phones configured"

    @pytest.mark.asyncio
    async def test_all_disabled_prompts_for_voicemail(self, client, add_team_phones):
        await add_team_phones(("Alex", "+12405550001"), enabled=False)

        response = await client.post(
            "/webhooks/voice/incoming", data={"CallSid": "CA1", "From": CALLER, "To": BUSINESS}
        )

        root = parse(response)
        assert root.find("Dial") is None
        assert "Test Wraps" in root.find("Say").text


class TestCallLifecycleWebhooks:
    """Test the status, complete and voicemail callbacks."""

    @pytest.mark.asyncio
    async def test_answered_call(self, client, add_team_phones, test_db):
        await add_team_phones(("Alex", "+12405550001"))
        await client.post("/webhooks/voice/incoming", data={"CallSid": "CA1", "From": CALLER, "To": BUSINESS})

        response = await client.post(
            "/webhooks/voice/status?callSid=CA1",
            data={"CallStatus": "in-progress", "To": "+12405550001"},
        )
        assert response.status_code == 200
        assert response.text == "OK"
        assert (await current_call(test_db)).answered_by == "Alex"

        response = await client.post(
            "/webhooks/voice/complete?callSid=CA1&from=%2B12405551234",
            data={"DialCallStatus": "completed", "DialCallDuration": "61"},
        )
        assert len(parse(response)) == 0

        call = await current_call(test_db)
        assert call.status == "completed"
        assert call.duration == 61

    @pytest.mark.asyncio
    async def test_missed_call_leaves_voicemail(self, client, add_team_phones, test_db):
        await add_team_phones(("Alex", "+12405550001"), ("Sam", "+12405550002"))
        await client.post("/webhooks/voice/incoming", data={"CallSid": "CA1", "From": CALLER, "To": BUSINESS})
        for leg in ("+12405550001", "+12405550002"):
            await client.post(
                "/webhooks/voice/status?callSid=CA1", data={"CallStatus": "no-answer", "To": leg}
            )

        response = await client.post(
            "/webhooks/voice/complete?callSid=CA1&from=%2B12405551234",
            data={"DialCallStatus": "no-answer"},
        )

        record = parse(response).find("Record")
        assert record is not None
        assert record.get("action").startswith("http://testserver/webhooks/voice/voicemail?callSid=CA1")
        assert (await current_call(test_db)).status == "missed"

        response = await client.post(
            "/webhooks/voice/voicemail?callSid=CA1&from=%2B12405551234",
            data={
                "RecordingUrl": "https://api.twilio.com/rec/RE1",
                "RecordingDuration": "14",
                "TranscriptionText": "Please call me about a quote",
            },
        )

        assert parse(response).find("Hangup") is not None
        call = await current_call(test_db)
        assert call.status == "voicemail"
        assert call.duration == 14
        assert call.voicemail_url == "https://api.twilio.com/rec/RE1.mp3"

        result = await test_db.execute(select(Message))
        message = result.scalar_one()
        assert message.channel == "voicemail"
        assert "Please call me about a quote" in message.body

    @pytest.mark.asyncio
    async def test_transcription_callback(self, client, test_db):
        response = await client.post(
            "/webhooks/voice/transcription?callSid=CA9&from=%2B12405551234",
            data={"TranscriptionText": "Need a van wrap", "TranscriptionStatus": "completed"},
        )

        assert response.status_code == 200
        result = await test_db.execute(select(Message))
        assert result.scalar_one().provider_sid == "voicemail:CA9"

    @pytest.mark.asyncio
    async def test_unknown_call_is_acknowledged(self, client):
        """Test that callbacks for calls we never saw still get a 200."""
        response = await client.post(
            "/webhooks/voice/status?callSid=CA404", data={"CallStatus": "completed", "CallDuration": "5"}
        )
        assert response.status_code == 200

        response = await client.post(
            "/webhooks/voice/complete?callSid=CA404&from=%2B12405551234",
            data={"DialCallStatus": "completed", "DialCallDuration": "5"},
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_out_of_order_no_answer_after_completion(self, client, add_team_phones, test_db):
        await add_team_phones(("Alex", "+12405550001"))
        await client.post("/webhooks/voice/incoming", data={"CallSid": "CA1", "From": CALLER, "To": BUSINESS})
        await client.post(
            "/webhooks/voice/status?callSid=CA1",
            data={"CallStatus": "completed", "To": "+12405550001", "CallDuration": "30"},
        )

        await client.post(
            "/webhooks/voice/complete?callSid=CA1&from=%2B12405551234",
            data={"DialCallStatus": "no-answer"},
        )

        assert (await current_call(test_db)).status == "completed"
