"""Tests for the Twilio messaging webhooks and signature validation."""
import pytest
from sqlalchemy import select

from app.core.config import settings
from app.core.security import compute_twilio_signature, verify_twilio_signature
from app.db.models import Message
from app.services.messaging.store import MessageStore


class TestIncomingSmsWebhook:
    """Test POST /webhooks/sms/incoming."""

    @pytest.mark.asyncio
    async def test_stores_message_once(self, client, test_db):
        data = {"From": "+12405551234", "To": "+13015550100", "Body": "Hi there", "MessageSid": "SM1"}

        first = await client.post("/webhooks/sms/incoming", data=data)
        second = await client.post("/webhooks/sms/incoming", data=data)

        assert first.status_code == 200
        assert second.status_code == 200
        assert first.text.endswith("<Response></Response>")
        result = await test_db.execute(select(Message))
        messages = result.scalars().all()
        assert len(messages) == 1
        assert messages[0].body == "Hi there"
        assert messages[0].direction == "inbound"

    @pytest.mark.asyncio
    async def test_media_only_message(self, client, test_db):
        response = await client.post(
            "/webhooks/sms/incoming",
            data={
                "From": "+12405551234",
                "MessageSid": "MM1",
                "NumMedia": "2",
                "MediaUrl0": "https://api.twilio.com/media/1",
                "MediaUrl1": "https://api.twilio.com/media/2",
            },
        )

        assert response.status_code == 200
        message = (await test_db.execute(select(Message))).scalar_one()
        assert message.channel == "mms"
        assert message.media_urls == ["https://api.twilio.com/media/1", "https://api.twilio.com/media/2"]

    @pytest.mark.asyncio
    async def test_missing_fields_are_rejected(self, client, test_db):
        no_sender = await client.post("/webhooks/sms/incoming", data={"Body": "hi", "MessageSid": "SM2"})
        no_content = await client.post(
            "/webhooks/sms/incoming", data={"From": "+12405551234", "MessageSid": "SM3"}
        )

        assert no_sender.status_code == 400
        assert no_content.status_code == 400
        assert (await test_db.execute(select(Message))).scalars().all() == []


class TestSmsStatusWebhook:
    """Test POST /webhooks/sms/status."""

    @pytest.mark.asyncio
    async def test_delivery_status_is_applied(self, client, test_db):
        store = MessageStore(test_db)
        message = await store.create_outbound("+12405551234", "Ready for pickup")
        await store.mark_sent(message.id, "SM77")

        response = await client.post(
            "/webhooks/sms/status",
            data={"MessageSid": "SM77", "MessageStatus": "failed", "ErrorCode": "30006"},
        )

        assert response.status_code == 200
        stored = await store.get_by_provider_sid("SM77")
        await test_db.refresh(stored)
        assert stored.status == "failed"
        assert stored.error == "Twilio error 30006"

    @pytest.mark.asyncio
    async def test_unknown_sid_is_acknowledged(self, client):
        response = await client.post(
            "/webhooks/sms/status", data={"MessageSid": "SM404", "MessageStatus": "delivered"}
        )
        assert response.status_code == 200


class TestTwilioSignature:
    """Test webhook signature validation."""

    def test_signature_round_trip(self):
        params = {"From": "+12405551234", "Body": "hi", "MessageSid": "SM1"}
        signature = compute_twilio_signature("https://hub.example.com/webhooks/sms/incoming", params, "token")

        assert verify_twilio_signature(
            "https://hub.example.com/webhooks/sms/incoming", params, signature, "token"
        )
        assert not verify_twilio_signature(
            "https://hub.example.com/webhooks/sms/incoming", {**params, "Body": "bye"}, signature, "token"
        )
        assert not verify_twilio_signature(
            "https://hub.example.com/webhooks/sms/incoming", params, signature, "other-token"
        )
        assert not verify_twilio_signature(
            "https://hub.example.com/webhooks/sms/incoming", params, "", "token"
        )

    @pytest.mark.asyncio
    async def test_enforced_when_enabled(self, client, monkeypatch):
        monkeypatch.setattr(settings, "validate_twilio_signature", True)
        monkeypatch.setattr(settings, "base_url", None)
        data = {"From": "+12405551234", "Body": "hi", "MessageSid": "SM1"}
        url = "http://testserver/webhooks/sms/incoming"

        unsigned = await client.post("/webhooks/sms/incoming", data=data)
        signed = await client.post(
            "/webhooks/sms/incoming",
            data=data,
            headers={
                "X-Twilio-Signature": compute_twilio_signature(url, data, settings.twilio_auth_token)
            },
        )

        assert unsigned.status_code == 403
        assert signed.status_code == 200

    @pytest.mark.asyncio
    async def test_tampered_body_is_rejected(self, client, monkeypatch, test_db):
        monkeypatch.setattr(settings, "validate_twilio_signature", True)
        monkeypatch.setattr(settings, "base_url", None)
        data = {"From": "+12405551234", "Body": "hi", "MessageSid": "SM2"}
        signature = compute_twilio_signature(
            "http://testserver/webhooks/sms/incoming", data, settings.twilio_auth_token
        )

        response = await client.post(
            "/webhooks/sms/incoming",
            data={**data, "Body": "changed"},
            headers={"X-Twilio-Signature": signature},
        )

        assert response.status_code == 403
        result = await test_db.execute(select(Message))
        assert result.scalars().all() == []

    @pytest.mark.asyncio
    async def test_signed_against_public_base_url(self, client, monkeypatch):
        """Test that behind a proxy the signature covers BASE_URL plus path and query."""
        monkeypatch.setattr(settings, "validate_twilio_signature", True)
        monkeypatch.setattr(settings, "base_url", "https://hub.example.com/")
        data = {"CallStatus": "ringing", "To": "+12405550001"}
        path = "/webhooks/voice/status?callSid=CA404"

        public = await client.post(
            path,
            data=data,
            headers={
                "X-Twilio-Signature": compute_twilio_signature(
                    "https://hub.example.com" + path, data, settings.twilio_auth_token
                )
            },
        )
        internal = await client.post(
            path,
            data=data,
            headers={
                "X-Twilio-Signature": compute_twilio_signature(
                    "http://testserver" + path, data, settings.twilio_auth_token
                )
            },
        )

        assert public.status_code == 200
        assert internal.status_code == 403
