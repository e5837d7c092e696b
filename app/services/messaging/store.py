"""Message persistence."""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from app.core.errors import NotFoundError
from app.db.models import Message, phone_digits
from app.services.contacts.resolver import ContactResolver
from app.services.phone.normalizer import (
    conversation_key,
    conversation_phone,
    is_matchable,
    normalize_phone,
)
from app.services.realtime.notifier import (
    CONVERSATION_UPDATED,
    MESSAGE_CREATED,
    MESSAGE_UPDATED,
    RealtimeNotifier,
)

logger = logging.getLogger(__name__)

# delivery status -> statuses it may replace; "failed"/"undelivered" are final
_DELIVERY_SOURCES = {
    "queued": {"sending"},
    "sent": {"sending", "queued"},
    "delivered": {"sending", "queued", "sent"},
    "undelivered": {"sending", "queued", "sent"},
    "failed": {"sending", "queued", "sent"},
}


def message_payload(message: Message) -> Dict[str, Any]:
    return {
        "id": message.id,
        "direction": message.direction,
        "channel": message.channel,
        "customer_phone": message.customer_phone,
        "phone": conversation_phone(message.customer_phone),
        "customer_name": message.customer_name,
        "body": message.body,
        "media_urls": message.media_urls,
        "status": message.status,
        "read": message.read,
        "archived": message.archived,
        "created_at": message.created_at.isoformat() if message.created_at else None,
    }


class MessageStore:
    """Creates Message rows and flips their read/archived/status fields."""

    def __init__(
        self,
        db: AsyncSession,
        notifier: Optional[RealtimeNotifier] = None,
        resolver: Optional[ContactResolver] = None,
    ):
        self.db = db
        self.notifier = notifier
        self.resolver = resolver or ContactResolver(db)

    def _publish(self, event_type: str, message: Message) -> None:
        if self.notifier is not None:
            self.notifier.publish(
                event_type, conversation_key(message.customer_phone), message_payload(message)
            )

    async def get_by_provider_sid(self, provider_sid: str) -> Optional[Message]:
        result = await self.db.execute(select(Message).where(Message.provider_sid == provider_sid))
        return result.scalar_one_or_none()

    async def _lookup_name(self, raw_phone: str) -> Optional[str]:
        try:
            identity = await self.resolver.resolve(raw_phone)
        except Exception as e:
            logger.error(f"[MESSAGES] Customer lookup failed for {raw_phone}: {e}", exc_info=True)
            return None
        return identity.label if identity else None

    async def record_inbound(
        self,
        from_phone: str,
        body: str,
        media_urls: Optional[List[str]] = None,
        provider_sid: Optional[str] = None,
        channel: Optional[str] = None,
        customer_name: Optional[str] = None,
    ) -> Message:
        """
        Persist an inbound SMS/MMS/voicemail notification.

        Deliveries carrying a ``provider_sid`` we've already stored return the
        existing row instead of inserting a duplicate.
        """
        if provider_sid:
            existing = await self.get_by_provider_sid(provider_sid)
            if existing is not None:
                logger.info(f"[MESSAGES] Duplicate delivery ignored - sid: {provider_sid}")
                return existing

        if customer_name is None:
            customer_name = await self._lookup_name(from_phone)

        message = Message(
            direction="inbound",
            channel=channel or ("mms" if media_urls else "sms"),
            customer_phone=from_phone,
            customer_name=customer_name,
            body=body or "",
            media_urls=media_urls or None,
            provider_sid=provider_sid,
            status="received",
            read=False,
            archived=False,
        )
        self.db.add(message)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            existing = await self.get_by_provider_sid(provider_sid) if provider_sid else None
            if existing is None:
                raise
            return existing
        await self.db.refresh(message)
        logger.info(
            f"[MESSAGES] Stored inbound {message.channel} {message.id} from {from_phone}"
        )
        self._publish(MESSAGE_CREATED, message)
        return message

    async def create_outbound(
        self, to_phone: str, body: str, media_urls: Optional[List[str]] = None
    ) -> Message:
        """Persist an outbound message in ``sending`` state, before the provider call."""
        message = Message(
            direction="outbound",
            channel="mms" if media_urls else "sms",
            customer_phone=to_phone,
            customer_name=await self._lookup_name(to_phone),
            body=body,
            media_urls=media_urls or None,
            status="sending",
            read=True,
            archived=False,
        )
        self.db.add(message)
        await self.db.commit()
        await self.db.refresh(message)
        self._publish(MESSAGE_CREATED, message)
        return message

    async def _set_fields(self, message_id: int, **values) -> Message:
        message = await self.db.get(Message, message_id)
        if message is None:
            raise NotFoundError(f"Message {message_id} not found")
        for name, value in values.items():
            setattr(message, name, value)
        await self.db.commit()
        await self.db.refresh(message)
        self._publish(MESSAGE_UPDATED, message)
        return message

    async def mark_sent(self, message_id: int, provider_sid: Optional[str]) -> Message:
        return await self._set_fields(message_id, status="sent", provider_sid=provider_sid)

    async def mark_failed(self, message_id: int, error: str) -> Message:
        return await self._set_fields(message_id, status="failed", error=error)

    async def update_delivery_status(
        self, provider_sid: str, status: str, error: Optional[str] = None
    ) -> bool:
        """Apply a carrier delivery callback. False if ignored or the row is absent."""
        sources = _DELIVERY_SOURCES.get(status)
        if sources is None:
            return False
        values: Dict[str, Any] = {"status": status}
        if error:
            values["error"] = error
        result = await self.db.execute(
            update(Message)
            .where(Message.provider_sid == provider_sid, Message.status.in_(sources))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        if not result.rowcount:
            if await self.get_by_provider_sid(provider_sid) is None:
                logger.warning(f"[MESSAGES] Status callback for unknown sid {provider_sid}")
            return False
        message = await self.get_by_provider_sid(provider_sid)
        await self.db.refresh(message)
        self._publish(MESSAGE_UPDATED, message)
        return True

    async def load_window(self, limit: int) -> List[Message]:
        """The ``limit`` most recent messages, newest first."""
        result = await self.db.execute(
            select(Message).order_by(Message.created_at.desc(), Message.id.desc()).limit(limit)
        )
        return list(result.scalars().all())

    async def messages_for_phone(self, raw_phone: str) -> List[Message]:
        """Every message whose number normalizes to the same key as ``raw_phone``."""
        key = normalize_phone(raw_phone)
        if not is_matchable(key):
            query = select(Message).where(func.trim(Message.customer_phone) == (raw_phone or "").strip())
        else:
            # SQL prefilter on the separator-free digits; exact match in Python.
            query = select(Message).where(phone_digits(Message.customer_phone).like(f"%{key}"))
        result = await self.db.execute(query.order_by(Message.created_at, Message.id))
        messages = result.scalars().all()
        if not is_matchable(key):
            return list(messages)
        return [m for m in messages if normalize_phone(m.customer_phone) == key]

    async def _flag_conversation(self, raw_phone: str, only_unread: bool, **values) -> List[int]:
        messages = await self.messages_for_phone(raw_phone)
        if only_unread:
            messages = [m for m in messages if m.direction == "inbound" and not m.read]
        ids = [m.id for m in messages]
        if ids:
            await self.db.execute(
                update(Message)
                .where(Message.id.in_(ids))
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
            # identity map still holds the old flag values
            for message in messages:
                for name, value in values.items():
                    set_committed_value(message, name, value)
        if self.notifier is not None:
            self.notifier.publish(
                CONVERSATION_UPDATED,
                conversation_key(raw_phone),
                {"phone": conversation_phone(raw_phone), "message_ids": ids, **values},
            )
        return ids

    async def archive_conversation(self, raw_phone: str) -> List[int]:
        """Archive every message for this number. Returns the affected ids."""
        ids = await self._flag_conversation(raw_phone, only_unread=False, archived=True)
        logger.info(f"[MESSAGES] Archived {len(ids)} messages for {raw_phone}")
        return ids

    async def mark_conversation_read(self, raw_phone: str) -> List[int]:
        """Mark unread inbound messages for this number as read."""
        return await self._flag_conversation(raw_phone, only_unread=True, read=True)
