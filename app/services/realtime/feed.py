"""Client-side reducer for the realtime stream.

Delivery is at-least-once, so applying the same event twice (or an older
version of a call after a newer one) must leave the feed unchanged. Message
rows remember the stream ``seq`` of the last event applied to them.
"""
from typing import Any, Dict

from app.services.realtime.notifier import (
    CALL_UPSERTED,
    CONVERSATION_UPDATED,
    MESSAGE_CREATED,
    MESSAGE_UPDATED,
    RealtimeEvent,
)


class DashboardFeed:
    """Keyed view of calls and messages built from realtime events."""

    def __init__(self):
        self.calls: Dict[str, Dict[str, Any]] = {}
        self.messages: Dict[int, Dict[str, Any]] = {}
        # message id -> seq of the last event applied to it
        self._message_seq: Dict[int, int] = {}

    def apply(self, event: RealtimeEvent) -> bool:
        """Apply one event. Returns True if the feed changed."""
        if event.type == CALL_UPSERTED:
            return self._upsert_call(event.key, event.payload)
        if event.type in (MESSAGE_CREATED, MESSAGE_UPDATED):
            return self._upsert_message(event.seq, event.payload)
        if event.type == CONVERSATION_UPDATED:
            return self._update_flags(event.seq, event.payload)
        return False

    def _is_stale(self, message_id: int, seq: int) -> bool:
        return seq <= self._message_seq.get(message_id, 0)

    def _upsert_call(self, call_sid: str, payload: Dict[str, Any]) -> bool:
        current = self.calls.get(call_sid)
        if current is not None and current.get("version", 0) >= payload.get("version", 0):
            return False
        self.calls[call_sid] = dict(payload)
        return True

    def _upsert_message(self, seq: int, payload: Dict[str, Any]) -> bool:
        message_id = payload["id"]
        if self._is_stale(message_id, seq):
            return False
        self._message_seq[message_id] = seq
        if self.messages.get(message_id) == payload:
            return False
        self.messages[message_id] = dict(payload)
        return True

    def _update_flags(self, seq: int, payload: Dict[str, Any]) -> bool:
        changed = False
        flags = {k: payload[k] for k in ("archived", "read") if k in payload}
        for message_id in payload.get("message_ids", []):
            message = self.messages.get(message_id)
            if message is None or self._is_stale(message_id, seq):
                continue
            self._message_seq[message_id] = seq
            for name, value in flags.items():
                if message.get(name) != value:
                    message[name] = value
                    changed = True
        return changed
