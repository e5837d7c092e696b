"""Inbound call state machine driven by Twilio webhooks.

Every webhook for a call targets the row by ``call_sid`` with a single
conditional UPDATE whose WHERE clause lists the statuses the transition may
start from. Retries, late deliveries and concurrent handler instances
therefore can't move a call backwards: an update that no longer applies
matches zero rows and is logged as stale.
"""
import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings, settings as default_settings
from app.core.errors import ConfigurationError, ProviderError
from app.db.models import Call, utcnow
from app.services.calls.models import to_call_view
from app.services.calls.states import ALLOWED_SOURCES, CallStatus, is_terminal
from app.services.calls.transcriber import VoicemailTranscriber
from app.services.calls.twiml import CallbackUrls, TwiMLBuilder
from app.services.contacts.resolver import ContactResolver
from app.services.messaging.store import MessageStore
from app.services.realtime.notifier import CALL_UPSERTED, RealtimeNotifier
from app.services.team.repository import TeamPhoneRepository

logger = logging.getLogger(__name__)

ANSWERED_LEG_STATUSES = {"in-progress", "answered"}
ANSWERED_DIAL_STATUSES = {"completed", "answered"}

VOICEMAIL_PREFIX = "\U0001F4DE Voicemail: "


def parse_seconds(value: Optional[str]) -> Optional[int]:
    """Carrier durations arrive as strings; garbage becomes None."""
    if value is None or value == "":
        return None
    try:
        return max(int(float(value)), 0)
    except (TypeError, ValueError):
        return None


class CallStateMachine:
    """Applies carrier webhooks to Call rows and decides what Twilio does next."""

    def __init__(
        self,
        db: AsyncSession,
        notifier: Optional[RealtimeNotifier] = None,
        message_store: Optional[MessageStore] = None,
        transcriber: Optional[VoicemailTranscriber] = None,
        settings: Settings = default_settings,
    ):
        self.db = db
        self.notifier = notifier
        self.settings = settings
        self.resolver = ContactResolver(db)
        self.team_phones = TeamPhoneRepository(db)
        self.message_store = message_store or MessageStore(db, notifier, self.resolver)
        self.transcriber = transcriber
        self.twiml = TwiMLBuilder(settings.business_name, voice=settings.say_voice)

    async def get_call(self, call_sid: str) -> Optional[Call]:
        result = await self.db.execute(
            select(Call)
            .where(Call.call_sid == call_sid)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    def _publish(self, call: Call) -> None:
        if self.notifier is not None:
            self.notifier.publish(
                CALL_UPSERTED, call.call_sid, to_call_view(call).model_dump(mode="json")
            )

    async def transition(
        self,
        call_sid: str,
        target: CallStatus,
        sources: Optional[Iterable[CallStatus]] = None,
        extra_conditions: Iterable = (),
        **values,
    ) -> bool:
        """
        Move a call to ``target`` if it is currently in one of ``sources``.

        Args:
            call_sid: Carrier session id
            target: Status to move to
            sources: Statuses the move may start from (defaults to ALLOWED_SOURCES)
            extra_conditions: Additional WHERE clauses
            **values: Column values (or SQL expressions) to set alongside the status

        Returns:
            True if the row was updated; False if absent or the move no longer applies.
        """
        allowed = [s.value for s in (sources if sources is not None else ALLOWED_SOURCES[target])]
        result = await self.db.execute(
            update(Call)
            .where(Call.call_sid == call_sid, Call.status.in_(allowed), *extra_conditions)
            .values(
                status=target.value,
                version=Call.version + 1,
                updated_at=utcnow(),
                **values,
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        call = await self.get_call(call_sid)
        if result.rowcount == 0:
            if call is None:
                logger.warning(f"[CALL STATE] Call not found, ignoring {target.value} - CallSid: {call_sid}")
            elif is_terminal(call.status):
                logger.info(
                    f"[CALL STATE] Call already {call.status}, ignoring {target.value} "
                    f"- CallSid: {call_sid}"
                )
            else:
                logger.info(
                    f"[CALL STATE] Ignoring stale transition {call.status} -> {target.value} "
                    f"- CallSid: {call_sid}"
                )
            return False

        logger.info(f"[CALL STATE] {call_sid} -> {target.value} (v{call.version})")
        self._publish(call)
        return True

    async def register_call(
        self, call_sid: str, caller: str, receiver: Optional[str], caller_name: Optional[str]
    ) -> Call:
        """Create the RINGING row, or return the existing one on a carrier retry."""
        existing = await self.get_call(call_sid)
        if existing is not None:
            logger.info(f"[CALL STATE] Incoming webhook retried - CallSid: {call_sid}")
            return existing

        now = utcnow()
        call = Call(
            call_sid=call_sid,
            direction="inbound",
            caller_phone=caller,
            caller_name=caller_name,
            receiver_phone=receiver,
            status=CallStatus.RINGING.value,
            version=1,
            started_at=now,
            updated_at=now,
        )
        self.db.add(call)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            existing = await self.get_call(call_sid)
            if existing is None:
                raise
            return existing
        await self.db.refresh(call)
        self._publish(call)
        return call

    async def _caller_name(self, caller: str) -> Optional[str]:
        try:
            identity = await self.resolver.resolve(caller)
        except Exception as e:
            logger.error(f"[CALL STATE] Caller lookup failed for {caller}: {e}", exc_info=True)
            return None
        return identity.label if identity else None

    async def handle_incoming(
        self, call_sid: str, caller: str, receiver: Optional[str], base_url: str
    ) -> str:
        """
        Incoming-call webhook: log the call and ring every enabled team phone.

        Returns:
            TwiML dialing all enabled team phones in parallel, or a voicemail
            prompt when every team phone is disabled.

        Raises:
            ConfigurationError: No team phones are configured at all.
        """
        caller_name = await self._caller_name(caller)
        await self.register_call(call_sid, caller, receiver, caller_name)

        urls = CallbackUrls(base_url)
        enabled = await self.team_phones.list_enabled()
        if not enabled:
            if await self.team_phones.count() == 0:
                raise ConfigurationError("No team phones configured")
            logger.info(f"[CALL STATE] All team phones disabled, straight to voicemail - CallSid: {call_sid}")
            await self.transition(call_sid, CallStatus.MISSED, ended_at=utcnow())
            return self._voicemail_prompt(urls, call_sid, caller, caller_name)

        return self.twiml.dial(
            [p.phone for p in enabled],
            caller_id=receiver,
            timeout=self.settings.dial_timeout_seconds,
            action_url=urls.dial_complete(call_sid, caller, caller_name),
            status_callback_url=urls.leg_status(call_sid),
        )

    async def handle_leg_status(
        self, call_sid: str, leg_status: str, leg_to: Optional[str], leg_duration: Optional[int]
    ) -> bool:
        """
        Per-leg status webhook (one per team phone dialed).

        An answered leg records who picked up (first answer sticks) and moves
        the call to IN_PROGRESS; a leg that completes with talk time finalizes
        the call as COMPLETED.
        """
        if leg_status in ANSWERED_LEG_STATUSES:
            team_phone = await self.team_phones.find_by_phone(leg_to)
            answered_by = team_phone.name if team_phone else leg_to
            return await self.transition(
                call_sid,
                CallStatus.IN_PROGRESS,
                answered_by=func.coalesce(Call.answered_by, answered_by),
            )

        if leg_status == "completed" and leg_duration:
            return await self.transition(
                call_sid,
                CallStatus.COMPLETED,
                duration=leg_duration,
                ended_at=func.coalesce(Call.ended_at, utcnow()),
            )

        logger.debug(f"[CALL STATE] Leg status {leg_status} needs no action - CallSid: {call_sid}")
        return False

    async def handle_dial_complete(
        self,
        call_sid: str,
        dial_status: Optional[str],
        dial_duration: Optional[int],
        caller: str,
        caller_name: Optional[str],
        base_url: str,
    ) -> str:
        """
        Fan-out-complete webhook.

        Returns:
            Empty TwiML if somebody answered, otherwise a voicemail prompt.
        """
        if dial_status in ANSWERED_DIAL_STATUSES or (dial_duration or 0) > 0:
            duration = dial_duration if dial_duration else func.coalesce(Call.duration, 0)
            await self.transition(
                call_sid,
                CallStatus.COMPLETED,
                duration=duration,
                ended_at=func.coalesce(Call.ended_at, utcnow()),
            )
            return self.twiml.empty()

        await self.transition(call_sid, CallStatus.MISSED, ended_at=utcnow())
        return self._voicemail_prompt(CallbackUrls(base_url), call_sid, caller, caller_name)

    def _voicemail_prompt(
        self, urls: CallbackUrls, call_sid: str, caller: str, caller_name: Optional[str]
    ) -> str:
        return self.twiml.voicemail_prompt(
            action_url=urls.voicemail(call_sid, caller, caller_name),
            max_length=self.settings.voicemail_max_length_seconds,
            transcribe_callback_url=urls.transcription(call_sid, caller, caller_name),
        )

    async def handle_voicemail(
        self,
        call_sid: str,
        caller: Optional[str],
        caller_name: Optional[str],
        recording_url: Optional[str],
        recording_duration: Optional[int],
        transcription: Optional[str] = None,
    ) -> str:
        """
        Voicemail-complete webhook: store the recording and surface it in the inbox.

        Returns:
            Closing prompt + hangup TwiML.
        """
        voicemail_url = f"{recording_url}.mp3" if recording_url else None
        await self.transition(
            call_sid,
            CallStatus.VOICEMAIL,
            recording_url=func.coalesce(Call.recording_url, recording_url),
            voicemail_url=func.coalesce(Call.voicemail_url, voicemail_url),
            duration=recording_duration or 0,
            ended_at=func.coalesce(Call.ended_at, utcnow()),
        )

        if not transcription and recording_url and self.transcriber is not None:
            try:
                transcription = await self.transcriber.transcribe(recording_url)
            except ProviderError as e:
                logger.warning(f"[CALL STATE] {e} - CallSid: {call_sid}")

        if transcription and caller:
            await self.record_voicemail_message(call_sid, caller, caller_name, transcription)
        return self.twiml.closing()

    async def handle_transcription(
        self,
        call_sid: str,
        caller: Optional[str],
        caller_name: Optional[str],
        transcription: Optional[str],
        transcription_status: Optional[str],
    ) -> bool:
        """Asynchronous transcription callback; adds the voicemail message if still missing."""
        if transcription_status not in (None, "completed") or not transcription or not caller:
            logger.info(
                f"[CALL STATE] No usable transcription ({transcription_status}) - CallSid: {call_sid}"
            )
            return False
        await self.record_voicemail_message(call_sid, caller, caller_name, transcription)
        return True

    async def record_voicemail_message(
        self, call_sid: str, caller: str, caller_name: Optional[str], transcription: str
    ) -> None:
        """One inbound voicemail message per call, however many callbacks deliver it."""
        await self.message_store.record_inbound(
            from_phone=caller,
            body=f"{VOICEMAIL_PREFIX}{transcription.strip()}",
            provider_sid=f"voicemail:{call_sid}",
            channel="voicemail",
            customer_name=caller_name or None,
        )

    async def expire_stale_ringing(self, now: Optional[datetime] = None) -> List[str]:
        """
        Move calls stuck in RINGING past ``ringing_stale_after_minutes`` to MISSED.

        Covers a fan-out-complete webhook the carrier never delivered.
        """
        cutoff = (now or utcnow()) - timedelta(minutes=self.settings.ringing_stale_after_minutes)
        result = await self.db.execute(
            select(Call.call_sid).where(
                Call.status == CallStatus.RINGING.value, Call.started_at < cutoff
            )
        )
        expired = []
        for call_sid in result.scalars().all():
            moved = await self.transition(
                call_sid,
                CallStatus.MISSED,
                sources=[CallStatus.RINGING],
                extra_conditions=[Call.started_at < cutoff],
                ended_at=utcnow(),
            )
            if moved:
                expired.append(call_sid)
        if expired:
            logger.info(f"[CALL STATE] Expired {len(expired)} stale ringing calls")
        return expired

    async def list_calls(self, limit: int = 100) -> List[Call]:
        result = await self.db.execute(
            select(Call).order_by(Call.started_at.desc(), Call.id.desc()).limit(limit)
        )
        return list(result.scalars().all())
