"""FastAPI dependencies.

Long-lived collaborators are created in the application lifespan and kept on
``app.state``; these functions hand them (or per-request services built on
them) to the routes.
"""
from typing import AsyncIterator, Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.services.calls.state_machine import CallStateMachine
from app.services.calls.transcriber import VoicemailTranscriber
from app.services.contacts.resolver import ContactResolver
from app.services.conversations.service import ConversationService
from app.services.messaging.service import MessagingService
from app.services.messaging.sms_client import TwilioSmsClient
from app.services.messaging.store import MessageStore
from app.services.realtime.notifier import RealtimeNotifier
from app.services.team.repository import TeamPhoneRepository


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """Dependency for getting database session."""
    async with request.app.state.database.sessionmaker() as session:
        yield session


def get_notifier(request: Request) -> RealtimeNotifier:
    return request.app.state.notifier


def get_sms_client(request: Request) -> TwilioSmsClient:
    return request.app.state.sms_client


def get_transcriber(request: Request) -> Optional[VoicemailTranscriber]:
    return getattr(request.app.state, "transcriber", None)


def get_base_url(request: Request) -> str:
    """
    Get the base URL for constructing absolute callback URLs.

    Uses BASE_URL if set (e.g. behind ngrok or a load balancer), otherwise
    the request's own base URL.
    """
    if settings.base_url:
        return settings.base_url.rstrip("/")
    return str(request.base_url).rstrip("/")


def get_contact_resolver(db: AsyncSession = Depends(get_db)) -> ContactResolver:
    return ContactResolver(db)


def get_message_store(
    db: AsyncSession = Depends(get_db),
    notifier: RealtimeNotifier = Depends(get_notifier),
    resolver: ContactResolver = Depends(get_contact_resolver),
) -> MessageStore:
    return MessageStore(db, notifier, resolver)


def get_call_state_machine(
    db: AsyncSession = Depends(get_db),
    notifier: RealtimeNotifier = Depends(get_notifier),
    store: MessageStore = Depends(get_message_store),
    transcriber: Optional[VoicemailTranscriber] = Depends(get_transcriber),
) -> CallStateMachine:
    return CallStateMachine(db, notifier, message_store=store, transcriber=transcriber)


def get_conversation_service(
    store: MessageStore = Depends(get_message_store),
    resolver: ContactResolver = Depends(get_contact_resolver),
) -> ConversationService:
    return ConversationService(store, resolver)


def get_messaging_service(
    store: MessageStore = Depends(get_message_store),
    sms_client: TwilioSmsClient = Depends(get_sms_client),
) -> MessagingService:
    return MessagingService(store, sms_client)


def get_team_phone_repository(db: AsyncSession = Depends(get_db)) -> TeamPhoneRepository:
    return TeamPhoneRepository(db)
