"""Main FastAPI application."""
import asyncio
import logging
from contextlib import asynccontextmanager, suppress

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api import calls, contacts, conversations, health, realtime
from app.api.webhooks import sms as sms_webhooks
from app.api.webhooks import voice as voice_webhooks
from app.core.config import settings
from app.core.errors import ConfigurationError, ConflictError, NotFoundError, PhoneAlreadyLinkedError, ProviderError
from app.core.logging import setup_logging
from app.db.database import Database
from app.services.calls.sweeper import run_ringing_sweeper
from app.services.calls.transcriber import VoicemailTranscriber
from app.services.messaging.sms_client import TwilioSmsClient
from app.services.realtime.notifier import RealtimeNotifier
from app.services.team.repository import TeamPhoneRepository

logger = logging.getLogger(__name__)

SWEEP_INTERVAL_SECONDS = 300


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    setup_logging()
    database = Database(settings.database_url)
    await database.create_all()
    http_client = httpx.AsyncClient(timeout=15.0)

    app.state.database = database
    app.state.notifier = RealtimeNotifier(queue_size=settings.realtime_queue_size)
    app.state.sms_client = TwilioSmsClient(
        settings.twilio_account_sid,
        settings.twilio_auth_token,
        settings.twilio_phone_number,
        http_client=http_client,
        api_base=settings.twilio_api_base,
        status_callback_url=(
            f"{settings.base_url.rstrip('/')}/webhooks/sms/status" if settings.base_url else None
        ),
    )
    app.state.transcriber = None
    if settings.openai_api_key:
        app.state.transcriber = VoicemailTranscriber(
            settings.openai_api_key,
            http_client,
            twilio_auth=(settings.twilio_account_sid, settings.twilio_auth_token),
        )

    if settings.team_phones_file:
        async with database.sessionmaker() as session:
            await TeamPhoneRepository(session).seed_from_yaml(settings.team_phones_file)

    sweeper = asyncio.create_task(
        run_ringing_sweeper(database, app.state.notifier, SWEEP_INTERVAL_SECONDS)
    )
    logger.info("Communications hub started")
    yield
    # Shutdown
    sweeper.cancel()
    with suppress(asyncio.CancelledError):
        await sweeper
    await app.state.notifier.close()
    await http_client.aclose()
    await database.dispose()


app = FastAPI(
    title="Wrap Shop Communications Hub",
    description="Call routing and SMS conversation threading for the shop dashboard",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError):
    content = {"detail": str(exc), "error": "conflict"}
    if isinstance(exc, PhoneAlreadyLinkedError):
        content.update(error="already_linked", phone=exc.phone, customer_id=exc.customer_id)
    return JSONResponse(status_code=409, content=content)


@app.exception_handler(ProviderError)
async def provider_error_handler(request: Request, exc: ProviderError):
    return JSONResponse(
        status_code=502,
        content={"detail": exc.message, "provider_status": exc.status_code},
    )


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.error(f"Configuration error on {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"detail": str(exc)})


app.include_router(health.router, tags=["health"])
app.include_router(voice_webhooks.router, prefix="/webhooks", tags=["webhooks"])
app.include_router(sms_webhooks.router, prefix="/webhooks", tags=["webhooks"])
app.include_router(conversations.router, tags=["conversations"])
app.include_router(contacts.router, tags=["contacts"])
app.include_router(calls.router, tags=["calls"])
app.include_router(realtime.router, tags=["realtime"])
