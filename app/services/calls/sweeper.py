"""Background cleanup of calls the carrier never finished."""
import asyncio
import logging

from app.db.database import Database
from app.services.calls.state_machine import CallStateMachine
from app.services.realtime.notifier import RealtimeNotifier

logger = logging.getLogger(__name__)


async def run_ringing_sweeper(
    database: Database, notifier: RealtimeNotifier, interval_seconds: float = 300.0
) -> None:
    """Periodically expire RINGING calls older than the configured cutoff."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            async with database.sessionmaker() as session:
                await CallStateMachine(session, notifier).expire_stale_ringing()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[SWEEPER] Stale call sweep failed: {type(e).__name__}: {e}", exc_info=True)
