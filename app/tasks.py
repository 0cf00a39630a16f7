"""
Celery Tasks
Background jobs for the QR token subsystem.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone

from app.celery_worker import celery_app
from app.database import async_session_maker, close_db
from app.services.qr import build_qr_manager

logger = logging.getLogger(__name__)


async def run_cleanup() -> int:
    """Run one expiry sweep in a fresh session."""
    try:
        async with async_session_maker() as session:
            return await build_qr_manager(session).cleanup()
    finally:
        # Pooled connections are bound to this event loop
        await close_db()


@celery_app.task(bind=True)
def cleanup_expired_qr_tokens(self) -> dict:
    """
    Deactivate every active QR token past its expiration.

    Scheduled by beat; safe to run concurrently with itself and with
    diner verifications. Failures are not retried here, the next
    scheduled run repeats the sweep.

    Returns:
        dict: Affected row count and timing
    """
    task_id = self.request.id
    start_time = time.time()

    count = asyncio.run(run_cleanup())

    elapsed = round(time.time() - start_time, 3)
    logger.info(f"Task {task_id}: deactivated {count} expired QR token(s) in {elapsed}s")

    return {
        'success': True,
        'count': count,
        'task_id': task_id,
        'processing_time_seconds': elapsed,
        'timestamp': datetime.now(timezone.utc).isoformat(),
    }


@celery_app.task
def health_check() -> dict:
    """
    Simple health check task to verify Celery is working.
    """
    return {
        'status': 'healthy',
        'worker': 'celery',
        'timestamp': datetime.now(timezone.utc).isoformat()
    }
