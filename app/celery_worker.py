"""
Celery Worker Configuration
Sets up Celery with Redis as message broker and result backend, and the
beat schedule that sweeps expired QR tokens.

Run:
    celery -A app.celery_worker worker --loglevel=info
    celery -A app.celery_worker beat --loglevel=info
"""

from datetime import timedelta

from celery import Celery

from app.core.config import get_settings

settings = get_settings()

# Create Celery app
celery_app = Celery(
    'qr_table_worker',
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=['app.tasks']  # Module containing our tasks
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,

    # Worker settings
    worker_prefetch_multiplier=1,  # Process one task at a time
    worker_concurrency=2,

    # Result settings
    result_expires=3600,  # Results expire after 1 hour

    # Task execution settings
    task_acks_late=True,  # Acknowledge task after completion
    task_reject_on_worker_lost=True,  # Requeue task if worker dies

    broker_connection_retry_on_startup=True,

    # Periodic expiry sweep
    beat_schedule={
        'cleanup-expired-qr-tokens': {
            'task': 'app.tasks.cleanup_expired_qr_tokens',
            'schedule': timedelta(minutes=settings.qr_cleanup_interval_minutes),
        },
    },
)


if __name__ == '__main__':
    celery_app.start()
