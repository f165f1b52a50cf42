"""
Celery application for userhub's outbound email.

Redis is both broker and result backend. Membership emails are the only
tasks and run on the ``email`` queue.
"""

from celery import Celery

from userhub.core.config import settings

celery_app = Celery(
    "userhub",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["userhub.workers.email_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    # Only the Resend message id is kept, and only briefly
    result_expires=3600,
    # A worker that dies mid-send hands the email back to the queue
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    # One email at a time per worker process
    worker_prefetch_multiplier=1,
    # Resend calls are bounded; a hung send is cut off
    task_soft_time_limit=30,
    task_time_limit=60,
    broker_connection_retry_on_startup=True,
    task_default_queue="email",
    task_queues={"email": {}},
    task_routes={"userhub.workers.email_tasks.*": {"queue": "email"}},
)
