"""Celery worker configuration.

Runs the invoice outbox drain on a beat schedule:

    celery -A casual_lease.worker worker --beat
"""

import asyncio

from celery import Celery
from celery.signals import worker_process_init

from casual_lease.core.config import settings
from casual_lease.core.database import async_session_factory, engine
from casual_lease.core.logging import configure_logging
from casual_lease.services.invoice_dispatch import drain_invoice_outbox

celery_app = Celery(
    "casual_lease",
    broker=settings.redis_url,
    backend=settings.redis_url,
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="Australia/Sydney",
    enable_utc=True,
    beat_schedule={
        "drain-invoice-outbox": {
            "task": "casual_lease.drain_invoice_outbox",
            "schedule": float(settings.invoice_outbox_drain_seconds),
        },
    },
)


@worker_process_init.connect
def _init_worker(**kwargs) -> None:
    configure_logging()


async def _drain() -> dict:
    try:
        async with async_session_factory() as db:
            result = await drain_invoice_outbox(db)
    finally:
        # Pooled connections are bound to this task's event loop
        await engine.dispose()
    return {"dispatched": result.dispatched, "failed": result.failed}


@celery_app.task(name="casual_lease.drain_invoice_outbox")
def drain_invoice_outbox_task() -> dict:
    return asyncio.run(_drain())
