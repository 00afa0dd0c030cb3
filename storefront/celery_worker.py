# storefront/celery_worker.py
from celery import Celery

from storefront.utils.settings import (
    CELERY_BROKER_URL,
    CELERY_RESULT_BACKEND,
    CELERY_TASK_ALWAYS_EAGER,
    TRACKING_SYNC_INTERVAL_SECONDS,
)

celery_app = Celery(
    "storefront",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# tasks are registered by importing their modules
celery_app.conf.imports = (
    "storefront.tasks.tracking",
    "storefront.services.notification_service",
    "storefront.services.fulfillment_service",
)

celery_app.conf.beat_schedule = {
    "sync-shipped-orders": {
        "task": "storefront.tasks.tracking.sync_shipped_orders_task",
        "schedule": TRACKING_SYNC_INTERVAL_SECONDS,
    },
}

celery_app.conf.timezone = "UTC"
celery_app.conf.task_always_eager = CELERY_TASK_ALWAYS_EAGER
