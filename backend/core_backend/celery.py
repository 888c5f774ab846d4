import os

from celery import Celery
from celery.schedules import crontab

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "core_backend.settings")

app = Celery("core_backend")

# All celery-related settings use the CELERY_ prefix in Django settings.
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()

app.conf.beat_schedule = {
    "low-stock-sweep": {
        "task": "inventory.tasks.low_stock_sweep",
        "schedule": crontab(minute="*/30"),
    },
    "retry-open-stock-discrepancies": {
        "task": "inventory.tasks.retry_open_discrepancies",
        "schedule": crontab(minute=15),
    },
}
