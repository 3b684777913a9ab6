"""Celery configuration."""
import os
from celery import Celery
from celery.schedules import crontab

os.environ.setdefault(
    "DJANGO_SETTINGS_MODULE",
    os.getenv("DJANGO_SETTINGS_MODULE", "config.settings.prod"),
)

app = Celery("ravito")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()

# Beat schedule
app.conf.beat_schedule = {
    "notify-critical-credit-alerts": {
        "task": "credits.tasks.notify_critical_credit_alerts",
        "schedule": crontab(minute=0, hour=8),  # Daily at 8am
    },
    "save-previous-month-commissions": {
        "task": "commissions.tasks.save_previous_month_commissions",
        "schedule": crontab(minute=30, hour=0),  # Daily; acts on the 1st only
    },
}
