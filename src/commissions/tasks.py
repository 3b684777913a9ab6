"""Celery tasks for the commissions app."""
import logging

from celery import shared_task
from django.utils import timezone

logger = logging.getLogger("ravito")


@shared_task(name="commissions.tasks.save_previous_month_commissions")
def save_previous_month_commissions(today=None):
    """Freeze last month's commissions as pending payments.

    Scheduled daily; does nothing except on the first day of the month.
    *today* is an ISO date string, used to replay a given day.
    """
    from datetime import date

    from commissions.engine import ConfigurationMissing, Period
    from commissions.services import save_commission_payments

    day = date.fromisoformat(today) if today else timezone.localdate()
    if day.day != 1:
        return "skipped"

    period = Period.current(day).previous()
    try:
        result = save_commission_payments(period)
    except ConfigurationMissing:
        logger.warning("Commission settings missing; payments for %s not saved.", period)
        return "no settings"

    logger.info("save_previous_month_commissions completed for %s: %s", period, result)
    return result
