"""Celery tasks for the credits app."""
import logging

from celery import shared_task

logger = logging.getLogger("ravito")


@shared_task(name="credits.tasks.notify_critical_credit_alerts")
def notify_critical_credit_alerts():
    """Warn each establishment owner whose customers have critical unpaid balances."""
    from credits.services import critical_alert_summary
    from notifications.services import notify_critical_credit_alerts as notify_owner
    from organizations.models import Organization

    notified = 0
    organizations = (
        Organization.objects
        .filter(is_active=True, credit_customers__current_balance__gt=0)
        .select_related("owner")
        .distinct()
    )
    for organization in organizations:
        summary = critical_alert_summary(organization)
        if summary is None or organization.owner is None:
            continue
        notify_owner(organization.owner, summary["count"], summary["amount"])
        notified += 1

    logger.info("notify_critical_credit_alerts completed: %d organizations notified.", notified)
    return f"{notified} organizations notified"
