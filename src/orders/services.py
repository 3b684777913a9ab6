"""Business logic for the orders app."""
import logging

from django.db import transaction
from django.utils import timezone

from orders.models import Order

logger = logging.getLogger("ravito")


@transaction.atomic
def mark_order_delivered(order: Order, delivered_at=None) -> Order:
    """Move an order to DELIVERED. Delivered orders feed activation and daily supply."""
    order = Order.objects.select_for_update().get(pk=order.pk)
    if order.status == Order.Status.CANCELLED:
        raise ValueError("Une commande annulee ne peut pas etre livree.")
    if order.status == Order.Status.DELIVERED:
        raise ValueError("Cette commande est deja livree.")

    order.status = Order.Status.DELIVERED
    order.delivered_at = delivered_at or timezone.now()
    order.save(update_fields=["status", "delivered_at", "updated_at"])
    logger.info("Order %s delivered (total=%s)", order.pk, order.total_amount)
    return order
