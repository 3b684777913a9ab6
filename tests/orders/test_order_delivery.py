from datetime import datetime
from decimal import Decimal

import pytest
from django.utils import timezone

from orders.models import Order
from orders.services import mark_order_delivered


@pytest.fixture
def order(client_user, supplier_user):
    return Order.objects.create(client=client_user, supplier=supplier_user, total_amount=Decimal("12000"))


@pytest.mark.django_db
class TestMarkOrderDelivered:
    def test_delivers_with_timestamp(self, order):
        moment = timezone.make_aware(datetime(2024, 3, 10, 9, 30))

        delivered = mark_order_delivered(order, delivered_at=moment)

        assert delivered.status == Order.Status.DELIVERED
        assert delivered.delivered_at == moment

    def test_defaults_to_now(self, order):
        assert mark_order_delivered(order).delivered_at is not None

    def test_cannot_deliver_twice(self, order):
        mark_order_delivered(order)
        with pytest.raises(ValueError):
            mark_order_delivered(order)

    def test_cancelled_order_cannot_be_delivered(self, order):
        Order.objects.filter(pk=order.pk).update(status=Order.Status.CANCELLED)
        with pytest.raises(ValueError):
            mark_order_delivered(order)
