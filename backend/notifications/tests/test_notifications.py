"""
Notifications Tests

The sink stores and broadcasts events after commit and never lets a
delivery problem reach the caller.
"""

from decimal import Decimal
from unittest.mock import patch

import pytest

from notifications.models import Notification
from notifications.services import NotificationService


@pytest.mark.django_db
class TestNotificationService:

    def test_fire_stores_after_commit(self, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            NotificationService.fire("order_ready", "Order ORD-00001 is ready", payload={"a": 1})

        notification = Notification.objects.get()
        assert notification.event_type == "order_ready"
        assert notification.payload == {"a": 1}
        assert notification.is_read is False

    def test_fire_does_nothing_until_commit(self, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=False) as callbacks:
            NotificationService.fire("low_stock", "Low stock: Beer")

        assert len(callbacks) == 1
        assert not Notification.objects.exists()

    def test_broadcast_failure_is_swallowed(self, django_capture_on_commit_callbacks):
        with patch("notifications.services.async_to_sync", side_effect=RuntimeError("layer down")):
            with django_capture_on_commit_callbacks(execute=True):
                NotificationService.fire("low_stock", "Low stock: Beer")

        assert Notification.objects.count() == 1

    def test_low_stock_payload(self, strict_product, django_capture_on_commit_callbacks):
        stock = strict_product.stock
        with django_capture_on_commit_callbacks(execute=True):
            NotificationService.low_stock(stock)

        notification = Notification.objects.get(event_type="low_stock")
        assert strict_product.name in notification.title
        assert Decimal(notification.payload["available"]) == stock.available_quantity


@pytest.mark.django_db
class TestNotificationAPI:

    def test_list_and_mark_read(self, api_client, cashier):
        notification = Notification.objects.create(event_type="order_ready", title="Ready")
        api_client.force_authenticate(user=cashier)

        response = api_client.get("/api/notifications/")
        assert response.status_code == 200
        assert response.data["count"] == 1

        response = api_client.post(f"/api/notifications/{notification.pk}/mark-read/")
        assert response.status_code == 200
        notification.refresh_from_db()
        assert notification.is_read is True

    def test_requires_authentication(self, api_client):
        response = api_client.get("/api/notifications/")
        assert response.status_code in (401, 403)
