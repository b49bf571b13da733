from datetime import timedelta
from io import StringIO
from unittest.mock import MagicMock, patch

from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone

from catalog.models import Product

from .errors import GatewayFailure
from .models import Order, PaymentStatusEvent


class ReconcilePendingOrdersCommandTests(TestCase):
    def setUp(self):
        product = Product.objects.create(name="Batik", price=100)
        self.order = Order.objects.create(
            product=product, buyer_name="Ani", email="ani@example.com",
            address="Bandung", gross_amount=100, gateway_token="tok",
        )
        Order.objects.filter(pk=self.order.pk).update(created_at=timezone.now() - timedelta(minutes=30))
        # no token: never sent to the gateway, nothing to poll
        self.untokened = Order.objects.create(
            product=product, buyer_name="Budi", email="budi@example.com",
            address="Solo", gross_amount=100,
        )
        Order.objects.filter(pk=self.untokened.pk).update(created_at=timezone.now() - timedelta(minutes=30))

    def _run(self, gateway):
        out = StringIO()
        with patch("orders.management.commands.reconcile_pending_orders.SnapClient.from_settings", return_value=gateway):
            call_command("reconcile_pending_orders", "--sleep", "0", stdout=out)
        return out.getvalue()

    def test_polled_settlement_marks_paid(self):
        gateway = MagicMock()
        gateway.transaction_status.return_value = {"order_id": str(self.order.id), "transaction_status": "settlement"}
        output = self._run(gateway)

        gateway.transaction_status.assert_called_once_with(self.order.id)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, "paid")
        self.assertEqual(PaymentStatusEvent.objects.get().source, "poll")
        self.assertIn("updated 1 orders", output)

    def test_gateway_errors_are_reported_and_skipped(self):
        gateway = MagicMock()
        gateway.transaction_status.side_effect = GatewayFailure("Gateway rejected request with HTTP 404")
        output = self._run(gateway)
        self.assertIn("HTTP 404", output)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, "pending")

    def test_nothing_to_do(self):
        Order.objects.update(payment_status="paid")
        output = self._run(MagicMock())
        self.assertIn("No pending orders", output)
