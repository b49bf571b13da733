import json
import threading
import time
import uuid
from unittest.mock import patch

from django.conf import settings
from django.test import SimpleTestCase, TestCase, override_settings

from catalog.models import Product

from .errors import InvalidNotification, OrderNotFound, StoreUnavailable
from .gateway import SnapClient, notification_signature
from .models import Order, PaymentStatusEvent
from .signals import order_not_found, payment_status_conflict
from .status import NOOP
from .store import KeyedLock, OrderStore
from .webhook import ORDER_NOT_FOUND, WebhookReconciler, parse_notification


def signed(payload):
    payload = dict(payload)
    payload.setdefault("status_code", "200")
    payload.setdefault("gross_amount", "200.00")
    payload["signature_key"] = notification_signature(
        payload.get("order_id", ""), payload["status_code"], payload["gross_amount"], settings.MIDTRANS_SERVER_KEY
    )
    return payload


class ParseNotificationTests(SimpleTestCase):
    def test_reads_midtrans_keys(self):
        n = parse_notification({"order_id": "o1", "transaction_status": "settlement"})
        self.assertEqual((n.order_reference, n.reported_status), ("o1", "settlement"))

    def test_fallback_keys(self):
        n = parse_notification({"orderId": "o1", "status": "expire"})
        self.assertEqual((n.order_reference, n.reported_status), ("o1", "expire"))

    def test_missing_reference(self):
        for payload in ({"transaction_status": "settlement"}, {"order_id": ""}, None, []):
            with self.subTest(payload=payload):
                with self.assertRaises(InvalidNotification):
                    parse_notification(payload)


class VerifyNotificationTests(SimpleTestCase):
    def test_signature_roundtrip_and_tamper(self):
        client = SnapClient(server_key=settings.MIDTRANS_SERVER_KEY)
        payload = signed({"order_id": "o1", "transaction_status": "settlement"})
        self.assertTrue(client.verify_notification(payload))
        payload["gross_amount"] = "1.00"
        self.assertFalse(client.verify_notification(payload))
        self.assertFalse(client.verify_notification({"order_id": "o1"}))


class WebhookViewTests(TestCase):
    def setUp(self):
        self.product = Product.objects.create(name="Batik", price=100)
        self.order = Order.objects.create(
            product=self.product, buyer_name="Ani", email="ani@example.com",
            address="Bandung", quantity=2, gross_amount=200,
        )

    def _post(self, payload, sign=True):
        if sign:
            payload = signed(payload)
        return self.client.post("/midtrans/webhook", data=json.dumps(payload), content_type="application/json")

    def _notify(self, status, sign=True):
        return self._post({"order_id": str(self.order.id), "transaction_status": status}, sign=sign)

    def test_settlement_marks_paid(self):
        resp = self._notify("settlement")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"message": "ok"})
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, "paid")
        event = PaymentStatusEvent.objects.get()
        self.assertEqual((event.previous_status, event.resulting_status, event.outcome), ("pending", "paid", "applied"))

    def test_status_mapping_from_pending(self):
        for code, expected in (("expire", "expired"), ("deny", "failed"), ("capture", "paid")):
            with self.subTest(code=code):
                Order.objects.filter(pk=self.order.pk).update(payment_status="pending")
                self._notify(code)
                self.order.refresh_from_db()
                self.assertEqual(self.order.payment_status, expected)

    def test_duplicate_notification_is_noop(self):
        self._notify("settlement")
        with patch.object(Order, "save") as save:
            resp = self._notify("settlement")
        self.assertEqual(resp.status_code, 200)
        save.assert_not_called()
        self.assertEqual(PaymentStatusEvent.objects.count(), 1)

    def test_paid_is_not_regressed(self):
        self._notify("settlement")
        for code in ("expire", "cancel", "deny", "failure"):
            with self.subTest(code=code):
                with self.assertLogs("orders.webhook", level="WARNING") as cm:
                    resp = self._notify(code)
                self.assertEqual(resp.status_code, 200)
                self.assertIn("conflict", cm.output[0])
                self.order.refresh_from_db()
                self.assertEqual(self.order.payment_status, "paid")
        self.assertEqual(PaymentStatusEvent.objects.filter(outcome="rejected").count(), 4)

    def test_late_success_overrides_failure(self):
        for first in ("expire", "cancel"):
            with self.subTest(first=first):
                Order.objects.filter(pk=self.order.pk).update(payment_status="pending")
                self._notify(first)
                with self.assertLogs("orders.webhook", level="WARNING"):
                    self._notify("settlement")
                self.order.refresh_from_db()
                self.assertEqual(self.order.payment_status, "paid")
        self.assertEqual(PaymentStatusEvent.objects.filter(outcome="overridden").count(), 2)

    def test_stale_pending_after_settlement(self):
        for code in ("pending", "settlement"):
            self._notify(code)
        with self.assertLogs("orders.webhook", level="WARNING"):
            self._notify("pending")
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, "paid")

    def test_settlement_and_cancel_in_either_order_end_paid(self):
        for codes in (("settlement", "cancel"), ("cancel", "settlement")):
            with self.subTest(codes=codes):
                Order.objects.filter(pk=self.order.pk).update(payment_status="pending")
                PaymentStatusEvent.objects.all().delete()
                self._notify(codes[0])
                with self.assertLogs("orders.webhook", level="WARNING"):
                    self._notify(codes[1])
                self.order.refresh_from_db()
                self.assertEqual(self.order.payment_status, "paid")
                conflicts = [e for e in PaymentStatusEvent.objects.all() if e.is_conflict]
                self.assertEqual(len(conflicts), 1)

    def test_unknown_status_code_is_acknowledged(self):
        resp = self._notify("authorize")
        self.assertEqual(resp.status_code, 200)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, "pending")

    def test_unknown_order_is_acknowledged_and_reported(self):
        received = []

        def receiver(sender, order_reference, payload, **kwargs):
            received.append(order_reference)

        order_not_found.connect(receiver)
        self.addCleanup(order_not_found.disconnect, receiver)
        missing = str(uuid.uuid4())
        with self.assertLogs("orders.webhook", level="WARNING") as cm:
            resp = self._post({"order_id": missing, "transaction_status": "settlement"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"message": "ok", "detail": "unknown order"})
        self.assertIn(missing, cm.output[0])
        self.assertEqual(received, [missing])
        self.assertFalse(PaymentStatusEvent.objects.exists())

    def test_missing_order_id(self):
        with self.assertLogs("orders.webhook", level="WARNING"):
            resp = self._post({"transaction_status": "settlement"}, sign=False)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json(), {"error": "Missing order id"})

    def test_bad_signature_is_rejected(self):
        payload = signed({"order_id": str(self.order.id), "transaction_status": "settlement"})
        payload["signature_key"] = "0" * 128
        with self.assertLogs("orders.webhook", level="WARNING"):
            resp = self._post(payload, sign=False)
        self.assertEqual(resp.status_code, 403)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, "pending")

    @override_settings(MIDTRANS_VERIFY_SIGNATURE=False)
    def test_signature_check_can_be_disabled(self):
        resp = self._notify("settlement", sign=False)
        self.assertEqual(resp.status_code, 200)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, "paid")

    def test_store_failure_invites_retry(self):
        with patch("orders.webhook.WebhookReconciler.handle", side_effect=StoreUnavailable()):
            with self.assertLogs("orders.webhook", level="ERROR"):
                resp = self._notify("settlement")
        self.assertEqual(resp.status_code, 503)
        self.assertEqual(resp.json(), {"error": "Webhook handling failed"})

    def test_form_encoded_notification(self):
        payload = signed({"order_id": str(self.order.id), "transaction_status": "expire"})
        resp = self.client.post("/midtrans/webhook", data=payload)
        self.assertEqual(resp.status_code, 200)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, "expired")

    def test_get_not_allowed(self):
        self.assertEqual(self.client.get("/midtrans/webhook").status_code, 405)


class MemoryOrderStore(OrderStore):
    """In-process store that reads, yields, then writes inside the critical section."""

    def __init__(self, statuses, **kwargs):
        super().__init__(**kwargs)
        self.orders = {
            key: Order(id=uuid.UUID(key), buyer_name="A", email="a@example.com", address="X", gross_amount=1, payment_status=value)
            for key, value in statuses.items()
        }
        self.writes = 0

    def get(self, order_id):
        try:
            o = self.orders[str(order_id)]
        except KeyError:
            raise OrderNotFound()
        return Order(id=o.id, buyer_name=o.buyer_name, email=o.email, address=o.address, gross_amount=1, payment_status=o.payment_status)

    def _read_modify_write(self, order_id, resolve, payload, on_transition):
        order = self.orders.get(str(order_id))
        if order is None:
            raise OrderNotFound()
        current = order.payment_status
        time.sleep(0.02)
        t = resolve(current)
        if t.changed:
            order.payment_status = t.status
            self.writes += 1
        if on_transition is not None and t.outcome != NOOP:
            on_transition(order, t)
        return order, t


class ConcurrentWebhookTests(SimpleTestCase):
    def setUp(self):
        self.order_id = str(uuid.uuid4())
        self.store = MemoryOrderStore({self.order_id: "pending"}, locks=KeyedLock(), lock_timeout=5)
        self.audit = []
        self.reconciler = WebhookReconciler(
            self.store, audit=lambda o, t, payload, source: self.audit.append((t.reported, t.outcome))
        )

    def _deliver_concurrently(self, codes):
        barrier = threading.Barrier(len(codes))
        errors = []

        def deliver(code):
            barrier.wait()
            try:
                self.reconciler.handle({"order_id": self.order_id, "transaction_status": code})
            except Exception as e:  # surfaced below
                errors.append(e)

        threads = [threading.Thread(target=deliver, args=(c,)) for c in codes]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(errors, [])

    def test_racing_settlement_and_cancel_end_paid(self):
        with self.assertLogs("orders.webhook", level="WARNING") as cm:
            self._deliver_concurrently(["settlement", "cancel"])
        self.assertEqual(self.store.orders[self.order_id].payment_status, "paid")
        conflicts = [a for a in self.audit if a[1] in ("rejected", "overridden")]
        self.assertEqual(len(conflicts), 1)
        self.assertTrue(any("conflict" in line for line in cm.output))

    def test_duplicate_deliveries_write_once(self):
        self._deliver_concurrently(["settlement"] * 5)
        self.assertEqual(self.store.orders[self.order_id].payment_status, "paid")
        self.assertEqual(self.store.writes, 1)
        self.assertEqual(self.audit, [("settlement", "applied")])

    def test_conflict_signal(self):
        seen = []

        def receiver(sender, order, transition, source, **kwargs):
            seen.append((transition.outcome, source))

        payment_status_conflict.connect(receiver)
        self.addCleanup(payment_status_conflict.disconnect, receiver)
        self.reconciler.handle({"order_id": self.order_id, "transaction_status": "settlement"})
        with self.assertLogs("orders.webhook", level="WARNING"):
            result = self.reconciler.handle({"order_id": self.order_id, "transaction_status": "deny"}, source="poll")
        self.assertEqual(result.outcome, "rejected")
        self.assertEqual(seen, [("rejected", "poll")])

    def test_unknown_order(self):
        with self.assertLogs("orders.webhook", level="WARNING"):
            result = self.reconciler.handle({"order_id": str(uuid.uuid4()), "transaction_status": "settlement"})
        self.assertEqual(result.outcome, ORDER_NOT_FOUND)
        self.assertEqual(self.store.writes, 0)
