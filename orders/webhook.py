import json
import logging
from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from .errors import InvalidNotification, OrderNotFound, StoreUnavailable
from .gateway import SnapClient
from .models import Order, PaymentStatusEvent
from .signals import order_not_found, payment_status_changed, payment_status_conflict
from .status import NOOP, Transition, resolve
from .store import DjangoOrderStore

logger = logging.getLogger(__name__)

ORDER_NOT_FOUND = "order_not_found"


@dataclass(frozen=True)
class Notification:
    order_reference: str
    reported_status: str
    payload: dict


@dataclass(frozen=True)
class ReconcileResult:
    outcome: str
    order: Optional[Order] = None
    transition: Optional[Transition] = None


def parse_notification(payload) -> Notification:
    if not isinstance(payload, dict):
        raise InvalidNotification("Invalid notification body")
    ref = payload.get("order_id") or payload.get("orderId")
    if not ref:
        raise InvalidNotification()
    status = payload.get("transaction_status") or payload.get("status") or ""
    return Notification(order_reference=str(ref), reported_status=str(status), payload=payload)


def record_status_event(order, transition, payload, source):
    PaymentStatusEvent.objects.create(
        order=order,
        reported_code=transition.reported[:32],
        previous_status=transition.previous,
        target_status=transition.target or "",
        resulting_status=transition.status,
        outcome=transition.outcome,
        source=source,
        payload=payload,
    )


def _send(signal, **kwargs):
    for receiver, response in signal.send_robust(sender=WebhookReconciler, **kwargs):
        if isinstance(response, Exception):
            logger.error("Signal receiver %r failed: %r", receiver, response)


class WebhookReconciler:
    """Apply a gateway status notification to its order, at most once per change.

    ``audit(order, transition, payload, source)`` is called inside the store's
    critical section for every applied change or conflict.
    """

    def __init__(self, store, audit=record_status_event):
        self.store = store
        self.audit = audit

    def _unknown(self, n: Notification) -> ReconcileResult:
        logger.warning(
            "Notification for unknown order_id=%s status=%s", n.order_reference, n.reported_status
        )
        _send(order_not_found, order_reference=n.order_reference, payload=n.payload)
        return ReconcileResult(ORDER_NOT_FOUND)

    def handle(self, payload, source=PaymentStatusEvent.Source.WEBHOOK) -> ReconcileResult:
        n = parse_notification(payload)
        source = str(source)

        try:
            order = self.store.get(n.order_reference)
        except OrderNotFound:
            return self._unknown(n)

        # Re-deliveries of the status already held never take the lock.
        peek = resolve(order.payment_status, n.reported_status)
        if peek.outcome == NOOP:
            logger.debug("No-op notification for order_id=%s status=%s", order.id, n.reported_status)
            return ReconcileResult(NOOP, order, peek)

        def on_transition(o, t):
            if self.audit is not None:
                self.audit(o, t, n.payload, source)

        try:
            order, t = self.store.set_payment_status(
                n.order_reference,
                lambda current: resolve(current, n.reported_status),
                payload=n.payload,
                on_transition=on_transition,
            )
        except OrderNotFound:
            return self._unknown(n)

        if t.conflict:
            logger.warning(
                "Payment status conflict for order_id=%s: %s reported while %s, kept %s (%s)",
                order.id, t.reported, t.previous, t.status, t.outcome,
            )
            _send(payment_status_conflict, order=order, transition=t, source=source)
        if t.changed:
            logger.info("Order %s payment status %s -> %s", order.id, t.previous, t.status)
            _send(payment_status_changed, order=order, transition=t, source=source)
        return ReconcileResult(t.outcome, order, t)


def _notification_body(request):
    if request.content_type in ("application/x-www-form-urlencoded", "multipart/form-data"):
        return request.POST.dict()
    try: return json.loads(request.body.decode("utf-8"))
    except Exception: return None


@csrf_exempt
@require_POST
def midtrans_webhook(request):
    payload = _notification_body(request)
    try:
        parse_notification(payload)
    except InvalidNotification as e:
        logger.warning("Webhook rejected: %s payload=%s", e.message, payload)
        return JsonResponse({"error": e.message}, status=e.status_code)

    if getattr(settings, "MIDTRANS_VERIFY_SIGNATURE", True):
        if not SnapClient.from_settings().verify_notification(payload):
            logger.warning("Webhook signature mismatch for order_id=%s", payload.get("order_id"))
            return JsonResponse({"error": "Invalid signature"}, status=403)

    try:
        result = WebhookReconciler(DjangoOrderStore()).handle(payload)
    except StoreUnavailable:
        logger.exception("webhook error")
        return JsonResponse({"error": "Webhook handling failed"}, status=503)

    body = {"message": "ok"}
    if result.outcome == ORDER_NOT_FOUND:
        body["detail"] = "unknown order"
    return JsonResponse(body)
