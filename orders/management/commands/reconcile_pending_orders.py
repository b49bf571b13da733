import time

from django.core.management.base import BaseCommand
from django.utils import timezone

from orders.errors import GatewayFailure, PaymentError
from orders.gateway import SnapClient
from orders.models import Order, PaymentStatus, PaymentStatusEvent
from orders.store import DjangoOrderStore
from orders.webhook import WebhookReconciler


class Command(BaseCommand):
    help = "Poll Midtrans transaction status for pending orders and reconcile them"

    def add_arguments(self, parser):
        parser.add_argument("--max", type=int, default=50)
        parser.add_argument("--sleep", type=float, default=0.5)
        parser.add_argument("--older-than-minutes", type=int, default=5)

    def handle(self, *args, **opts):
        cutoff = timezone.now() - timezone.timedelta(minutes=opts["older_than_minutes"])
        qs = (
            Order.objects.filter(payment_status=PaymentStatus.PENDING, created_at__lt=cutoff)
            .exclude(gateway_token__isnull=True)
            .exclude(gateway_token="")
            .order_by("created_at")[:opts["max"]]
        )
        orders = list(qs)
        if not orders:
            self.stdout.write(self.style.SUCCESS("No pending orders to reconcile."))
            return

        gateway = SnapClient.from_settings()
        reconciler = WebhookReconciler(DjangoOrderStore())
        changed = 0
        for o in orders:
            try:
                data = gateway.transaction_status(o.id)
                data.setdefault("order_id", str(o.id))
                result = reconciler.handle(data, source=PaymentStatusEvent.Source.POLL)
                t = result.transition
                if t is not None and t.changed:
                    changed += 1
                    self.stdout.write(self.style.SUCCESS(f"Updated {o.id} -> {t.status}"))
                else:
                    self.stdout.write(f"{o.id}: status={data.get('transaction_status') or 'UNKNOWN'}")
            except GatewayFailure as e:
                self.stdout.write(self.style.WARNING(f"{o.id}: {e}"))
            except PaymentError as e:
                self.stdout.write(self.style.ERROR(f"{o.id}: error {e}"))
            time.sleep(opts["sleep"])

        self.stdout.write(self.style.SUCCESS(f"Checked {len(orders)}, updated {changed} orders."))
