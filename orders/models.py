import uuid

from django.core.validators import MinValueValidator
from django.db import models


class PaymentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    EXPIRED = "expired", "Expired"
    FAILED = "failed", "Failed"


class Order(models.Model):
    # The id doubles as the gateway transaction reference (transaction_details.order_id).
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    product = models.ForeignKey("catalog.Product", on_delete=models.PROTECT, related_name="orders")

    buyer_name = models.CharField(max_length=128)
    email = models.EmailField()
    address = models.TextField()
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    gross_amount = models.PositiveBigIntegerField()

    gateway_token = models.CharField(max_length=128, blank=True, null=True)
    redirect_url = models.URLField(max_length=512, blank=True, default="")

    payment_status = models.CharField(
        max_length=16, choices=PaymentStatus.choices, default=PaymentStatus.PENDING, db_index=True
    )
    last_notification = models.JSONField(blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-created_at",)

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID

    def __str__(self):
        return f"{self.id} ({self.payment_status})"

    def as_dict(self) -> dict:
        return {
            "id": str(self.id),
            "productId": str(self.product_id),
            "buyerName": self.buyer_name,
            "email": self.email,
            "address": self.address,
            "quantity": self.quantity,
            "grossAmount": self.gross_amount,
            "gatewayToken": self.gateway_token,
            "redirectUrl": self.redirect_url,
            "paymentStatus": self.payment_status,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


class PaymentStatusEvent(models.Model):
    """Audit row for every status change or conflict seen for an order."""

    class Outcome(models.TextChoices):
        APPLIED = "applied", "Applied"
        OVERRIDDEN = "overridden", "Overridden"
        REJECTED = "rejected", "Rejected"

    class Source(models.TextChoices):
        WEBHOOK = "webhook", "Webhook"
        POLL = "poll", "Poll"

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="status_events")
    reported_code = models.CharField(max_length=32, blank=True, default="")
    previous_status = models.CharField(max_length=16, choices=PaymentStatus.choices)
    target_status = models.CharField(max_length=16, choices=PaymentStatus.choices, blank=True, default="")
    resulting_status = models.CharField(max_length=16, choices=PaymentStatus.choices)
    outcome = models.CharField(max_length=16, choices=Outcome.choices, db_index=True)
    source = models.CharField(max_length=16, choices=Source.choices, default=Source.WEBHOOK)
    payload = models.JSONField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("created_at", "id")

    @property
    def is_conflict(self) -> bool:
        return self.outcome in (self.Outcome.OVERRIDDEN, self.Outcome.REJECTED)

    def __str__(self):
        return f"{self.order_id} {self.previous_status}->{self.resulting_status} ({self.outcome})"
