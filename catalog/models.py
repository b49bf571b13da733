import uuid

from django.core.validators import MinValueValidator
from django.db import models


class Product(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=128)
    # Whole currency units; the gateway rejects fractional IDR amounts.
    price = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    image = models.CharField(max_length=512, blank=True, default="")
    description = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("-created_at",)

    def __str__(self):
        return f"{self.name} ({self.price})"

    def as_dict(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "price": self.price,
            "image": self.image,
            "description": self.description,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
