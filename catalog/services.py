from django.core.exceptions import ValidationError
from django.db import DatabaseError

from orders.errors import ProductNotFound, StoreUnavailable

from .models import Product


class ProductCatalog:
    """Read-only product lookup used by checkout."""

    def get(self, product_id) -> Product:
        try:
            return Product.objects.get(pk=product_id)
        except (Product.DoesNotExist, ValidationError, ValueError):
            raise ProductNotFound()
        except DatabaseError as e:
            raise StoreUnavailable(f"Product lookup failed: {e}") from e


def create_product(*, name, price, image="", description="") -> Product:
    product = Product(name=name, price=price, image=image or "", description=description or "")
    product.full_clean()
    product.save()
    return product
