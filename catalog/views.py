import json
import logging

from django.core.exceptions import ValidationError
from django.db import DatabaseError
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from .auth import admin_required
from .models import Product
from .services import create_product

logger = logging.getLogger(__name__)


def _json_body(request):
    try: return json.loads(request.body.decode("utf-8"))
    except Exception: return None


@csrf_exempt
@require_http_methods(["GET", "POST"])
def products_view(request):
    if request.method == "POST":
        return _create_product_view(request)
    try:
        products = [p.as_dict() for p in Product.objects.all()]
    except DatabaseError:
        logger.exception("Failed to fetch products")
        return JsonResponse({"error": "Failed to fetch products"}, status=500)
    return JsonResponse(products, safe=False)


@admin_required
def _create_product_view(request):
    body = _json_body(request)
    if not isinstance(body, dict):
        return JsonResponse({"error": "Invalid JSON body"}, status=400)
    if not body.get("name") or body.get("price") in (None, ""):
        return JsonResponse({"error": "Missing required fields"}, status=400)
    try:
        price = int(body["price"])
    except (TypeError, ValueError):
        return JsonResponse({"error": "Invalid price"}, status=400)

    try:
        product = create_product(
            name=body["name"],
            price=price,
            image=body.get("image", ""),
            description=body.get("description", ""),
        )
    except ValidationError as e:
        return JsonResponse({"error": "Invalid product", "fields": e.message_dict}, status=400)
    except DatabaseError:
        logger.exception("Failed to create product")
        return JsonResponse({"error": "Failed to create product"}, status=500)

    logger.info("Product %s created by %s", product.id, request.admin_claims.get("sub"))
    return JsonResponse(product.as_dict(), status=201)
