import json
import logging

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from catalog.services import ProductCatalog

from .checkout import CheckoutService
from .errors import GatewayTimeout, PaymentError
from .forms import CheckoutForm
from .gateway import SnapClient
from .store import DjangoOrderStore

logger = logging.getLogger(__name__)


def _json_body(request):
    try: return json.loads(request.body.decode("utf-8"))
    except Exception: return None


def _error(e: PaymentError, public=None):
    return JsonResponse({"error": public or e.message}, status=e.status_code)


def checkout_service() -> CheckoutService:
    return CheckoutService(
        store=DjangoOrderStore(),
        catalog=ProductCatalog(),
        gateway=SnapClient.from_settings(),
    )


@csrf_exempt
@require_POST
def checkout_view(request):
    try:
        req = CheckoutForm.from_json(_json_body(request)).to_request()
        result = checkout_service().start(req)
    except GatewayTimeout as e:
        return _error(e)
    except PaymentError as e:
        if e.status_code >= 500:
            logger.error("checkout error: %s", e)
            return _error(e, "Checkout failed")
        return _error(e)

    return JsonResponse({
        "token": result.token,
        "redirect_url": result.redirect_url,
        "order_id": str(result.order.id),
    })


@csrf_exempt
@require_POST
def create_order_view(request):
    """Record a pending order without opening a gateway transaction."""
    try:
        req = CheckoutForm.from_json(_json_body(request)).to_request()
        order, _ = checkout_service().create_order(req)
    except PaymentError as e:
        if e.status_code >= 500:
            logger.error("create order error: %s", e)
            return _error(e, "Failed to create order")
        return _error(e)
    return JsonResponse(order.as_dict(), status=201)


@require_GET
def order_detail_view(request, order_id: str):
    try:
        order = DjangoOrderStore().get(order_id)
    except PaymentError as e:
        if e.status_code >= 500:
            return _error(e, "Failed to fetch order")
        return _error(e)
    return JsonResponse(order.as_dict())
