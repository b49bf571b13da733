"""Checkout: create a pending order and open a gateway transaction for it."""

import logging
from dataclasses import dataclass

from .errors import GatewayFailure, InvalidRequest
from .forms import CheckoutRequest
from .models import Order
from .store import OrderDraft

logger = logging.getLogger(__name__)

# Upper bound of Order.gross_amount (PositiveBigIntegerField).
MAX_GROSS_AMOUNT = 9_223_372_036_854_775_807


@dataclass(frozen=True)
class CheckoutResult:
    order: Order
    token: str
    redirect_url: str


def build_transaction_params(order, product) -> dict:
    """Snap transaction body for ``order``; one line item carries the whole quantity."""
    return {
        "transaction_details": {
            "order_id": str(order.id),
            "gross_amount": order.gross_amount,
        },
        "item_details": [
            {
                "id": str(product.id),
                "price": product.price,
                "quantity": order.quantity,
                "name": product.name,
            },
        ],
        "customer_details": {
            "first_name": order.buyer_name,
            "email": order.email,
            "billing_address": {
                "address": order.address,
            },
        },
    }


class CheckoutService:
    def __init__(self, store, catalog, gateway):
        self.store = store
        self.catalog = catalog
        self.gateway = gateway

    def create_order(self, req: CheckoutRequest):
        product = self.catalog.get(req.product_id)
        gross_amount = product.price * req.quantity
        if gross_amount > MAX_GROSS_AMOUNT:
            raise InvalidRequest("Order total too large")
        # Priced once here; later product price changes never touch this order.
        draft = OrderDraft(
            product_id=str(product.id),
            buyer_name=req.buyer_name,
            email=req.email,
            address=req.address,
            quantity=req.quantity,
            gross_amount=gross_amount,
        )
        return self.store.create(draft), product

    def start(self, req: CheckoutRequest) -> CheckoutResult:
        order, product = self.create_order(req)
        params = build_transaction_params(order, product)
        try:
            txn = self.gateway.create_transaction(params)
        except GatewayFailure:
            # Order stays pending without a token so the buyer can retry.
            logger.exception("Gateway transaction failed for order_id=%s", order.id)
            raise

        self.store.set_gateway_token(order.id, txn.token, txn.redirect_url)
        order.gateway_token = txn.token
        order.redirect_url = txn.redirect_url
        logger.info("Checkout started for order_id=%s gross_amount=%s", order.id, order.gross_amount)
        return CheckoutResult(order=order, token=txn.token, redirect_url=txn.redirect_url)
