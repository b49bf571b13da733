"""Error kinds raised by the checkout and webhook flows.

Each error carries the HTTP status a view should answer with and a public
message that is safe to put in an ``{"error": ...}`` body.
"""


class PaymentError(Exception):
    status_code = 500
    message = "Internal error"

    def __init__(self, message=None):
        super().__init__(message or self.message)
        if message:
            self.message = message


class InvalidRequest(PaymentError):
    status_code = 400
    message = "Invalid request"


class InvalidNotification(InvalidRequest):
    message = "Missing order id"


class NotFound(PaymentError):
    status_code = 404
    message = "Not found"


class ProductNotFound(NotFound):
    message = "Product not found"


class OrderNotFound(NotFound):
    message = "Order not found"


class GatewayFailure(PaymentError):
    status_code = 500
    message = "Checkout failed"


class GatewayTimeout(GatewayFailure):
    status_code = 504
    message = "Payment gateway timed out"


class StoreUnavailable(PaymentError):
    status_code = 503
    message = "Order store unavailable"


class StoreTimeout(StoreUnavailable):
    message = "Timed out waiting for order lock"
