"""Persistence for orders and their payment status.

``set_payment_status`` is the only path that mutates ``payment_status``. It
runs as one read-modify-write per order: an in-process lock keyed by the
order id serializes callers in this process, and ``select_for_update`` inside
a transaction serializes them across processes on databases with row locks.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import DatabaseError, DataError, OperationalError, transaction

from .errors import InvalidRequest, OrderNotFound, StoreTimeout, StoreUnavailable
from .models import Order, PaymentStatus
from .status import NOOP

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderDraft:
    product_id: str
    buyer_name: str
    email: str
    address: str
    quantity: int
    gross_amount: int


class KeyedLock:
    """One mutex per key, dropped again once nobody holds or waits on it."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = {}

    @contextmanager
    def hold(self, key, timeout=None):
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        acquired = entry[0].acquire(timeout=-1 if timeout is None else timeout)
        try:
            if not acquired:
                raise StoreTimeout(f"Timed out waiting for lock on order {key}")
            yield
        finally:
            if acquired:
                entry[0].release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    self._locks.pop(key, None)

    def __len__(self):
        with self._guard:
            return len(self._locks)


_order_locks = KeyedLock()


class OrderStore:
    def __init__(self, locks=None, lock_timeout=None):
        self.locks = locks if locks is not None else _order_locks
        if lock_timeout is None:
            lock_timeout = getattr(settings, "ORDER_LOCK_TIMEOUT", 5)
        self.lock_timeout = lock_timeout

    def create(self, draft: OrderDraft) -> Order:
        raise NotImplementedError

    def get(self, order_id) -> Order:
        raise NotImplementedError

    def set_gateway_token(self, order_id, token: str, redirect_url: str = "") -> None:
        raise NotImplementedError

    def set_payment_status(self, order_id, resolve, payload=None, on_transition=None):
        """Apply ``resolve(current_status) -> Transition`` atomically.

        ``on_transition(order, transition)`` runs inside the same critical
        section for every transition that is not a no-op. Returns
        ``(order, transition)``.
        """
        with self.locks.hold(str(order_id), self.lock_timeout):
            return self._read_modify_write(order_id, resolve, payload, on_transition)

    def _read_modify_write(self, order_id, resolve, payload, on_transition):
        raise NotImplementedError


# SQLite busy timeout, PostgreSQL statement_timeout and lock_timeout.
TIMEOUT_MARKERS = ("database is locked", "statement timeout", "lock timeout")


def _is_timeout(error) -> bool:
    text = str(error).lower()
    return any(marker in text for marker in TIMEOUT_MARKERS)


@contextmanager
def _store_errors(action, order_id=None):
    try:
        yield
    except (DataError, OverflowError) as e:
        logger.warning("Order store rejected data during %s (order=%s): %s", action, order_id, e)
        raise InvalidRequest("Invalid order data") from e
    except OperationalError as e:
        if not _is_timeout(e):
            logger.exception("Order store failure during %s (order=%s)", action, order_id)
            raise StoreUnavailable(f"Order store unavailable during {action}") from e
        logger.warning("Order store timed out during %s (order=%s): %s", action, order_id, e)
        raise StoreTimeout(f"Order store timed out during {action}") from e
    except DatabaseError as e:
        logger.exception("Order store failure during %s (order=%s)", action, order_id)
        raise StoreUnavailable(f"Order store unavailable during {action}") from e


class DjangoOrderStore(OrderStore):

    def create(self, draft: OrderDraft) -> Order:
        with _store_errors("create"):
            with transaction.atomic():
                return Order.objects.create(
                    product_id=draft.product_id,
                    buyer_name=draft.buyer_name,
                    email=draft.email,
                    address=draft.address,
                    quantity=draft.quantity,
                    gross_amount=draft.gross_amount,
                    payment_status=PaymentStatus.PENDING,
                )

    def _locked(self, order_id) -> Order:
        try:
            return Order.objects.select_for_update().get(pk=order_id)
        except (Order.DoesNotExist, ValidationError, ValueError):
            raise OrderNotFound()

    def get(self, order_id) -> Order:
        with _store_errors("get", order_id):
            try:
                return Order.objects.select_related("product").get(pk=order_id)
            except (Order.DoesNotExist, ValidationError, ValueError):
                raise OrderNotFound()

    def set_gateway_token(self, order_id, token: str, redirect_url: str = "") -> None:
        with _store_errors("set_gateway_token", order_id):
            with transaction.atomic():
                order = self._locked(order_id)
                if order.gateway_token and order.gateway_token != token:
                    raise InvalidRequest("Order already has a gateway token")
                order.gateway_token = token
                order.redirect_url = redirect_url or ""
                order.save(update_fields=["gateway_token", "redirect_url", "updated_at"])

    def _read_modify_write(self, order_id, resolve, payload, on_transition):
        with _store_errors("set_payment_status", order_id):
            with transaction.atomic():
                order = self._locked(order_id)
                t = resolve(order.payment_status)
                if t.changed:
                    order.payment_status = t.status
                    order.last_notification = payload
                    order.save(update_fields=["payment_status", "last_notification", "updated_at"])
                if on_transition is not None and t.outcome != NOOP:
                    on_transition(order, t)
                return order, t
