"""Payment status transitions driven by gateway-reported codes.

Pure functions only; the store and the webhook reconciler decide when to
call them and what to persist.

Policy:
    pending  -> any mapped status           applied
    terminal -> same status                 no-op (re-delivery)
    paid     -> anything else               rejected, stays paid
    expired/failed -> paid                  overridden, becomes paid
    expired/failed -> other non-paid        rejected
"""

from dataclasses import dataclass
from typing import Optional

from .models import PaymentStatus

GATEWAY_STATUS_MAP = {
    "settlement": PaymentStatus.PAID.value,
    "capture": PaymentStatus.PAID.value,
    "success": PaymentStatus.PAID.value,
    "expire": PaymentStatus.EXPIRED.value,
    "cancel": PaymentStatus.FAILED.value,
    "deny": PaymentStatus.FAILED.value,
    "failure": PaymentStatus.FAILED.value,
    "pending": PaymentStatus.PENDING.value,
}

TERMINAL_STATUSES = frozenset({PaymentStatus.PAID.value, PaymentStatus.EXPIRED.value, PaymentStatus.FAILED.value})

NOOP = "noop"
APPLIED = "applied"
OVERRIDDEN = "overridden"
REJECTED = "rejected"


@dataclass(frozen=True)
class Transition:
    previous: str
    reported: str
    target: Optional[str]
    status: str
    outcome: str

    @property
    def changed(self) -> bool:
        return self.status != self.previous

    @property
    def conflict(self) -> bool:
        return self.outcome in (OVERRIDDEN, REJECTED)


def map_gateway_status(reported) -> Optional[str]:
    """Return the internal status for a gateway code, or ``None`` if unrecognized."""
    if not reported:
        return None
    return GATEWAY_STATUS_MAP.get(str(reported).strip().lower())


def is_terminal(status) -> bool:
    return str(status) in TERMINAL_STATUSES


def resolve(current, reported) -> Transition:
    current = str(current)
    if current not in PaymentStatus.values:
        raise ValueError(f"Unknown payment status: {current!r}")
    target = map_gateway_status(reported)
    reported = "" if reported is None else str(reported)

    if target is None or target == current:
        return Transition(current, reported, target, current, NOOP)
    if not is_terminal(current):
        return Transition(current, reported, target, target, APPLIED)
    if target == PaymentStatus.PAID.value:
        return Transition(current, reported, target, target, OVERRIDDEN)
    return Transition(current, reported, target, current, REJECTED)


def next_status(current, reported) -> str:
    return resolve(current, reported).status
