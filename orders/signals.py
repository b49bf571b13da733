from django.dispatch import Signal

# Sent with order=, transition=, source= after a status change is persisted.
payment_status_changed = Signal()

# Sent with order=, transition=, source= when a notification contradicts a
# terminal status (rejected or overridden).
payment_status_conflict = Signal()

# Sent with order_reference=, payload= when a notification names no known order.
order_not_found = Signal()
