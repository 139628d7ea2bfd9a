"""
Order status state machine

    pending -> payment_received -> confirmed -> preparing -> dispatched -> delivered
    pending | payment_received | confirmed -> cancelled

delivered and cancelled are terminal.
"""

from typing import List

from foodhub.models.order import OrderStatus
from foodhub.utils.error_handler import IllegalTransitionError

INITIAL_STATUS = OrderStatus.PENDING

TRANSITIONS = {
    OrderStatus.PENDING: (OrderStatus.PAYMENT_RECEIVED, OrderStatus.CANCELLED),
    OrderStatus.PAYMENT_RECEIVED: (OrderStatus.CONFIRMED, OrderStatus.CANCELLED),
    OrderStatus.CONFIRMED: (OrderStatus.PREPARING, OrderStatus.CANCELLED),
    OrderStatus.PREPARING: (OrderStatus.DISPATCHED,),
    OrderStatus.DISPATCHED: (OrderStatus.DELIVERED,),
    OrderStatus.DELIVERED: (),
    OrderStatus.CANCELLED: (),
}

TERMINAL_STATUSES = frozenset(s for s, targets in TRANSITIONS.items() if not targets)
ACTIVE_STATUSES = [s.value for s in OrderStatus if s not in TERMINAL_STATUSES]


def is_terminal(status) -> bool:
    return OrderStatus(status) in TERMINAL_STATUSES


def allowed_targets(status) -> List[str]:
    return [s.value for s in TRANSITIONS[OrderStatus(status)]]


def can_transition(current, target) -> bool:
    return OrderStatus(target) in TRANSITIONS[OrderStatus(current)]


def ensure_transition(current, target) -> OrderStatus:
    """Return the target as an OrderStatus or raise IllegalTransitionError"""
    target = OrderStatus(target)
    if not can_transition(current, target):
        raise IllegalTransitionError(OrderStatus(current).value, target.value, allowed_targets(current))
    return target


def is_valid_history(statuses) -> bool:
    """True when a status sequence starts at pending and follows only legal edges"""
    statuses = list(statuses)
    if not statuses or OrderStatus(statuses[0]) != INITIAL_STATUS:
        return False
    return all(can_transition(a, b) for a, b in zip(statuses, statuses[1:]))
