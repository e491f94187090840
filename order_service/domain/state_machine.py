# order_service/domain/state_machine.py
from order_service.domain.enums import OrderStatus
from order_service.domain.errors import InvalidStatusTransition

ORDER_STATUS_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in ORDER_STATUS_TRANSITIONS.items() if not targets)

#statuses from which the customer may cancel on their own
USER_CANCELLABLE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED})

_ORDER = list(OrderStatus)


def allowed_transitions(current: OrderStatus | str) -> list[str]:
    targets = ORDER_STATUS_TRANSITIONS[OrderStatus(current)]
    return [s.value for s in _ORDER if s in targets]


def can_transition(current: OrderStatus | str, target: OrderStatus | str) -> bool:
    try:
        return OrderStatus(target) in ORDER_STATUS_TRANSITIONS[OrderStatus(current)]
    except ValueError:
        return False


def assert_transition(current: OrderStatus | str, target: OrderStatus | str) -> None:
    if not can_transition(current, target):
        current_value = OrderStatus(current).value
        target_value = target.value if isinstance(target, OrderStatus) else str(target)
        raise InvalidStatusTransition(current_value, target_value, allowed_transitions(current))
