# app/services/order_workflow.py
"""
Order state machine.

`plan_transition` is pure: given the current status, the requested
status and who is asking, it either raises or returns the new status
plus the list of side effects to apply. `OrderService` interprets the
effects against the database and the notification outbox.

    pending   -> accepted, cancelled    (store_owner, client)
    accepted  -> preparing, cancelled   (store_owner)
    preparing -> ready, cancelled       (store_owner)
    ready     -> picked_up, cancelled   (driver)
    picked_up -> on_way                 (driver)
    on_way    -> delivered              (driver)
    delivered, cancelled: terminal
"""
from dataclasses import dataclass
from enum import Enum

from app.core.errors import ForbiddenError, InvalidTransitionError

ORDER_STATES: tuple[str, ...] = (
    "pending",
    "accepted",
    "preparing",
    "ready",
    "picked_up",
    "on_way",
    "delivered",
    "cancelled",
)

TERMINAL_STATES = frozenset({"delivered", "cancelled"})


@dataclass(frozen=True)
class StatusRule:
    can_update: tuple[str, ...]
    next_states: tuple[str, ...]


TRANSITIONS: dict[str, StatusRule] = {
    "pending": StatusRule(("store_owner", "client"), ("accepted", "cancelled")),
    "accepted": StatusRule(("store_owner",), ("preparing", "cancelled")),
    "preparing": StatusRule(("store_owner",), ("ready", "cancelled")),
    "ready": StatusRule(("driver",), ("picked_up", "cancelled")),
    "picked_up": StatusRule(("driver",), ("on_way",)),
    "on_way": StatusRule(("driver",), ("delivered",)),
    "delivered": StatusRule((), ()),
    "cancelled": StatusRule((), ()),
}


class Effect(str, Enum):
    STAMP_ACCEPTED = "stamp_accepted_at"
    STAMP_READY = "stamp_ready_at"
    STAMP_PICKED_UP = "stamp_picked_up_at"
    STAMP_DELIVERED = "stamp_delivered_at"
    CLAIM_DRIVER = "claim_driver"
    REALIZE_PLATFORM_EARNINGS = "realize_platform_earnings"
    CREDIT_DRIVER = "credit_driver"
    BROADCAST_READY = "broadcast_ready_to_drivers"
    NOTIFY_CUSTOMER = "notify_customer"
    NOTIFY_CANCELLED = "notify_other_parties_of_cancellation"


@dataclass(frozen=True)
class TransitionPlan:
    previous: str
    status: str
    effects: tuple[Effect, ...]


def allowed_next_states(status: str) -> tuple[str, ...]:
    rule = TRANSITIONS.get(status)
    return rule.next_states if rule else ()


def plan_transition(
    current: str,
    requested: str,
    actor_role: str,
    *,
    has_driver: bool,
) -> TransitionPlan:
    """
    Validate `current -> requested` for `actor_role` and list its effects.

    Raises:
        ForbiddenError: actor_role may not update an order in `current`
            (always the case for terminal states). Context: allowedRoles.
        InvalidTransitionError: `requested` is not reachable from
            `current`. Context: allowedStates, currentStatus.
    """
    rule = TRANSITIONS.get(current, StatusRule((), ()))

    if actor_role not in rule.can_update:
        if not rule.can_update:
            message = f"Order is {current}; it can no longer be updated"
        else:
            message = (
                f"Only {', '.join(rule.can_update)} can update an order "
                f"in status '{current}'"
            )
        raise ForbiddenError(
            message,
            allowedRoles=list(rule.can_update),
            currentStatus=current,
        )

    if requested not in rule.next_states:
        raise InvalidTransitionError(
            f"Cannot move order from '{current}' to '{requested}'",
            allowedStates=list(rule.next_states),
            currentStatus=current,
        )

    effects: list[Effect] = []
    if requested == "accepted":
        effects.append(Effect.STAMP_ACCEPTED)
    elif requested == "ready":
        effects.append(Effect.STAMP_READY)
    elif requested == "picked_up":
        effects.append(Effect.STAMP_PICKED_UP)
        if not has_driver and actor_role == "driver":
            effects.append(Effect.CLAIM_DRIVER)
    elif requested == "delivered":
        effects.append(Effect.STAMP_DELIVERED)
        effects.append(Effect.REALIZE_PLATFORM_EARNINGS)
        if has_driver:
            effects.append(Effect.CREDIT_DRIVER)

    effects.append(Effect.NOTIFY_CUSTOMER)
    if requested == "ready":
        effects.append(Effect.BROADCAST_READY)
    elif requested == "cancelled":
        effects.append(Effect.NOTIFY_CANCELLED)

    return TransitionPlan(previous=current, status=requested, effects=tuple(effects))


# Fixed customer-facing text per status
STATUS_MESSAGES: dict[str, tuple[str, str]] = {
    "accepted": ("Order accepted", "Your order #{number} was accepted by the store"),
    "preparing": ("Order in preparation", "The store is preparing your order #{number}"),
    "ready": ("Order ready", "Your order #{number} is ready and waiting for a driver"),
    "picked_up": ("Order picked up", "Your order #{number} was picked up by the driver"),
    "on_way": ("On the way", "Your order #{number} is on its way"),
    "delivered": ("Order delivered", "Your order #{number} was delivered. Enjoy!"),
    "cancelled": ("Order cancelled", "Order #{number} was cancelled"),
}


def status_message(status: str, order_number: int) -> tuple[str, str]:
    """(title, message) for the customer; unknown statuses get a generic text."""
    title, template = STATUS_MESSAGES.get(
        status,
        ("Order updated", "The status of order #{number} was updated"),
    )
    return title, template.format(number=order_number)
