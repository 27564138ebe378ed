"""
Order fulfillment state machine.

All tracking status changes go through validate_transition(); the order
services refuse anything this table does not allow.
"""
from __future__ import annotations

import enum
from typing import Dict, FrozenSet, List

from app.core.errors import InvalidTransitionError


class TrackingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELED = "canceled"


INITIAL_STATUS = TrackingStatus.PENDING
TERMINAL_STATUSES: FrozenSet[TrackingStatus] = frozenset({TrackingStatus.DELIVERED, TrackingStatus.CANCELED})

# current_status -> allowed next statuses.
# Repeating a non-terminal status is allowed and recorded again in history.
TRACKING_TRANSITIONS: Dict[TrackingStatus, FrozenSet[TrackingStatus]] = {
    TrackingStatus.PENDING: frozenset({
        TrackingStatus.CONFIRMED,
        TrackingStatus.PROCESSING,
        TrackingStatus.SHIPPED,
        TrackingStatus.CANCELED,
    }),
    TrackingStatus.CONFIRMED: frozenset({
        TrackingStatus.CONFIRMED,
        TrackingStatus.PROCESSING,
        TrackingStatus.SHIPPED,
        TrackingStatus.CANCELED,
    }),
    TrackingStatus.PROCESSING: frozenset({
        TrackingStatus.PROCESSING,
        TrackingStatus.SHIPPED,
        TrackingStatus.CANCELED,
    }),
    TrackingStatus.SHIPPED: frozenset({
        TrackingStatus.SHIPPED,
        TrackingStatus.OUT_FOR_DELIVERY,
        TrackingStatus.DELIVERED,
        TrackingStatus.CANCELED,
    }),
    TrackingStatus.OUT_FOR_DELIVERY: frozenset({
        TrackingStatus.OUT_FOR_DELIVERY,
        TrackingStatus.DELIVERED,
        TrackingStatus.CANCELED,
    }),
    TrackingStatus.DELIVERED: frozenset(),
    TrackingStatus.CANCELED: frozenset(),
}

HIGH_PRIORITY_STATUSES: FrozenSet[TrackingStatus] = frozenset({TrackingStatus.SHIPPED, TrackingStatus.DELIVERED})


def parse_status(value: str | TrackingStatus) -> TrackingStatus:
    try:
        return TrackingStatus(value)
    except ValueError:
        raise InvalidTransitionError(f"Unknown order status: {value!r}")


def is_terminal(status: str | TrackingStatus) -> bool:
    return parse_status(status) in TERMINAL_STATUSES


def can_transition(current: str | TrackingStatus, new: str | TrackingStatus) -> bool:
    return parse_status(new) in TRACKING_TRANSITIONS.get(parse_status(current), frozenset())


def allowed_transitions(current: str | TrackingStatus) -> List[TrackingStatus]:
    allowed = TRACKING_TRANSITIONS.get(parse_status(current), frozenset())
    return [s for s in TrackingStatus if s in allowed]


def validate_transition(current: str | TrackingStatus, new: str | TrackingStatus) -> TrackingStatus:
    """Return the parsed target status or raise InvalidTransitionError."""
    cur = parse_status(current)
    nxt = parse_status(new)
    if is_terminal(cur):
        raise InvalidTransitionError(f"Order is already {cur.value}; no further status changes are allowed")
    if not can_transition(cur, nxt):
        raise InvalidTransitionError(
            f"Invalid status transition from {cur.value} to {nxt.value}",
            data={"current": cur.value, "allowed": [s.value for s in allowed_transitions(cur)]},
        )
    return nxt


def notification_priority(status: str | TrackingStatus) -> str:
    return "high" if parse_status(status) in HIGH_PRIORITY_STATUSES else "medium"


def notification_type(status: str | TrackingStatus) -> str:
    return f"order_{parse_status(status).value}"
