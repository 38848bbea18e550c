"""Canonical delivery statuses and the order status state machine."""

import logging
import re
import unicodedata
from collections.abc import Mapping
from enum import Enum

logger = logging.getLogger(__name__)


class DeliveryStatus(str, Enum):
    """Canonical delivery statuses stored on an order."""

    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    FAILED = "failed"
    RETURNED = "returned"


class CourierStatus(str, Enum):
    """
    Statuses couriers report.

    A superset of DeliveryStatus: the extra members are intermediate states
    some couriers expose, collapsed onto the canonical set by canonical().
    """

    PENDING = "pending"
    ASSIGNED = "assigned"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    READY_FOR_PICKUP = "ready_for_pickup"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    FAILED = "failed"
    CANCELLED = "cancelled"
    RETURNED = "returned"

    def canonical(self) -> DeliveryStatus:
        """Collapse onto the closed DeliveryStatus set."""
        collapsed = _COLLAPSE.get(self)
        if collapsed is not None:
            return collapsed
        return DeliveryStatus(self.value)


_COLLAPSE: dict[CourierStatus, DeliveryStatus] = {
    CourierStatus.PICKED_UP: DeliveryStatus.IN_TRANSIT,
    CourierStatus.READY_FOR_PICKUP: DeliveryStatus.OUT_FOR_DELIVERY,
    CourierStatus.CANCELLED: DeliveryStatus.FAILED,
}

# Happy path order; a status may only move forward along it
_HAPPY_PATH_RANK: dict[DeliveryStatus, int] = {
    DeliveryStatus.PENDING: 0,
    DeliveryStatus.ASSIGNED: 1,
    DeliveryStatus.IN_TRANSIT: 2,
    DeliveryStatus.OUT_FOR_DELIVERY: 3,
    DeliveryStatus.DELIVERED: 4,
}

TERMINAL_STATUSES = frozenset({
    DeliveryStatus.DELIVERED,
    DeliveryStatus.FAILED,
    DeliveryStatus.RETURNED,
})

# Failure exits are only reachable once the parcel is with the courier
_FAILURE_SOURCES = frozenset({
    DeliveryStatus.IN_TRANSIT,
    DeliveryStatus.OUT_FOR_DELIVERY,
})

_SEPARATORS = re.compile(r"[\s\-\.]+")


def normalize_status_key(raw: str | None) -> str:
    """
    Normalize a raw courier status for table lookup.

    Lookup is insensitive to case, accents, and separators:
    "Livrée", "LIVREE" and "livree" all normalize to "livree",
    and "En preparation" / "en-preparation" to "en_preparation".
    """
    if not raw:
        return ""
    decomposed = unicodedata.normalize("NFKD", str(raw))
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _SEPARATORS.sub("_", stripped.strip().lower()).strip("_")


def build_status_table(raw_table: Mapping[str, CourierStatus]) -> dict[str, CourierStatus]:
    """Index a courier's raw status table by normalized key."""
    return {normalize_status_key(raw): status for raw, status in raw_table.items()}


def lookup_courier_status(table: Mapping[str, CourierStatus], raw: str | None) -> CourierStatus:
    """
    Look a raw status up in a normalized table.

    Unknown and absent values map to PENDING.
    """
    return table.get(normalize_status_key(raw), CourierStatus.PENDING)


def to_delivery_status(value: "DeliveryStatus | CourierStatus | str | None") -> DeliveryStatus:
    """Coerce a canonical, courier-level or stored value to DeliveryStatus."""
    if isinstance(value, DeliveryStatus):
        return value
    if isinstance(value, CourierStatus):
        return value.canonical()
    try:
        return CourierStatus(value).canonical()
    except ValueError:
        return DeliveryStatus.PENDING


def can_transition(current: DeliveryStatus, new: DeliveryStatus) -> bool:
    """
    Check whether an order may move from one status to another.

    Rules:
    - pending -> assigned -> in_transit -> out_for_delivery -> delivered,
      skipping forward along that path is allowed
    - failed / returned only from in_transit or out_for_delivery
    - terminal statuses never change
    - same-status updates are not transitions
    """
    if current == new:
        return False
    if current in TERMINAL_STATUSES:
        return False
    if new in (DeliveryStatus.FAILED, DeliveryStatus.RETURNED):
        return current in _FAILURE_SOURCES
    return _HAPPY_PATH_RANK[new] > _HAPPY_PATH_RANK[current]


def next_status(current: DeliveryStatus, proposed: DeliveryStatus) -> DeliveryStatus:
    """
    Apply a proposed status through the state machine.

    Returns the proposed status when the transition is allowed, otherwise
    the current one. Rejected moves are logged and otherwise ignored.
    """
    if can_transition(current, proposed):
        return proposed
    if current != proposed:
        logger.info(
            "Ignoring delivery status change %s -> %s",
            current.value,
            proposed.value,
        )
    return current
