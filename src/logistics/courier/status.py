"""Courier status vocabulary mapping.

The single table that turns a courier's status strings into sub-order and
return statuses. Webhooks, tracking pulls and the return reconciliation job
all go through it. Bump ``STATUS_TABLE_VERSION`` whenever an entry changes.
"""

import re

from logistics.order.sub_order import SubOrderStatus
from logistics.returns.return_request import ReturnStatus

STATUS_TABLE_VERSION = "2"

# Keys are normalised: lower case, single spaces, no punctuation.
COURIER_STATUS_TABLE: dict[str, SubOrderStatus] = {
    "pending pick up": SubOrderStatus.ASSIGNED,
    "pending pickup": SubOrderStatus.ASSIGNED,
    "assigned": SubOrderStatus.ASSIGNED,
    "picked up": SubOrderStatus.IN_TRANSIT,
    "dispatched": SubOrderStatus.IN_TRANSIT,
    "in transit": SubOrderStatus.IN_TRANSIT,
    "enroute to last mile hub": SubOrderStatus.IN_TRANSIT,
    "out for delivery": SubOrderStatus.OUT_FOR_DELIVERY,
    "delivered": SubOrderStatus.DELIVERED,
    "cancelled": SubOrderStatus.CANCELLED,
    "canceled": SubOrderStatus.CANCELLED,
    "returned": SubOrderStatus.RETURNED,
}

RETURN_STATUS_TABLE: dict[SubOrderStatus, ReturnStatus] = {
    SubOrderStatus.ASSIGNED: ReturnStatus.PICKUP_SCHEDULED,
    SubOrderStatus.IN_TRANSIT: ReturnStatus.IN_TRANSIT,
    SubOrderStatus.OUT_FOR_DELIVERY: ReturnStatus.IN_TRANSIT,
    SubOrderStatus.DELIVERED: ReturnStatus.DELIVERED_TO_HUB,
    SubOrderStatus.CANCELLED: ReturnStatus.CANCELLED,
}


def normalize(courier_status: str | None) -> str:
    words = re.sub(r"[^a-z0-9]+", " ", (courier_status or "").lower())
    return " ".join(words.split())


def map_courier_status(courier_status: str | None) -> SubOrderStatus:
    """Internal status for a courier status; PROCESSING when the string is unknown."""
    return COURIER_STATUS_TABLE.get(normalize(courier_status), SubOrderStatus.PROCESSING)


def return_status_for(status: SubOrderStatus) -> ReturnStatus | None:
    """Return status implied by an internal courier status, or None when it implies nothing."""
    return RETURN_STATUS_TABLE.get(status)


def map_return_status(courier_status: str | None) -> ReturnStatus | None:
    """Return status implied by a courier status, or None when it implies nothing."""
    return return_status_for(map_courier_status(courier_status))
