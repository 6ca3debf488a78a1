"""ReturnRequest and ReturnShipment aggregates (CQRS).

State Machine:
    REQUESTED → {PICKUP_SCHEDULED | AWAITING_DROPOFF} → IN_TRANSIT → DELIVERED_TO_HUB
    DELIVERED_TO_HUB → INSPECTION_IN_PROGRESS → {APPROVED | REJECTED}
    DELIVERED_TO_HUB → {APPROVED | REJECTED}
    APPROVED → REFUND_PROCESSING → {REFUND_COMPLETED | REFUND_FAILED}
    REFUND_FAILED → REFUND_PROCESSING (re-trigger)
    {REQUESTED, PICKUP_SCHEDULED, AWAITING_DROPOFF, IN_TRANSIT} → CANCELLED

A ReturnShipment carries the courier side of the return and always holds the
same status as its ReturnRequest; ``ReturnShipment.mirror`` is the only way
its status changes.
"""

import json
import secrets
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text

from logistics.domain import logistics
from logistics.returns.events import (
    InspectionDecided,
    PickupScheduled,
    RefundAttemptFailed,
    RefundIssued,
    ReturnRequested,
    ReturnStatusChanged,
)


class ReturnStatus(Enum):
    REQUESTED = "requested"
    PICKUP_SCHEDULED = "pickup_scheduled"
    AWAITING_DROPOFF = "awaiting_dropoff"
    IN_TRANSIT = "in_transit"
    DELIVERED_TO_HUB = "delivered_to_hub"
    INSPECTION_IN_PROGRESS = "inspection_in_progress"
    APPROVED = "approved"
    REJECTED = "rejected"
    REFUND_PROCESSING = "refund_processing"
    REFUND_COMPLETED = "refund_completed"
    REFUND_FAILED = "refund_failed"
    CANCELLED = "cancelled"


class ReturnMethod(Enum):
    PICKUP = "pickup"
    DROPOFF = "dropoff"


class ReturnResolution(Enum):
    REFUND = "refund"
    REPLACEMENT = "replacement"


class InspectionDecision(Enum):
    APPROVED = "approved"
    REJECTED = "rejected"


class StatusSource(Enum):
    COURIER = "courier"
    CUSTOMER = "customer"
    STAFF = "staff"


_VALID_TRANSITIONS = {
    ReturnStatus.REQUESTED: {
        ReturnStatus.PICKUP_SCHEDULED,
        ReturnStatus.AWAITING_DROPOFF,
        ReturnStatus.CANCELLED,
    },
    ReturnStatus.PICKUP_SCHEDULED: {
        ReturnStatus.IN_TRANSIT,
        ReturnStatus.DELIVERED_TO_HUB,
        ReturnStatus.CANCELLED,
    },
    ReturnStatus.AWAITING_DROPOFF: {ReturnStatus.IN_TRANSIT, ReturnStatus.CANCELLED},
    ReturnStatus.IN_TRANSIT: {ReturnStatus.DELIVERED_TO_HUB, ReturnStatus.CANCELLED},
    ReturnStatus.DELIVERED_TO_HUB: {
        ReturnStatus.INSPECTION_IN_PROGRESS,
        ReturnStatus.APPROVED,
        ReturnStatus.REJECTED,
    },
    ReturnStatus.INSPECTION_IN_PROGRESS: {ReturnStatus.APPROVED, ReturnStatus.REJECTED},
    ReturnStatus.APPROVED: {ReturnStatus.REFUND_PROCESSING},
    ReturnStatus.REFUND_PROCESSING: {ReturnStatus.REFUND_COMPLETED, ReturnStatus.REFUND_FAILED},
    ReturnStatus.REFUND_FAILED: {ReturnStatus.REFUND_PROCESSING},
    ReturnStatus.REJECTED: set(),  # terminal
    ReturnStatus.REFUND_COMPLETED: set(),  # terminal
    ReturnStatus.CANCELLED: set(),  # terminal
}

# Statuses in which the courier still owns the parcel and tracking is worth polling
IN_FLIGHT_STATUSES = (
    ReturnStatus.PICKUP_SCHEDULED,
    ReturnStatus.AWAITING_DROPOFF,
    ReturnStatus.IN_TRANSIT,
)

# Manual progression available to hub staff
STAFF_PROGRESS_STATUSES = {ReturnStatus.DELIVERED_TO_HUB, ReturnStatus.INSPECTION_IN_PROGRESS}

_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def generate_return_code() -> str:
    """Customer-facing reference such as ``RTN-7KQ2MX``."""
    return "RTN-" + "".join(secrets.choice(_CODE_ALPHABET) for _ in range(6))


@logistics.aggregate
class ReturnRequest:
    order_id = Identifier(required=True)
    sub_order_id = Identifier()
    return_code = String(required=True, max_length=20)
    customer_id = String(max_length=100)
    customer_email = String(max_length=254)
    reason = Text(required=True)
    evidence = Text()  # JSON list of evidence URLs
    items = Text()  # JSON list of returned item dicts
    preferred_resolution = String(required=True, choices=ReturnResolution)
    method = String(required=True, choices=ReturnMethod)
    status = String(choices=ReturnStatus, default=ReturnStatus.REQUESTED.value)
    pickup_error = Text()
    inspection_result = String(max_length=100)
    inspection_notes = Text()
    inspected_at = DateTime()
    approved_refund_amount = Float(min_value=0.0)
    refund_amount = Float()
    refund_currency = String(max_length=10)
    refund_reference = String(max_length=100)
    refund_raw = Text()
    refund_attempts = Integer(default=0)
    refund_completed_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(
        cls,
        order,
        method: ReturnMethod,
        preferred_resolution: ReturnResolution,
        reason: str,
        evidence: list[str] | None = None,
        items: list[dict] | None = None,
        sub_order_id: str | None = None,
    ) -> "ReturnRequest":
        now = datetime.now(UTC)
        request = cls(
            order_id=str(order.id),
            sub_order_id=sub_order_id,
            return_code=generate_return_code(),
            customer_id=order.customer_id,
            customer_email=order.customer_email,
            reason=reason,
            evidence=json.dumps(evidence or []),
            items=json.dumps(items or []),
            preferred_resolution=preferred_resolution.value,
            method=method.value,
            status=ReturnStatus.REQUESTED.value,
            created_at=now,
            updated_at=now,
        )
        request.raise_(
            ReturnRequested(
                return_id=str(request.id),
                return_code=request.return_code,
                order_id=str(order.id),
                method=method.value,
                preferred_resolution=preferred_resolution.value,
                reason=reason,
                requested_at=now,
            )
        )
        return request

    # -------------------------------------------------------------------
    # State transition helpers
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status: ReturnStatus) -> None:
        current = ReturnStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def _transition(self, target_status: ReturnStatus, source: StatusSource) -> datetime:
        self._assert_can_transition(target_status)
        previous = self.status
        now = datetime.now(UTC)
        self.status = target_status.value
        self.updated_at = now
        self.raise_(
            ReturnStatusChanged(
                return_id=str(self.id),
                previous_status=previous,
                new_status=target_status.value,
                source=source.value,
                changed_at=now,
            )
        )
        return now

    @property
    def wants_refund(self) -> bool:
        return self.preferred_resolution == ReturnResolution.REFUND.value

    # -------------------------------------------------------------------
    # Courier leg
    # -------------------------------------------------------------------
    def schedule_pickup(self, tracking_number: str) -> None:
        if self.method != ReturnMethod.PICKUP.value:
            raise ValidationError({"method": ["Only pickup returns can be scheduled for collection"]})
        now = self._transition(ReturnStatus.PICKUP_SCHEDULED, StatusSource.COURIER)
        self.pickup_error = None
        self.raise_(
            PickupScheduled(
                return_id=str(self.id),
                tracking_number=tracking_number,
                scheduled_at=now,
            )
        )

    def record_pickup_failure(self, error: str) -> None:
        """Keep the request in REQUESTED so the booking can be retried."""
        if ReturnStatus(self.status) != ReturnStatus.REQUESTED:
            raise ValidationError({"status": ["Pickup can only be booked for a requested return"]})
        self.pickup_error = error
        self.updated_at = datetime.now(UTC)

    def await_dropoff(self) -> None:
        if self.method != ReturnMethod.DROPOFF.value:
            raise ValidationError({"method": ["Only drop-off returns wait for the customer"]})
        self._transition(ReturnStatus.AWAITING_DROPOFF, StatusSource.CUSTOMER)

    def advance(self, target_status: ReturnStatus, source: StatusSource) -> bool:
        """Apply a courier, customer or staff status update.

        Returns False when the request is already in ``target_status``.
        """
        if ReturnStatus(self.status) == target_status:
            return False
        self._transition(target_status, source)
        return True

    # -------------------------------------------------------------------
    # Inspection
    # -------------------------------------------------------------------
    def decide_inspection(
        self,
        decision: str,
        inspection_result: str | None = None,
        inspection_notes: str | None = None,
        approved_refund_amount: float | None = None,
    ) -> None:
        """Record the staff decision on the returned goods."""
        try:
            verdict = InspectionDecision(decision)
        except ValueError:
            raise ValidationError({"status": ["Inspection decision must be 'approved' or 'rejected'"]}) from None

        if verdict == InspectionDecision.APPROVED and self.wants_refund:
            if approved_refund_amount is None:
                raise ValidationError(
                    {"approved_refund_amount": ["Approved refund amount is required for refund returns"]}
                )
            if approved_refund_amount <= 0:
                raise ValidationError({"approved_refund_amount": ["Approved refund amount must be positive"]})

        target = ReturnStatus.APPROVED if verdict == InspectionDecision.APPROVED else ReturnStatus.REJECTED
        now = self._transition(target, StatusSource.STAFF)
        self.inspection_result = inspection_result
        self.inspection_notes = inspection_notes
        self.inspected_at = now
        if verdict == InspectionDecision.APPROVED and approved_refund_amount is not None:
            self.approved_refund_amount = round(approved_refund_amount, 2)
        self.raise_(
            InspectionDecided(
                return_id=str(self.id),
                decision=verdict.value,
                inspection_result=inspection_result,
                approved_refund_amount=self.approved_refund_amount,
                decided_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Refund
    # -------------------------------------------------------------------
    def refund_reason(self) -> str:
        return f"Return approved (Return ID: {self.return_code}; Reason: {self.reason})"

    def start_refund(self) -> None:
        if not self.wants_refund:
            raise ValidationError({"preferred_resolution": ["Return was not requested as a refund"]})
        self._transition(ReturnStatus.REFUND_PROCESSING, StatusSource.STAFF)
        self.refund_attempts = (self.refund_attempts or 0) + 1

    def complete_refund(self, amount: float, currency: str, reference: str | None, raw: dict) -> None:
        now = self._transition(ReturnStatus.REFUND_COMPLETED, StatusSource.STAFF)
        self.refund_amount = amount
        self.refund_currency = currency
        self.refund_reference = reference
        self.refund_raw = json.dumps(raw)
        self.refund_completed_at = now
        self.raise_(
            RefundIssued(
                return_id=str(self.id),
                order_id=str(self.order_id),
                amount=amount,
                currency=currency,
                refund_reference=reference,
                completed_at=now,
            )
        )

    def fail_refund(self, error: str, raw: dict | None = None) -> None:
        now = self._transition(ReturnStatus.REFUND_FAILED, StatusSource.STAFF)
        self.refund_raw = json.dumps(raw or {"error": error})
        self.raise_(
            RefundAttemptFailed(
                return_id=str(self.id),
                order_id=str(self.order_id),
                amount=self.approved_refund_amount or 0.0,
                error=error,
                failed_at=now,
            )
        )


@logistics.aggregate
class ReturnShipment:
    return_request_id = Identifier(required=True)
    method = String(required=True, choices=ReturnMethod)
    status = String(choices=ReturnStatus, default=ReturnStatus.REQUESTED.value)
    tracking_number = String(max_length=100)
    courier_shipment_id = String(max_length=100)
    courier_status = String(max_length=100)
    customer_submitted_tracking = Boolean(default=False)
    tracking_submitted_at = DateTime()
    last_synced_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, request: ReturnRequest) -> "ReturnShipment":
        now = datetime.now(UTC)
        return cls(
            return_request_id=str(request.id),
            method=request.method,
            status=request.status,
            created_at=now,
            updated_at=now,
        )

    def mirror(self, request: ReturnRequest) -> None:
        self.status = request.status
        self.updated_at = datetime.now(UTC)

    def attach_tracking(
        self,
        tracking_number: str,
        courier_shipment_id: str | None = None,
        submitted_by_customer: bool = False,
    ) -> None:
        now = datetime.now(UTC)
        self.tracking_number = tracking_number
        self.courier_shipment_id = courier_shipment_id
        self.customer_submitted_tracking = submitted_by_customer
        if submitted_by_customer:
            self.tracking_submitted_at = now
        self.updated_at = now

    def note_courier_status(self, courier_status: str) -> None:
        now = datetime.now(UTC)
        self.courier_status = courier_status
        self.last_synced_at = now
        self.updated_at = now
