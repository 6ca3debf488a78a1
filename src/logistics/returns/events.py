"""Return request domain events."""

from protean.fields import DateTime, Float, Identifier, String, Text

from logistics.domain import logistics


@logistics.event(part_of="ReturnRequest")
class ReturnRequested:
    """A customer opened a return against a delivered order."""

    __version__ = 1

    return_id = Identifier(required=True)
    return_code = String(required=True)
    order_id = Identifier(required=True)
    method = String(required=True)
    preferred_resolution = String(required=True)
    reason = Text()
    requested_at = DateTime(required=True)


@logistics.event(part_of="ReturnRequest")
class PickupScheduled:
    """The courier booked a pickup from the customer's address."""

    __version__ = 1

    return_id = Identifier(required=True)
    tracking_number = String(required=True)
    scheduled_at = DateTime(required=True)


@logistics.event(part_of="ReturnRequest")
class ReturnStatusChanged:
    __version__ = 1

    return_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    source = String(required=True)  # courier, customer or staff
    changed_at = DateTime(required=True)


@logistics.event(part_of="ReturnRequest")
class InspectionDecided:
    """Hub staff approved or rejected the returned goods."""

    __version__ = 1

    return_id = Identifier(required=True)
    decision = String(required=True)
    inspection_result = String()
    approved_refund_amount = Float()
    decided_at = DateTime(required=True)


@logistics.event(part_of="ReturnRequest")
class RefundIssued:
    __version__ = 1

    return_id = Identifier(required=True)
    order_id = Identifier(required=True)
    amount = Float(required=True)
    currency = String(required=True)
    refund_reference = String()
    completed_at = DateTime(required=True)


@logistics.event(part_of="ReturnRequest")
class RefundAttemptFailed:
    """The commerce backend rejected or never answered the refund call."""

    __version__ = 1

    return_id = Identifier(required=True)
    order_id = Identifier(required=True)
    amount = Float(required=True)
    error = Text(required=True)
    failed_at = DateTime(required=True)
