"""Fake courier: deterministic courier for tests and local development.

Records every call. Live quotes are off unless ``quote_amount`` is set, so
the splitter falls back to the rate table by default.
"""

from uuid import uuid4

from logistics.config import CourierEnvironment
from logistics.courier.port import (
    CourierCredentials,
    CourierPort,
    CreatedShipment,
    ShipmentRequest,
    ShippingQuote,
    TrackingHistoryEntry,
    TrackingSnapshot,
)
from logistics.errors import CourierUnavailable


class FakeCourier(CourierPort):
    def __init__(self):
        self.should_succeed = True
        self.failure_reason = "Courier unavailable"
        self.quote_amount = None
        self.quote_days = None
        self.tracking: dict[str, TrackingSnapshot] = {}
        self.failing_tracking: set[str] = set()
        self.calls: list[tuple] = []
        self.closed = False

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Courier unavailable",
        quote_amount: float | None = None,
        quote_days: int | None = None,
    ):
        """Configure the fake courier behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.quote_amount = quote_amount
        self.quote_days = quote_days

    def set_tracking(self, tracking_id: str, status: str, history: list[str] | None = None) -> None:
        events = [TrackingHistoryEntry(status=s, description=s) for s in (history or [status])]
        self.tracking[tracking_id] = TrackingSnapshot(status=status, events=events, raw={"status": status})

    def fail_tracking(self, tracking_id: str) -> None:
        self.failing_tracking.add(tracking_id)

    def close(self) -> None:
        self.closed = True

    def _check(self, **context) -> None:
        if not self.should_succeed:
            raise CourierUnavailable(self.failure_reason, **context)

    def authenticate(self, env: CourierEnvironment | None = None) -> CourierCredentials:
        self.calls.append(("authenticate", env))
        self._check()
        return CourierCredentials(token="fake-token", secret="fake-secret")

    def quote(self, origin_state: str, destination_state: str, weight: float) -> ShippingQuote:
        self.calls.append(("quote", origin_state, destination_state, weight))
        self._check()
        if self.quote_amount is None:
            raise CourierUnavailable("Live quotes are not enabled")
        return ShippingQuote(amount=self.quote_amount, delivery_days=self.quote_days)

    def create_shipment(self, request: ShipmentRequest) -> CreatedShipment:
        self.calls.append(("create_shipment", request))
        self._check(reference=request.reference)
        tracking_id = f"FAKE{uuid4().hex[:10].upper()}"
        self.tracking.setdefault(
            tracking_id,
            TrackingSnapshot(status="Pending Pick-Up", events=[TrackingHistoryEntry(status="Pending Pick-Up")]),
        )
        return CreatedShipment(external_order_id=request.reference, tracking_id=tracking_id)

    def fetch_tracking(self, tracking_id: str) -> TrackingSnapshot:
        self.calls.append(("fetch_tracking", tracking_id))
        self._check(tracking_id=tracking_id)
        if tracking_id in self.failing_tracking or tracking_id not in self.tracking:
            raise CourierUnavailable("Tracking unavailable", tracking_id=tracking_id)
        return self.tracking[tracking_id]
