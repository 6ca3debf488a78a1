"""Tests for the Fez Delivery adapter against a mocked HTTP transport."""

import json

import httpx
import pytest
from logistics.config import CourierEnvironment
from logistics.courier.fez_adapter import BASE_URLS, FezCourier
from logistics.courier.port import Address, ShipmentRequest
from logistics.errors import CourierUnavailable

AUTH_OK = {
    "status": "Success",
    "authDetails": {"authToken": "token-123"},
    "orgDetails": {"secret-key": "secret-456"},
}


class FezStub:
    """Routes requests by path and records them.

    ``queued`` responses for a path are served first, one per request.
    """

    def __init__(self, routes: dict, queued: dict | None = None):
        self.routes = {"/user/authenticate": (200, AUTH_OK), **routes}
        self.queued = {path: list(responses) for path, responses in (queued or {}).items()}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/v1")
        if self.queued.get(path):
            status, body = self.queued[path].pop(0)
        else:
            status, body = self.routes.get(path, (404, {"status": "Error", "description": "Not found"}))
        if isinstance(body, Exception):
            raise body
        return httpx.Response(status, json=body)

    def paths(self) -> list[str]:
        return [r.url.path.removeprefix("/v1") for r in self.requests]


def _courier(stub: FezStub, env=CourierEnvironment.SANDBOX) -> FezCourier:
    return FezCourier("user", "pass", env=env, client=httpx.Client(transport=httpx.MockTransport(stub)))


def _shipment_request(is_return=False) -> ShipmentRequest:
    hub = Address(name="Hub A", phone="0800", address="12 Marina Road", city="Lagos", state="Lagos")
    customer = Address(name="Ada Obi", phone="0803", address="3 Allen Avenue", city="Ikeja", state="Lagos")
    return ShipmentRequest(
        reference="SUB-1",
        sender=customer if is_return else hub,
        recipient=hub if is_return else customer,
        weight=2.6,
        declared_value=15000,
        description="Kettle x1",
        is_return=is_return,
    )


class TestAuthentication:
    def test_token_is_cached(self):
        stub = FezStub({"/order/track/FEZ1": (200, {"order": {"orderStatus": "Dispatched"}})})
        courier = _courier(stub)
        courier.fetch_tracking("FEZ1")
        courier.fetch_tracking("FEZ1")
        assert stub.paths().count("/user/authenticate") == 1

    def test_headers_carry_token_and_secret(self):
        stub = FezStub({"/order/track/FEZ1": (200, {"order": {"orderStatus": "Dispatched"}})})
        _courier(stub).fetch_tracking("FEZ1")
        tracked = stub.requests[-1]
        assert tracked.headers["Authorization"] == "Bearer token-123"
        assert tracked.headers["secret-key"] == "secret-456"

    def test_environment_selects_base_url(self):
        stub = FezStub({})
        _courier(stub, env=CourierEnvironment.LIVE).authenticate()
        assert str(stub.requests[0].url).startswith(BASE_URLS[CourierEnvironment.LIVE])

    def test_rejected_credentials(self):
        stub = FezStub({"/user/authenticate": (401, {"status": "Error", "description": "Bad password"})})
        with pytest.raises(CourierUnavailable) as exc_info:
            _courier(stub).authenticate()
        assert "Bad password" in exc_info.value.message

    def test_expired_token_is_refreshed_and_retried(self):
        stub = FezStub(
            {"/order/track/FEZ1": (200, {"order": {"orderStatus": "Dispatched"}})},
            queued={"/order/track/FEZ1": [(401, {"status": "Error", "description": "Token expired"})]},
        )
        snapshot = _courier(stub).fetch_tracking("FEZ1")
        assert snapshot.status == "Dispatched"
        assert stub.paths() == ["/user/authenticate", "/order/track/FEZ1", "/user/authenticate", "/order/track/FEZ1"]

    def test_second_rejection_gives_up(self):
        stub = FezStub({"/order/track/FEZ1": (401, {"status": "Error"})})
        with pytest.raises(CourierUnavailable):
            _courier(stub).fetch_tracking("FEZ1")
        assert stub.paths().count("/order/track/FEZ1") == 2
        assert stub.paths().count("/user/authenticate") == 2


class TestQuote:
    def test_quote(self):
        stub = FezStub({"/order/cost": (200, {"status": "Success", "Cost": {"cost": 3100, "delivery_days": 2}})})
        quote = _courier(stub).quote("Lagos", "Oyo", 1.5)
        assert quote.amount == 3100.0
        assert quote.delivery_days == 2
        assert json.loads(stub.requests[-1].content) == {"state": "Oyo", "pickUpState": "Lagos", "weight": 1.5}

    def test_no_quote(self):
        stub = FezStub({"/order/cost": (400, {"status": "Error", "description": "Unsupported route"})})
        with pytest.raises(CourierUnavailable):
            _courier(stub).quote("Lagos", "Oyo", 1.5)

    def test_network_error(self):
        stub = FezStub({"/order/cost": (0, httpx.ConnectTimeout("timed out"))})
        with pytest.raises(CourierUnavailable):
            _courier(stub).quote("Lagos", "Oyo", 1.5)

    @pytest.mark.parametrize(
        "body",
        [
            {"status": "Success", "Cost": {"cost": 3000, "deliveryDays": "2-3 days"}},
            {"status": "Success", "Cost": {"cost": "three thousand"}},
            {"status": "Success", "Cost": {}},
            [{"cost": 3000}],
        ],
    )
    def test_unreadable_quote(self, body):
        stub = FezStub({"/order/cost": (200, body)})
        with pytest.raises(CourierUnavailable):
            _courier(stub).quote("Lagos", "Oyo", 1.5)


class TestCreateShipment:
    def test_success(self):
        stub = FezStub({"/order": (201, {"status": "Success", "orderNos": {"SUB-1": "FEZ777"}})})
        created = _courier(stub).create_shipment(_shipment_request())
        assert created.tracking_id == "FEZ777"
        assert created.external_order_id == "SUB-1"

    def test_payload(self):
        stub = FezStub({"/order": (201, {"status": "Success", "orderNos": {"SUB-1": "FEZ777"}})})
        _courier(stub).create_shipment(_shipment_request())
        (payload,) = json.loads(stub.requests[-1].content)
        assert payload["uniqueID"] == "SUB-1"
        assert payload["weight"] == 3
        assert payload["recipientState"] == "Lagos"
        assert "isReturn" not in payload

    def test_return_payload_names_sender(self):
        stub = FezStub({"/order": (201, {"status": "Success", "orderNos": {"SUB-1": "FEZ777"}})})
        _courier(stub).create_shipment(_shipment_request(is_return=True))
        (payload,) = json.loads(stub.requests[-1].content)
        assert payload["isReturn"] is True
        assert payload["senderName"] == "Ada Obi"

    def test_duplicate_submission_is_treated_as_created(self):
        stub = FezStub({"/order": (400, {"status": "Error", "description": "Order FEZ777 already exists"})})
        created = _courier(stub).create_shipment(_shipment_request())
        assert created.tracking_id == "FEZ777"

    def test_rejection(self):
        stub = FezStub({"/order": (400, {"status": "Error", "description": "Invalid recipient state"})})
        with pytest.raises(CourierUnavailable) as exc_info:
            _courier(stub).create_shipment(_shipment_request())
        assert exc_info.value.message == "Invalid recipient state"


class TestTracking:
    def test_history(self):
        body = {
            "order": {"orderNo": "FEZ1", "orderStatus": "Delivered"},
            "history": [
                {"orderStatus": "Picked-Up", "statusCreationDate": "2026-10-01T10:00:00Z"},
                {"orderStatus": "Delivered", "statusDescription": "Signed by Ada"},
            ],
        }
        snapshot = _courier(FezStub({"/order/track/FEZ1": (200, body)})).fetch_tracking("FEZ1")
        assert snapshot.status == "Delivered"
        assert [e.status for e in snapshot.events] == ["Picked-Up", "Delivered"]
        assert snapshot.events[0].occurred_at.year == 2026
        assert snapshot.events[1].description == "Signed by Ada"

    def test_unknown_shipment(self):
        stub = FezStub({"/order/track/NOPE": (404, {"status": "Error", "description": "Order not found"})})
        with pytest.raises(CourierUnavailable):
            _courier(stub).fetch_tracking("NOPE")
