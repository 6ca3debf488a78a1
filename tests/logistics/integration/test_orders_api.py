"""Integration tests for the internal order and sub-order endpoints."""

import asyncio

from logistics.order.sub_order import SubOrderStatus


class TestIngestEndpoint:
    def test_creates_order(self, client, order_payload):
        response = client.post("/orders", json=order_payload)
        assert response.status_code == 201
        assert response.json()["created"] is True

    def test_validation_errors_are_returned(self, client, make_payload):
        response = client.post("/orders", json=make_payload(line_items=[]))
        assert response.status_code == 400

    def test_unshippable_order(self, client, make_payload):
        items = [{"name": "Kettle", "quantity": 1, "price": 10, "hub_id": "no-such-hub"}]
        response = client.post("/orders", json=make_payload(line_items=items))
        assert response.status_code == 422
        assert response.json()["error"] == "NoFulfillableItems"


class TestGetOrder:
    def test_includes_sub_orders(self, client, order_payload, reference_data):
        order_id = client.post("/orders", json=order_payload).json()["order_id"]

        response = client.get(f"/orders/{order_id}")

        assert response.status_code == 200
        data = response.json()
        assert data["overall_status"] == "pending"
        assert data["payment_status"] == "paid"
        by_hub = {s["hub_id"]: s for s in data["sub_orders"]}
        assert by_hub[reference_data["hub_a"]]["real_shipping_cost"] == 4300.0
        assert by_hub[reference_data["hub_b"]]["real_shipping_cost"] == 2687.5
        assert by_hub[reference_data["hub_a"]]["shipping_profit_loss"] == -1300.0

    def test_unknown_order(self, client):
        assert client.get("/orders/does-not-exist").status_code == 404


class TestSubOrderEndpoints:
    def _sub_order_id(self, client, order_payload):
        order_id = client.post("/orders", json=order_payload).json()["order_id"]
        return client.get(f"/orders/{order_id}").json()["sub_orders"][0]["sub_order_id"]

    def test_create_shipment(self, client, order_payload):
        sub_order_id = self._sub_order_id(client, order_payload)
        response = client.post(f"/sub-orders/{sub_order_id}/shipment")
        assert response.status_code == 200
        assert response.json()["status"] == SubOrderStatus.ASSIGNED.value
        assert response.json()["tracking_number"]

    def test_create_shipment_courier_down(self, client, courier, order_payload):
        sub_order_id = self._sub_order_id(client, order_payload)
        courier.configure(should_succeed=False)
        response = client.post(f"/sub-orders/{sub_order_id}/shipment")
        assert response.status_code == 502
        assert response.json()["error"] == "CourierUnavailable"

    def test_refresh_tracking(self, client, courier, order_payload):
        sub_order_id = self._sub_order_id(client, order_payload)
        tracking_number = client.post(f"/sub-orders/{sub_order_id}/shipment").json()["tracking_number"]
        courier.set_tracking(tracking_number, "Delivered")

        response = client.post(f"/sub-orders/{sub_order_id}/tracking/refresh")

        assert response.json() == {"status": "updated", "detail": None}


def _record_loop(calls: list, method):
    """Wrap a courier method to note whether it ran on the event loop thread."""

    def wrapper(*args, **kwargs):
        try:
            asyncio.get_running_loop()
            calls.append("event_loop")
        except RuntimeError:
            calls.append("worker")
        return method(*args, **kwargs)

    return wrapper


class TestCourierCallsLeaveTheEventLoop:
    def test_shipment_booking(self, client, courier, order_payload, monkeypatch):
        order_id = client.post("/orders", json=order_payload).json()["order_id"]
        sub_order_id = client.get(f"/orders/{order_id}").json()["sub_orders"][0]["sub_order_id"]
        calls = []
        monkeypatch.setattr(courier, "create_shipment", _record_loop(calls, courier.create_shipment))

        assert client.post(f"/sub-orders/{sub_order_id}/shipment").status_code == 200
        assert calls == ["worker"]

    def test_live_quotes_during_ingestion(self, client, courier, order_payload, monkeypatch):
        calls = []
        monkeypatch.setattr(courier, "quote", _record_loop(calls, courier.quote))

        assert client.post("/orders", json=order_payload).status_code == 201
        assert client.post("/webhooks/commerce/orders", json={**order_payload, "id": 5002}).json()["status"] == "created"
        assert calls and set(calls) == {"worker"}
