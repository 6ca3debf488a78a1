"""Integration tests for the return and refund endpoints."""

import pytest
from logistics.returns.return_request import ReturnRequest
from protean import current_domain


@pytest.fixture()
def order_id(client, order_payload):
    return client.post("/orders", json=order_payload).json()["order_id"]


def _create_return(client, order_id, **overrides):
    body = {
        "order_id": order_id,
        "method": "dropoff",
        "preferred_resolution": "refund",
        "reason": "Arrived broken",
        "customer_email": "ada@example.com",
    }
    body.update(overrides)
    return client.post("/returns", json=body)


def _at_hub(client, order_id):
    return_id = _create_return(client, order_id).json()["return_id"]
    client.patch(f"/returns/{return_id}/tracking", json={"tracking_number": f"TRK-{return_id[:8]}"})
    client.patch(f"/returns/{return_id}/status", json={"status": "delivered_to_hub"})
    return return_id


class TestCreateReturn:
    def test_dropoff(self, client, order_id):
        response = _create_return(client, order_id)
        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "awaiting_dropoff"
        assert data["return_code"].startswith("RTN-")
        assert data["tracking_number"] is None

    def test_pickup(self, client, order_id):
        data = _create_return(client, order_id, method="pickup").json()
        assert data["status"] == "pickup_scheduled"
        assert data["tracking_number"].startswith("FAKE")

    def test_deferred_pickup_and_retry(self, client, courier, order_id):
        courier.configure(should_succeed=False, failure_reason="Courier timed out")
        data = _create_return(client, order_id, method="pickup").json()
        assert data["status"] == "requested"
        assert data["pickup_error"] == "Courier timed out"

        courier.configure(should_succeed=True)
        retried = client.post(f"/returns/{data['return_id']}/pickup")
        assert retried.status_code == 200
        assert retried.json()["status"] == "pickup_scheduled"

    def test_not_the_owner(self, client, order_id):
        response = _create_return(client, order_id, customer_email="eve@example.com")
        assert response.status_code == 403
        assert response.json()["error"] == "ReturnForbidden"

    def test_outside_return_window(self, client, make_payload):
        old = client.post("/orders", json=make_payload(7001, date_created_gmt="2020-01-01T00:00:00")).json()
        response = _create_return(client, old["order_id"])
        assert response.status_code == 400
        assert response.json()["error"] == "ReturnWindowExceeded"
        assert current_domain.repository_for(ReturnRequest)._dao.query.all().total == 0

    def test_unknown_order(self, client, reference_data):
        assert _create_return(client, "missing-order").status_code == 404

    def test_get_return(self, client, order_id):
        return_id = _create_return(client, order_id).json()["return_id"]
        response = client.get(f"/returns/{return_id}")
        assert response.status_code == 200
        assert response.json()["return_id"] == return_id


class TestProgress:
    def test_customer_tracking(self, client, order_id):
        return_id = _create_return(client, order_id).json()["return_id"]
        response = client.patch(f"/returns/{return_id}/tracking", json={"tracking_number": "TRK-1"})
        assert response.json()["status"] == "in_transit"
        assert client.get(f"/returns/{return_id}").json()["tracking_number"] == "TRK-1"

    def test_staff_progress(self, client, order_id):
        return_id = _at_hub(client, order_id)
        response = client.patch(f"/returns/{return_id}/status", json={"status": "inspection_in_progress"})
        assert response.json()["status"] == "inspection_in_progress"

    def test_staff_cannot_jump_to_refund(self, client, order_id):
        return_id = _at_hub(client, order_id)
        response = client.patch(f"/returns/{return_id}/status", json={"status": "refund_completed"})
        assert response.status_code == 400


class TestInspection:
    def test_approved_refund(self, client, order_id):
        return_id = _at_hub(client, order_id)
        response = client.post(
            f"/returns/{return_id}/inspection",
            json={"status": "approved", "approved_refund_amount": 4500},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "refund_completed"
        assert data["refund_amount"] == 4500.0
        assert data["refund_currency"] == "NGN"

    def test_refund_failure_then_retry(self, client, refunds, order_id):
        return_id = _at_hub(client, order_id)
        refunds.configure(should_succeed=False, failure_reason="Gateway declined")

        response = client.post(
            f"/returns/{return_id}/inspection",
            json={"status": "approved", "approved_refund_amount": 4500},
        )
        assert response.status_code == 502
        assert response.json()["detail"] == "Gateway declined"
        assert client.get(f"/returns/{return_id}").json()["status"] == "refund_failed"

        refunds.configure(should_succeed=True)
        retried = client.post(f"/returns/{return_id}/refund/retry")
        assert retried.json()["status"] == "refund_completed"

    def test_missing_amount(self, client, order_id):
        return_id = _at_hub(client, order_id)
        response = client.post(f"/returns/{return_id}/inspection", json={"status": "approved"})
        assert response.status_code == 400


class TestSync:
    def test_sync_endpoint(self, client, courier, order_id):
        data = _create_return(client, order_id, method="pickup").json()
        courier.set_tracking(data["tracking_number"], "Picked-Up")

        response = client.post("/returns/sync")

        assert response.json() == {"checked": 1, "updated": 1, "skipped": 0, "failed": 0}
        assert client.get(f"/returns/{data['return_id']}").json()["status"] == "in_transit"
