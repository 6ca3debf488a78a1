"""Tests for the courier status vocabulary table."""

import pytest
from logistics.courier.status import (
    COURIER_STATUS_TABLE,
    STATUS_TABLE_VERSION,
    map_courier_status,
    map_return_status,
    normalize,
    return_status_for,
)
from logistics.order.sub_order import SubOrderStatus
from logistics.returns.return_request import ReturnStatus


class TestNormalize:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("Pending Pick-Up", "pending pick up"),
            ("  OUT   for delivery ", "out for delivery"),
            ("Enroute To Last-Mile Hub", "enroute to last mile hub"),
            (None, ""),
        ],
    )
    def test_normalize(self, raw, expected):
        assert normalize(raw) == expected

    def test_table_keys_are_normalized(self):
        for key in COURIER_STATUS_TABLE:
            assert normalize(key) == key


class TestSubOrderMapping:
    @pytest.mark.parametrize(
        "courier_status, expected",
        [
            ("Pending Pick-Up", SubOrderStatus.ASSIGNED),
            ("Picked-Up", SubOrderStatus.IN_TRANSIT),
            ("Dispatched", SubOrderStatus.IN_TRANSIT),
            ("In Transit", SubOrderStatus.IN_TRANSIT),
            ("Out for Delivery", SubOrderStatus.OUT_FOR_DELIVERY),
            ("Delivered", SubOrderStatus.DELIVERED),
            ("Cancelled", SubOrderStatus.CANCELLED),
            ("Canceled", SubOrderStatus.CANCELLED),
            ("Returned", SubOrderStatus.RETURNED),
        ],
    )
    def test_known_statuses(self, courier_status, expected):
        assert map_courier_status(courier_status) == expected

    def test_unknown_status_is_processing(self):
        assert map_courier_status("Held at customs") == SubOrderStatus.PROCESSING

    def test_missing_status_is_processing(self):
        assert map_courier_status(None) == SubOrderStatus.PROCESSING


class TestReturnMapping:
    @pytest.mark.parametrize(
        "courier_status, expected",
        [
            ("Pending Pick-Up", ReturnStatus.PICKUP_SCHEDULED),
            ("Picked-Up", ReturnStatus.IN_TRANSIT),
            ("Out for Delivery", ReturnStatus.IN_TRANSIT),
            ("Delivered", ReturnStatus.DELIVERED_TO_HUB),
            ("Cancelled", ReturnStatus.CANCELLED),
        ],
    )
    def test_known_statuses(self, courier_status, expected):
        assert map_return_status(courier_status) == expected

    def test_unknown_status_implies_nothing(self):
        assert map_return_status("Held at customs") is None

    def test_returned_implies_nothing(self):
        assert map_return_status("Returned") is None

    def test_from_internal_status(self):
        assert return_status_for(SubOrderStatus.IN_TRANSIT) == ReturnStatus.IN_TRANSIT
        assert return_status_for(SubOrderStatus.PROCESSING) is None


def test_table_is_versioned():
    assert STATUS_TABLE_VERSION
