"""Tests for the Order aggregate."""

from datetime import UTC, datetime, timedelta

import pytest
from logistics.order.events import OrderDelivered, OrderIngested
from logistics.order.order import Order, OverallStatus
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain


def _make_order(**overrides):
    fields = {
        "external_order_id": "5001",
        "customer_id": "77",
        "customer_name": "Ada Obi",
        "customer_email": "Ada@Example.com",
        "shipping_address": "3 Allen Avenue",
        "shipping_city": "Ikeja",
        "shipping_state": "Lagos",
        "total": 24000.0,
        "shipping_fee_paid": 6000.0,
        "subtotal": 18000.0,
    }
    fields.update(overrides)
    return Order.create(**fields)


class TestOrderCreation:
    def test_starts_pending(self):
        assert _make_order().overall_status == OverallStatus.PENDING.value

    def test_raises_ingested_event(self):
        order = _make_order()
        assert isinstance(order._events[0], OrderIngested)
        assert order._events[0].external_order_id == "5001"

    def test_ordered_at_defaults_to_now(self):
        order = _make_order()
        assert order.ordered_at is not None

    def test_ordered_at_from_payload(self):
        placed = datetime(2026, 1, 5, tzinfo=UTC)
        assert _make_order(ordered_at=placed).ordered_at == placed


class TestExternalId:
    def test_external_order_id_is_unique(self):
        repo = current_domain.repository_for(Order)
        repo.add(_make_order(external_order_id="X1"))
        with pytest.raises(ValidationError) as exc_info:
            repo.add(_make_order(external_order_id="X1"))

        assert "external_order_id" in exc_info.value.messages
        assert repo._dao.query.filter(external_order_id="X1").all().total == 1


class TestOwnership:
    def test_matches_customer_id(self):
        assert _make_order().belongs_to(customer_id="77")

    def test_matches_email_case_insensitively(self):
        assert _make_order().belongs_to(email="ada@example.COM ")

    def test_rejects_other_customer(self):
        order = _make_order()
        assert not order.belongs_to(customer_id="78", email="someone@example.com")

    def test_rejects_missing_identity(self):
        assert not _make_order().belongs_to()


class TestAge:
    def test_age_in_days(self):
        now = datetime(2026, 3, 16, 12, tzinfo=UTC)
        order = _make_order(ordered_at=now - timedelta(days=15, hours=1))
        assert order.age_in_days(now) == 15

    def test_naive_order_date_is_treated_as_utc(self):
        now = datetime(2026, 3, 16, 12, tzinfo=UTC)
        order = _make_order(ordered_at=datetime(2026, 3, 2, 12))
        assert order.age_in_days(now) == 14


class TestMarkDelivered:
    def test_marks_delivered(self):
        order = _make_order()
        assert order.mark_delivered() is True
        assert order.overall_status == OverallStatus.DELIVERED.value
        assert isinstance(order._events[-1], OrderDelivered)

    def test_is_idempotent(self):
        order = _make_order()
        order.mark_delivered()
        events = len(order._events)
        assert order.mark_delivered() is False
        assert len(order._events) == events
