import json
from datetime import UTC, datetime

import pytest
from protean.integrations.pytest import DomainFixture
from protean.utils.globals import current_domain


@pytest.fixture(scope="session")
def logistics_bed():
    from logistics.domain import logistics

    bed = DomainFixture(logistics)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(logistics_bed):
    with logistics_bed.domain_context():
        yield


@pytest.fixture()
def settings():
    from logistics.config import Settings

    return Settings(_env_file=None)


@pytest.fixture()
def courier():
    from logistics.courier.fake_adapter import FakeCourier

    return FakeCourier()


@pytest.fixture()
def refunds():
    from logistics.refunds.fake_adapter import FakeRefunds

    return FakeRefunds()


@pytest.fixture()
def services(settings, courier, refunds):
    from logistics.services import Services

    return Services(settings=settings, courier=courier, refunds=refunds)


@pytest.fixture()
def reference_data():
    """Two Lagos-area hubs served by one courier, and two zones."""
    from logistics.catalog import Courier, Hub, Zone

    fez = Courier(name="Fez Delivery", code="fez")
    current_domain.repository_for(Courier).add(fez)

    south_west = Zone(name="South-West", states=json.dumps(["Lagos", "Ogun", "Oyo"]), position=0)
    north = Zone(name="North", states=json.dumps(["Kano", "Kaduna"]), position=1)
    for zone in (south_west, north):
        current_domain.repository_for(Zone).add(zone)

    hub_a = Hub(
        name="Hub A",
        address="12 Marina Road",
        city="Lagos",
        state="Lagos",
        phone="+2348000000001",
        primary_courier_id=str(fez.id),
    )
    hub_b = Hub(
        name="Hub B",
        address="4 Ring Road",
        city="Ibadan",
        state="Oyo",
        phone="+2348000000002",
        primary_courier_id=str(fez.id),
    )
    for hub in (hub_a, hub_b):
        current_domain.repository_for(Hub).add(hub)

    return {
        "courier_id": str(fez.id),
        "hub_a": str(hub_a.id),
        "hub_b": str(hub_b.id),
        "south_west": str(south_west.id),
        "north": str(north.id),
    }


def make_order_payload(hub_a: str, hub_b: str, external_id: int = 5001, **overrides) -> dict:
    """Commerce order: two lines from hub A (1kg, 2kg), one from hub B (0.5kg)."""
    payload = {
        "id": external_id,
        "status": "processing",
        "currency": "NGN",
        "customer_id": 77,
        "date_created_gmt": datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%S"),
        "billing": {
            "first_name": "Ada",
            "last_name": "Obi",
            "email": "ada@example.com",
            "phone": "08030000000",
        },
        "shipping": {"address_1": "3 Allen Avenue", "city": "Ikeja", "state": "Lagos"},
        "line_items": [
            {
                "product_id": 11,
                "name": "Kettle",
                "quantity": 1,
                "price": 10000,
                "total": "10000.00",
                "weight": "1",
                "meta_data": [{"key": "_hub_id", "value": hub_a}],
            },
            {
                "product_id": 12,
                "name": "Toaster",
                "quantity": 1,
                "price": 5000,
                "total": "5000.00",
                "weight": "2",
                "meta_data": [{"key": "_hub_id", "value": hub_a}],
            },
            {
                "product_id": 13,
                "name": "Mug",
                "quantity": 1,
                "price": 3000,
                "total": "3000.00",
                "weight": "0.5",
                "meta_data": [{"key": "_hub_id", "value": hub_b}],
            },
        ],
        "shipping_total": "6000.00",
        "total": "24000.00",
    }
    payload.update(overrides)
    return payload


@pytest.fixture()
def order_payload(reference_data):
    return make_order_payload(reference_data["hub_a"], reference_data["hub_b"])


@pytest.fixture()
def make_payload(reference_data):
    def _make(external_id: int = 5001, **overrides) -> dict:
        return make_order_payload(reference_data["hub_a"], reference_data["hub_b"], external_id, **overrides)

    return _make
