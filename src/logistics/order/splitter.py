"""Hub splitter and shipping allocator.

Groups an order's lines by fulfillment hub, prices each hub's parcel and
spreads the shipping fee the customer paid across the hubs.

Pricing tries a live courier quote first. When the courier cannot quote, the
rate table is used::

    cost     = base_rate + extra_kg × per_kg_rate
    extra_kg = whole kilograms above min_weight_threshold
    real     = cost + cost × vat_percentage / 100
"""

import math
from collections import OrderedDict
from dataclasses import dataclass, field

import structlog

from logistics.catalog import ReferenceCatalog
from logistics.config import AllocationPolicy, Settings
from logistics.courier.port import CourierPort
from logistics.errors import CourierUnavailable, NoFulfillableItems, NoZoneConfigured
from logistics.order.sub_order import CostSource

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class LineItem:
    name: str
    quantity: int
    weight: float
    price: float
    product_id: str | None = None
    sku: str | None = None
    hub_id: str | None = None

    @property
    def line_weight(self) -> float:
        return self.weight * self.quantity

    @property
    def subtotal(self) -> float:
        return self.price * self.quantity


@dataclass
class HubShipment:
    hub_id: str
    hub_name: str
    courier_id: str
    courier_name: str
    zone_id: str
    items: list[LineItem] = field(default_factory=list)
    total_weight: float = 0.0
    items_total: float = 0.0
    real_cost: float = 0.0
    cost_source: str = CostSource.DEFAULT_RATE.value
    delivery_days: int | None = None
    allocated_fee: float = 0.0
    profit_loss: float = 0.0


def rate_table_cost(
    total_weight: float,
    base_rate: float,
    per_kg_rate: float,
    vat_percentage: float,
    min_weight_threshold: float = 0.0,
) -> float:
    """VAT-inclusive shipping cost from a rate-table row."""
    # Epsilon keeps float noise like 2.9999999 from losing a kilogram
    extra_kg = max(0, math.floor(total_weight - min_weight_threshold + 1e-9))
    cost = base_rate + extra_kg * per_kg_rate
    vat = cost * vat_percentage / 100
    return round(cost + vat, 2)


def allocate_shipping(customer_paid: float, real_costs: list[float], policy: AllocationPolicy) -> list[float]:
    """Split ``customer_paid`` across hubs; the last hub absorbs the rounding remainder."""
    if not real_costs:
        return []
    total_real = sum(real_costs)
    if policy == AllocationPolicy.PROPORTIONAL and total_real > 0:
        shares = [customer_paid * cost / total_real for cost in real_costs]
    else:
        shares = [customer_paid / len(real_costs)] * len(real_costs)
    allocated = [round(share, 2) for share in shares[:-1]]
    allocated.append(round(customer_paid - sum(allocated), 2))
    return allocated


class HubSplitter:
    def __init__(self, catalog: ReferenceCatalog, courier: CourierPort, settings: Settings):
        self.catalog = catalog
        self.courier = courier
        self.settings = settings

    def _default_hub_id(self, destination_state: str) -> str | None:
        if self.settings.default_hub_id:
            return self.settings.default_hub_id
        hubs = self.catalog.hubs()
        if not hubs:
            return None
        wanted = (destination_state or "").strip().lower()
        local = next((h for h in hubs if (h.state or "").strip().lower() == wanted), None)
        return str((local or hubs[0]).id)

    def _group_by_hub(self, items: list[LineItem], destination_state: str) -> "OrderedDict[str, list[LineItem]]":
        groups: OrderedDict[str, list[LineItem]] = OrderedDict()
        default_hub_id = None
        for item in items:
            hub_id = item.hub_id
            if not hub_id:
                default_hub_id = default_hub_id or self._default_hub_id(destination_state)
                hub_id = default_hub_id
            if hub_id:
                groups.setdefault(str(hub_id), []).append(item)
            else:
                logger.warning("Item has no hub and no default hub exists", item=item.name)
        return groups

    def _price(self, shipment: HubShipment, hub, destination_state: str) -> None:
        try:
            quote = self.courier.quote(hub.state, destination_state, shipment.total_weight)
        except CourierUnavailable as exc:
            logger.warning(
                "Live quote unavailable, using rate table",
                hub_id=shipment.hub_id,
                destination_state=destination_state,
                reason=exc.message,
            )
        else:
            shipment.real_cost = round(quote.amount, 2)
            shipment.cost_source = CostSource.LIVE_QUOTE.value
            shipment.delivery_days = quote.delivery_days or self.settings.default_delivery_days
            return

        rate = self.catalog.rate_for(shipment.hub_id, shipment.zone_id, shipment.courier_id)
        if rate is not None:
            shipment.real_cost = rate_table_cost(
                shipment.total_weight,
                rate.base_rate,
                rate.per_kg_rate or 0.0,
                rate.vat_percentage or 0.0,
                rate.min_weight_threshold or 0.0,
            )
            shipment.cost_source = CostSource.RATE_TABLE.value
            shipment.delivery_days = rate.delivery_timeline_days or self.settings.default_delivery_days
            return

        shipment.real_cost = rate_table_cost(
            shipment.total_weight,
            self.settings.fallback_base_rate,
            self.settings.fallback_per_kg_rate,
            self.settings.fallback_vat_percentage,
            self.settings.min_weight_threshold,
        )
        shipment.cost_source = CostSource.DEFAULT_RATE.value
        shipment.delivery_days = self.settings.default_delivery_days

    def split(
        self,
        items: list[LineItem],
        destination_state: str,
        destination_city: str,
        customer_paid_shipping: float,
    ) -> list[HubShipment]:
        """One priced ``HubShipment`` per hub that can ship part of the order."""
        zones = self.catalog.zones()
        if not zones:
            raise NoZoneConfigured("No shipping zones are configured")
        zone = self.catalog.resolve_zone(destination_state)
        if not zone.covers(destination_state):
            logger.warning(
                "No zone covers destination state, using first zone",
                destination_state=destination_state,
                zone=zone.name,
            )

        shipments = []
        for hub_id, hub_items in self._group_by_hub(items, destination_state).items():
            hub = self.catalog.hub(hub_id)
            if hub is None:
                logger.warning("Unknown or inactive hub, dropping its items", hub_id=hub_id, item_count=len(hub_items))
                continue
            courier = self.catalog.courier_for_hub(hub, str(zone.id))
            if courier is None:
                logger.warning("No courier assigned to hub, dropping its items", hub_id=hub_id, hub=hub.name)
                continue

            shipment = HubShipment(
                hub_id=hub_id,
                hub_name=hub.name,
                courier_id=str(courier.id),
                courier_name=courier.name,
                zone_id=str(zone.id),
                items=list(hub_items),
                total_weight=round(sum(i.line_weight for i in hub_items), 3),
                items_total=round(sum(i.subtotal for i in hub_items), 2),
            )
            self._price(shipment, hub, destination_state)
            shipments.append(shipment)

        if not shipments:
            raise NoFulfillableItems("No order item can be shipped from a configured hub")

        allocations = allocate_shipping(
            customer_paid_shipping,
            [s.real_cost for s in shipments],
            self.settings.allocation_policy,
        )
        for shipment, allocated in zip(shipments, allocations):
            shipment.allocated_fee = allocated
            shipment.profit_loss = round(allocated - shipment.real_cost, 2)

        logger.info(
            "Order split across hubs",
            destination_state=destination_state,
            destination_city=destination_city,
            hub_count=len(shipments),
            zone=zone.name,
        )
        return shipments
