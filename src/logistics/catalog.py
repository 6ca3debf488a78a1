"""Reference data: hubs, couriers, zones and shipping rates.

These aggregates are maintained by back-office tooling; the orchestration
core only reads them, through ``ReferenceCatalog``.
"""

import json

from protean.fields import Boolean, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from logistics.domain import logistics


@logistics.aggregate
class Courier:
    name = String(required=True, max_length=100)
    code = String(max_length=50)
    active = Boolean(default=True)


@logistics.aggregate
class Hub:
    name = String(required=True, max_length=150)
    address = String(max_length=300)
    city = String(max_length=100)
    state = String(max_length=100)
    phone = String(max_length=30)
    primary_courier_id = Identifier()
    active = Boolean(default=True)


@logistics.aggregate
class Zone:
    name = String(required=True, max_length=100)
    states = Text(required=True)  # JSON list of state names
    position = Integer(default=0)

    def covers(self, state: str) -> bool:
        wanted = (state or "").strip().lower()
        return any(s.strip().lower() == wanted for s in json.loads(self.states or "[]"))


@logistics.aggregate
class ShippingRate:
    zone_id = Identifier(required=True)
    hub_id = Identifier()
    courier_id = Identifier()
    base_rate = Float(required=True, min_value=0.0)
    per_kg_rate = Float(default=0.0, min_value=0.0)
    vat_percentage = Float(default=7.5, min_value=0.0)
    min_weight_threshold = Float(default=0.0, min_value=0.0)
    delivery_timeline_days = Integer()
    active = Boolean(default=True)


class ReferenceCatalog:
    """Read-only view over the reference aggregates."""

    def zones(self) -> list[Zone]:
        """All zones in catalog order."""
        zones = current_domain.repository_for(Zone)._dao.query.all().items
        return sorted(zones, key=lambda z: (z.position or 0, z.name))

    def resolve_zone(self, state: str) -> Zone | None:
        """Zone whose state list contains ``state``; the first zone when none matches."""
        zones = self.zones()
        if not zones:
            return None
        return next((z for z in zones if z.covers(state)), zones[0])

    def hubs(self) -> list[Hub]:
        hubs = current_domain.repository_for(Hub)._dao.query.filter(active=True).all().items
        return sorted(hubs, key=lambda h: h.name)

    def hub(self, hub_id: str) -> Hub | None:
        return next((h for h in self.hubs() if str(h.id) == str(hub_id)), None)

    def courier(self, courier_id: str | None) -> Courier | None:
        if not courier_id:
            return None
        results = current_domain.repository_for(Courier)._dao.query.filter(id=str(courier_id), active=True).all()
        return results.first

    def rate_for(self, hub_id: str, zone_id: str, courier_id: str | None = None) -> ShippingRate | None:
        """Most specific active rate: (hub, zone, courier), then (hub, zone), then zone only."""
        rates = current_domain.repository_for(ShippingRate)._dao.query.filter(zone_id=str(zone_id), active=True).all()
        candidates = rates.items
        if courier_id:
            exact = [r for r in candidates if r.hub_id == str(hub_id) and r.courier_id == str(courier_id)]
            if exact:
                return exact[0]
        for_hub = [r for r in candidates if r.hub_id == str(hub_id)]
        if for_hub:
            return for_hub[0]
        zone_wide = [r for r in candidates if not r.hub_id]
        return zone_wide[0] if zone_wide else None

    def courier_for_hub(self, hub: Hub, zone_id: str | None = None) -> Courier | None:
        """The hub's primary courier, else the courier named by its best rate."""
        primary = self.courier(hub.primary_courier_id)
        if primary is not None:
            return primary
        if zone_id is None:
            return None
        rate = self.rate_for(str(hub.id), zone_id)
        return self.courier(rate.courier_id) if rate else None
