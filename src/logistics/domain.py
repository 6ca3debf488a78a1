"""Logistics bounded context: multi-hub order fulfillment and returns.

Splits commerce orders into per-hub sub-orders, tracks each shipment through
an external courier, and drives the return-and-refund lifecycle. Uses CQRS
because couriers and the commerce backend own most of the external state.
"""

from protean.domain import Domain

logistics = Domain(name="logistics")
