"""Order ingestion from the commerce backend.

``OrderIngestion.ingest`` is idempotent on the external order id: a
redelivered webhook finds the existing order and does nothing else.
"""

import base64
import hashlib
import hmac
from dataclasses import dataclass
from datetime import UTC, datetime

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from logistics.config import Settings
from logistics.order.order import Order, PaymentStatus
from logistics.order.splitter import HubSplitter, LineItem
from logistics.order.sub_order import SubOrder

logger = structlog.get_logger(__name__)

_REQUIRED_FIELDS = (
    ("id",),
    ("billing", "first_name"),
    ("billing", "email"),
    ("shipping", "address_1"),
    ("shipping", "city"),
    ("shipping", "state"),
)

_PAID_COMMERCE_STATUSES = {"processing", "completed"}


@dataclass(frozen=True)
class IngestResult:
    order_id: str
    created: bool


def verify_signature(raw_body: bytes, signature: str | None, secret: str | None) -> bool:
    """Check a base64 HMAC-SHA256 webhook signature. Always True when no secret is configured."""
    if not secret:
        return True
    if not signature:
        return False
    digest = hmac.new(secret.encode(), raw_body, hashlib.sha256).digest()
    expected = base64.b64encode(digest).decode()
    return hmac.compare_digest(expected, signature.strip())


def _lookup(payload: dict, path: tuple[str, ...]):
    value = payload
    for key in path:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def _missing_fields(payload: dict) -> list[str]:
    missing = [".".join(path) for path in _REQUIRED_FIELDS if _lookup(payload, path) in (None, "")]
    line_items = payload.get("line_items")
    if not isinstance(line_items, list) or not line_items:
        missing.append("line_items")
    return missing


def _number(value, field: str, errors: dict, default: float = 0.0, cast=float):
    """``cast(value)``, or ``default`` when absent. Unreadable values are recorded in ``errors``."""
    if value in (None, ""):
        return default
    try:
        return cast(value)
    except (ValueError, TypeError):
        errors[field] = [f"is not a valid number: {value!r}"]
        return default


def parse_timestamp(value) -> datetime | None:
    """ISO-8601 timestamp as an aware datetime (naive values are UTC). None when absent or unreadable."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _meta_value(item: dict, key: str):
    for meta in item.get("meta_data") or []:
        if isinstance(meta, dict) and meta.get("key") == key:
            return meta.get("value")
    return None


def parse_line_items(payload: dict, settings: Settings) -> list[LineItem]:
    """Normalize commerce line items, rejecting negative weights and empty quantities."""
    items, errors = [], {}
    for index, raw in enumerate(payload.get("line_items") or []):
        field = f"line_items[{index}]"
        if not isinstance(raw, dict):
            errors[field] = ["must be an object"]
            continue

        quantity = _number(raw.get("quantity"), f"{field}.quantity", errors, default=0, cast=int)
        weight = _number(raw.get("weight"), f"{field}.weight", errors, default=settings.default_item_weight)
        if raw.get("price") not in (None, ""):
            price = _number(raw.get("price"), f"{field}.price", errors)
        else:
            total = _number(raw.get("total"), f"{field}.total", errors)
            price = total / quantity if quantity else 0.0

        if quantity < 1 and f"{field}.quantity" not in errors:
            errors[f"{field}.quantity"] = ["must be at least 1"]
        if weight < 0:
            errors[f"{field}.weight"] = ["must not be negative"]
        if price < 0:
            errors[f"{field}.price"] = ["must not be negative"]

        hub_id = raw.get("hub_id") or _meta_value(raw, settings.hub_meta_key)
        items.append(
            LineItem(
                name=raw.get("name") or f"Item {index + 1}",
                quantity=quantity,
                weight=weight,
                price=price,
                product_id=str(raw["product_id"]) if raw.get("product_id") is not None else None,
                sku=raw.get("sku"),
                hub_id=str(hub_id) if hub_id else None,
            )
        )
    if errors:
        raise ValidationError(errors)
    return items


class OrderIngestion:
    def __init__(self, splitter: HubSplitter, settings: Settings):
        self.splitter = splitter
        self.settings = settings

    def find_existing(self, external_order_id: str) -> Order | None:
        results = current_domain.repository_for(Order)._dao.query.filter(external_order_id=external_order_id).all()
        return results.first if results.items else None

    def ingest(self, payload: dict) -> IngestResult:
        missing = _missing_fields(payload)
        if missing:
            raise ValidationError({name: ["is required"] for name in missing})

        external_order_id = str(payload["id"])
        existing = self.find_existing(external_order_id)
        if existing is not None:
            logger.info("Order already ingested", external_order_id=external_order_id, order_id=str(existing.id))
            return IngestResult(order_id=str(existing.id), created=False)

        billing, shipping = payload["billing"], payload["shipping"]
        errors = {}
        total = _number(payload.get("total"), "total", errors)
        shipping_total = _number(payload.get("shipping_total"), "shipping_total", errors)
        if errors:
            raise ValidationError(errors)
        items = parse_line_items(payload, self.settings)

        shipments = self.splitter.split(items, shipping["state"], shipping["city"], shipping_total)

        commerce_status = (payload.get("status") or "").lower()
        order = Order.create(
            external_order_id=external_order_id,
            customer_id=str(payload["customer_id"]) if payload.get("customer_id") else None,
            customer_name=f"{billing.get('first_name', '')} {billing.get('last_name', '')}".strip(),
            customer_email=billing["email"],
            customer_phone=billing.get("phone"),
            shipping_address=shipping["address_1"],
            shipping_city=shipping["city"],
            shipping_state=shipping["state"],
            subtotal=round(total - shipping_total, 2),
            total=round(total, 2),
            shipping_fee_paid=round(shipping_total, 2),
            currency=payload.get("currency"),
            payment_status=(
                PaymentStatus.PAID.value if commerce_status in _PAID_COMMERCE_STATUSES else PaymentStatus.PENDING.value
            ),
            commerce_status=commerce_status or None,
            sub_order_count=len(shipments),
            notes=payload.get("customer_note") or None,
            ordered_at=parse_timestamp(payload.get("date_created_gmt") or payload.get("date_created")),
        )
        try:
            current_domain.repository_for(Order).add(order)
        except ValidationError as exc:
            # A concurrent delivery of the same webhook saved the order first
            existing = self.find_existing(external_order_id)
            if "external_order_id" not in exc.messages or existing is None:
                raise
            logger.info("Order ingested concurrently", external_order_id=external_order_id, order_id=str(existing.id))
            return IngestResult(order_id=str(existing.id), created=False)
        order_id = str(order.id)

        sub_repo = current_domain.repository_for(SubOrder)
        for shipment in shipments:
            try:
                sub_repo.add(SubOrder.create(order_id, shipment))
            except Exception:
                # The order row stays; a redelivery will not recreate it
                logger.exception(
                    "Sub-order persistence failed, order needs manual reconciliation",
                    order_id=order_id,
                    external_order_id=external_order_id,
                    hub_id=shipment.hub_id,
                )

        logger.info(
            "Order ingested",
            order_id=order_id,
            external_order_id=external_order_id,
            hub_count=len(shipments),
        )
        return IngestResult(order_id=order_id, created=True)
