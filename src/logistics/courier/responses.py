"""Classification of courier create-shipment responses.

Some couriers answer a create-shipment call with an error envelope that still
carries the identifier of a shipment they did create (typically on a repeated
submission). Treating that as a failure makes the caller book the parcel a
second time, so ``classify_shipment_response`` reports it as
``AmbiguousSuccess`` and callers handle it exactly like ``Success``.
"""

import re
from dataclasses import dataclass

_ERROR_MARKERS = (
    "error",
    "cannot",
    "failed",
    "invalid",
    "wrong",
    "something went wrong",
    "already exists",
)
_ORDER_NUMBER = re.compile(r"^[A-Za-z0-9_-]+$")
_ORDER_IN_MESSAGE = re.compile(r"order\s+([A-Za-z0-9_-]+)", re.IGNORECASE)


@dataclass(frozen=True)
class Success:
    id: str
    reference: str | None = None


@dataclass(frozen=True)
class AmbiguousSuccess:
    id: str
    reference: str | None = None
    message: str = ""


@dataclass(frozen=True)
class ProviderError:
    message: str


def is_valid_order_number(value) -> bool:
    """True for a plausible courier order number, False for error text."""
    if not isinstance(value, str):
        return False
    candidate = value.strip()
    if not candidate or len(candidate) >= 50:
        return False
    lowered = candidate.lower()
    if any(marker in lowered for marker in _ERROR_MARKERS):
        return False
    return bool(_ORDER_NUMBER.match(candidate))


def extract_order_number(message: str | None) -> str | None:
    """Pull ``ABC123`` out of messages like ``Order ABC123 already exists``."""
    for match in _ORDER_IN_MESSAGE.finditer(message or ""):
        candidate = match.group(1)
        # Order numbers always carry digits; this skips words like "already"
        if is_valid_order_number(candidate) and any(ch.isdigit() for ch in candidate):
            return candidate
    return None


def _first_order_number(body: dict) -> tuple[str, str] | None:
    order_nos = body.get("orderNos")
    if not isinstance(order_nos, dict):
        return None
    for reference, order_no in order_nos.items():
        if is_valid_order_number(order_no):
            return order_no, reference
    return None


def classify_shipment_response(status_code: int, body) -> Success | AmbiguousSuccess | ProviderError:
    if not isinstance(body, dict):
        return ProviderError(message=f"Unexpected courier response (HTTP {status_code})")

    message = str(body.get("description") or body.get("message") or "")
    created = _first_order_number(body)
    reported_ok = 200 <= status_code < 300 and str(body.get("status", "")).lower() == "success"

    if reported_ok and created:
        return Success(id=created[0], reference=created[1])
    if created:
        return AmbiguousSuccess(id=created[0], reference=created[1], message=message)

    recovered = extract_order_number(message) if "already exists" in message.lower() else None
    if recovered:
        return AmbiguousSuccess(id=recovered, message=message)

    if reported_ok:
        return ProviderError(message="Courier accepted the request but returned no order number")
    return ProviderError(message=message or f"Courier request failed (HTTP {status_code})")
