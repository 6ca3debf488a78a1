"""Fez Delivery adapter (HTTPS/JSON over httpx).

Tokens are cached per environment on the adapter instance. A 401 drops the
cached token, authenticates again and retries the request once.
"""

from datetime import datetime

import httpx
import structlog

from logistics.config import CourierEnvironment, Settings
from logistics.courier.port import (
    CourierCredentials,
    CourierPort,
    CreatedShipment,
    ShipmentRequest,
    ShippingQuote,
    TrackingHistoryEntry,
    TrackingSnapshot,
)
from logistics.courier.responses import AmbiguousSuccess, ProviderError, classify_shipment_response
from logistics.errors import CourierUnavailable

logger = structlog.get_logger(__name__)

BASE_URLS = {
    CourierEnvironment.SANDBOX: "https://apisandbox.fezdelivery.co/v1",
    CourierEnvironment.LIVE: "https://api.fezdelivery.co/v1",
}


def _json(response: httpx.Response):
    try:
        return response.json()
    except ValueError:
        return None


def _parse_time(value) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


class FezCourier(CourierPort):
    def __init__(
        self,
        user_id: str,
        password: str,
        env: CourierEnvironment = CourierEnvironment.SANDBOX,
        timeout: float = 15.0,
        quote_timeout: float = 5.0,
        client: httpx.Client | None = None,
    ):
        self.user_id = user_id
        self.password = password
        self.env = env
        self.quote_timeout = quote_timeout
        self._client = client or httpx.Client(timeout=timeout)
        self._credentials: dict[CourierEnvironment, CourierCredentials] = {}

    @classmethod
    def from_settings(cls, settings: Settings, client: httpx.Client | None = None) -> "FezCourier":
        return cls(
            user_id=settings.courier_user_id,
            password=settings.courier_password,
            env=settings.courier_env,
            timeout=settings.courier_timeout_seconds,
            quote_timeout=settings.quote_timeout_seconds,
            client=client,
        )

    def close(self) -> None:
        self._client.close()

    @property
    def base_url(self) -> str:
        return BASE_URLS[self.env]

    # -------------------------------------------------------------------
    # HTTP plumbing
    # -------------------------------------------------------------------
    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return self._client.request(method, f"{self.base_url}{path}", **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("Courier request failed", path=path, error=str(exc))
            raise CourierUnavailable(f"Courier unreachable: {exc}", path=path) from exc

    def _authorized(self, method: str, path: str, **kwargs) -> httpx.Response:
        response = self._send_authorized(method, path, **kwargs)
        if response.status_code == 401:
            logger.info("Courier session expired, authenticating again", path=path)
            self._credentials.pop(self.env, None)
            response = self._send_authorized(method, path, **kwargs)
            if response.status_code == 401:
                self._credentials.pop(self.env, None)
                raise CourierUnavailable("Courier rejected the session token", path=path)
        return response

    def _send_authorized(self, method: str, path: str, **kwargs) -> httpx.Response:
        credentials = self.authenticate()
        headers = {"Authorization": f"Bearer {credentials.token}", "secret-key": credentials.secret}
        return self._request(method, path, headers=headers, **kwargs)

    # -------------------------------------------------------------------
    # Port implementation
    # -------------------------------------------------------------------
    def authenticate(self, env: CourierEnvironment | None = None) -> CourierCredentials:
        env = env or self.env
        cached = self._credentials.get(env)
        if cached is not None:
            return cached

        try:
            response = self._client.post(
                f"{BASE_URLS[env]}/user/authenticate",
                json={"user_id": self.user_id, "password": self.password},
            )
        except httpx.HTTPError as exc:
            raise CourierUnavailable(f"Courier authentication failed: {exc}", env=env.value) from exc

        body = _json(response) or {}
        token = (body.get("authDetails") or {}).get("authToken")
        if response.status_code >= 400 or str(body.get("status", "")).lower() != "success" or not token:
            message = body.get("description") or f"HTTP {response.status_code}"
            logger.error("Courier authentication rejected", env=env.value, reason=message)
            raise CourierUnavailable(f"Courier authentication failed: {message}", env=env.value)

        credentials = CourierCredentials(token=token, secret=(body.get("orgDetails") or {}).get("secret-key", ""))
        self._credentials[env] = credentials
        return credentials

    def quote(self, origin_state: str, destination_state: str, weight: float) -> ShippingQuote:
        response = self._authorized(
            "POST",
            "/order/cost",
            json={"state": destination_state, "pickUpState": origin_state, "weight": weight},
            timeout=self.quote_timeout,
        )
        body = _json(response)
        if not isinstance(body, dict):
            body = {}
        if response.status_code >= 400 or not body:
            raise CourierUnavailable(
                body.get("description") or f"No quote available (HTTP {response.status_code})",
                destination_state=destination_state,
            )

        try:
            cost = body.get("Cost") if isinstance(body.get("Cost"), dict) else body
            amount = cost.get("cost") or cost.get("total") or cost.get("amount")
            if amount is None:
                raise ValueError("quote has no cost")
            days = cost.get("delivery_days") or cost.get("deliveryDays")
            return ShippingQuote(amount=float(amount), delivery_days=int(days) if days else None)
        except (ValueError, TypeError, AttributeError) as exc:
            logger.warning("Unreadable courier quote", destination_state=destination_state, body=body)
            raise CourierUnavailable(
                body.get("description") or f"Unreadable quote: {exc}",
                destination_state=destination_state,
            ) from exc

    def _shipment_payload(self, request: ShipmentRequest) -> dict:
        payload = {
            "recipientAddress": request.recipient.address,
            "recipientState": request.recipient.state,
            "recipientName": request.recipient.name,
            "recipientPhone": request.recipient.phone,
            "uniqueID": request.reference,
            "BatchID": request.reference,
            "valueOfItem": str(round(request.declared_value, 2)),
            "weight": max(1, round(request.weight)),
            "itemDescription": request.description,
            "pickUpState": request.sender.state,
            "pickUpAddress": request.sender.address,
        }
        if request.is_return:
            payload["isReturn"] = True
            payload["senderName"] = request.sender.name
            payload["senderPhone"] = request.sender.phone
        return payload

    def create_shipment(self, request: ShipmentRequest) -> CreatedShipment:
        response = self._authorized("POST", "/order", json=[self._shipment_payload(request)])
        outcome = classify_shipment_response(response.status_code, _json(response))

        if isinstance(outcome, ProviderError):
            logger.error("Courier rejected shipment", reference=request.reference, reason=outcome.message)
            raise CourierUnavailable(outcome.message, reference=request.reference)
        if isinstance(outcome, AmbiguousSuccess):
            logger.warning(
                "Courier reported an error but issued an order number",
                reference=request.reference,
                order_number=outcome.id,
                message=outcome.message,
            )
        return CreatedShipment(external_order_id=outcome.reference or outcome.id, tracking_id=outcome.id)

    def fetch_tracking(self, tracking_id: str) -> TrackingSnapshot:
        response = self._authorized("GET", f"/order/track/{tracking_id}")
        body = _json(response) or {}
        order = body.get("order") or {}
        if response.status_code >= 400 or not order.get("orderStatus"):
            raise CourierUnavailable(
                body.get("description") or f"Tracking unavailable (HTTP {response.status_code})",
                tracking_id=tracking_id,
            )

        events = [
            TrackingHistoryEntry(
                status=entry.get("orderStatus", ""),
                description=entry.get("statusDescription"),
                occurred_at=_parse_time(entry.get("statusCreationDate")),
            )
            for entry in body.get("history") or []
        ]
        return TrackingSnapshot(status=order["orderStatus"], events=events, raw=body)
