"""WooCommerce REST refund connector (httpx, basic auth)."""

import httpx
import structlog

from logistics.config import Settings
from logistics.refunds.port import RefundConnector, RefundResult

logger = structlog.get_logger(__name__)


class WooCommerceRefunds(RefundConnector):
    def __init__(
        self,
        api_url: str,
        consumer_key: str,
        consumer_secret: str,
        default_currency: str = "NGN",
        timeout: float = 20.0,
        client: httpx.Client | None = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.default_currency = default_currency
        self._auth = httpx.BasicAuth(consumer_key, consumer_secret)
        self._client = client or httpx.Client(timeout=timeout)

    @classmethod
    def from_settings(cls, settings: Settings, client: httpx.Client | None = None) -> "WooCommerceRefunds":
        return cls(
            api_url=settings.commerce_api_url,
            consumer_key=settings.commerce_consumer_key,
            consumer_secret=settings.commerce_consumer_secret,
            default_currency=settings.refund_currency,
            timeout=settings.commerce_timeout_seconds,
            client=client,
        )

    def close(self) -> None:
        self._client.close()

    def create_refund(self, order_id: str, amount: float, reason: str) -> RefundResult:
        url = f"{self.api_url}/orders/{order_id}/refunds"
        payload = {"amount": f"{amount:.2f}", "api_refund": True, "reason": reason}
        try:
            response = self._client.post(url, json=payload, auth=self._auth)
        except httpx.HTTPError as exc:
            logger.error("Refund request failed", order_id=order_id, error=str(exc))
            return RefundResult(success=False, raw={"error": str(exc)}, failure_reason=str(exc))

        try:
            body = response.json()
        except ValueError:
            body = {"body": response.text}

        if response.is_success and isinstance(body, dict) and body.get("id"):
            return RefundResult(
                success=True,
                refund_id=str(body["id"]),
                status="completed",
                amount=float(body.get("amount") or amount),
                currency=body.get("currency") or self.default_currency,
                raw=body,
            )

        message = body.get("message") if isinstance(body, dict) else None
        reason_text = message or f"Refund rejected (HTTP {response.status_code})"
        logger.error("Refund rejected", order_id=order_id, status_code=response.status_code, reason=reason_text)
        return RefundResult(
            success=False,
            status="failed",
            raw={"error": reason_text, "status_code": response.status_code, "response": body},
            failure_reason=reason_text,
        )
