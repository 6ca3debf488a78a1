"""Fake refund connector for tests and development."""

from uuid import uuid4

from logistics.refunds.port import RefundConnector, RefundResult


class FakeRefunds(RefundConnector):
    """Refunds always succeed unless configured otherwise."""

    def __init__(self, currency: str = "NGN"):
        self.currency = currency
        self.should_succeed = True
        self.failure_reason = "Refund declined"
        self.calls: list[dict] = []
        self.closed = False

    def configure(self, should_succeed: bool = True, failure_reason: str = "Refund declined"):
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def close(self) -> None:
        self.closed = True

    def create_refund(self, order_id: str, amount: float, reason: str) -> RefundResult:
        self.calls.append({"order_id": order_id, "amount": amount, "reason": reason})
        if not self.should_succeed:
            return RefundResult(
                success=False,
                status="failed",
                raw={"error": self.failure_reason},
                failure_reason=self.failure_reason,
            )
        refund_id = f"fake-refund-{uuid4().hex[:8]}"
        return RefundResult(
            success=True,
            refund_id=refund_id,
            status="completed",
            amount=amount,
            currency=self.currency,
            raw={"id": refund_id, "amount": f"{amount:.2f}", "currency": self.currency},
        )
