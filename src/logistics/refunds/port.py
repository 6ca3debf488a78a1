"""Refund connector port.

Issues a refund against the commerce backend order. Adapters report the
outcome as a ``RefundResult``; they never raise for a declined refund.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class RefundResult:
    """Result of a refund attempt."""

    success: bool
    refund_id: str | None = None
    status: str | None = None
    amount: float | None = None
    currency: str | None = None
    raw: dict = field(default_factory=dict)
    failure_reason: str | None = None


class RefundConnector(ABC):
    @abstractmethod
    def create_refund(self, order_id: str, amount: float, reason: str) -> RefundResult:
        """Refund ``amount`` on the commerce order ``order_id``."""
        ...

    def close(self) -> None:
        """Release held connections. Nothing to release by default."""
