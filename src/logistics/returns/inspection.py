"""Inspection decisions and refund execution.

An approved refund return moves through REFUND_PROCESSING to either
REFUND_COMPLETED or REFUND_FAILED; it never stays in APPROVED. A failed
refund is saved before ``RefundFailed`` is raised, and ``retry_refund``
starts another attempt.
"""

import structlog
from protean.utils.globals import current_domain

from logistics.config import Settings
from logistics.errors import RefundFailed
from logistics.order.order import Order
from logistics.refunds.port import RefundConnector, RefundResult
from logistics.returns.return_request import ReturnRequest, ReturnStatus
from logistics.returns.shipments import save_return

logger = structlog.get_logger(__name__)


class InspectionDesk:
    def __init__(self, refunds: RefundConnector, settings: Settings):
        self.refunds = refunds
        self.settings = settings

    def decide(
        self,
        return_id: str,
        status: str,
        inspection_result: str | None = None,
        inspection_notes: str | None = None,
        approved_refund_amount: float | None = None,
    ) -> ReturnRequest:
        """Record the staff decision and, for approved refunds, pay the customer."""
        request = current_domain.repository_for(ReturnRequest).get(return_id)
        request.decide_inspection(
            status,
            inspection_result=inspection_result,
            inspection_notes=inspection_notes,
            approved_refund_amount=approved_refund_amount,
        )
        save_return(request)
        logger.info("Inspection decided", return_id=return_id, decision=request.status)

        if ReturnStatus(request.status) == ReturnStatus.APPROVED and request.wants_refund:
            return self._refund(request)
        return request

    def retry_refund(self, return_id: str) -> ReturnRequest:
        request = current_domain.repository_for(ReturnRequest).get(return_id)
        return self._refund(request)

    def _call_connector(self, order: Order, request: ReturnRequest) -> RefundResult:
        try:
            return self.refunds.create_refund(
                order.external_order_id,
                request.approved_refund_amount,
                request.refund_reason(),
            )
        except Exception as exc:
            logger.exception("Refund connector raised", return_id=str(request.id))
            return RefundResult(success=False, raw={"error": str(exc)}, failure_reason=str(exc))

    def _refund(self, request: ReturnRequest) -> ReturnRequest:
        order = current_domain.repository_for(Order).get(request.order_id)
        request.start_refund()
        save_return(request)

        result = self._call_connector(order, request)
        if result.success:
            request.complete_refund(
                amount=result.amount if result.amount is not None else request.approved_refund_amount,
                currency=result.currency or self.settings.refund_currency,
                reference=result.refund_id,
                raw=result.raw,
            )
            save_return(request)
            logger.info(
                "Refund completed",
                return_id=str(request.id),
                order_id=str(order.id),
                refund_reference=result.refund_id,
            )
            return request

        reason = result.failure_reason or "Refund failed"
        request.fail_refund(reason, raw=result.raw or {"error": reason})
        save_return(request)
        logger.error("Refund failed", return_id=str(request.id), order_id=str(order.id), reason=reason)
        raise RefundFailed(reason, return_id=str(request.id))
