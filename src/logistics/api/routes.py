"""FastAPI routes for the logistics service.

The two inbound webhooks acknowledge with 200 even when processing fails, so
senders do not retry forever; failures are logged instead. Every other route
surfaces errors to the caller. Routes that call the courier or refund APIs are
plain functions, so FastAPI runs them in its threadpool.
"""

import json

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from protean.utils.globals import current_domain

from logistics.api.schemas import (
    AdvanceReturnStatusRequest,
    CreateReturnRequest,
    IngestResponse,
    InspectionDecisionRequest,
    OrderResponse,
    ReturnResponse,
    StatusResponse,
    SubmitTrackingRequest,
    SubOrderSummary,
    SyncSummaryResponse,
)
from logistics.order.ingestion import parse_timestamp, verify_signature
from logistics.order.order import Order
from logistics.order.sub_order import SubOrder
from logistics.order.tracking import ApplyCourierStatus, UpdateOutcome
from logistics.returns.progress import AdvanceReturnStatus, SubmitReturnTracking
from logistics.returns.return_request import ReturnRequest
from logistics.returns.shipments import shipments_for
from logistics.services import Services

logger = structlog.get_logger(__name__)


def get_services(request: Request) -> Services:
    return request.app.state.services


def _sub_order_summary(sub_order: SubOrder) -> SubOrderSummary:
    return SubOrderSummary(
        sub_order_id=str(sub_order.id),
        hub_id=str(sub_order.hub_id),
        courier_id=str(sub_order.courier_id) if sub_order.courier_id else None,
        status=sub_order.status,
        tracking_number=sub_order.tracking_number,
        total_weight=sub_order.total_weight,
        real_shipping_cost=sub_order.real_shipping_cost,
        allocated_shipping_fee=sub_order.allocated_shipping_fee,
        shipping_profit_loss=sub_order.shipping_profit_loss,
        cost_source=sub_order.cost_source,
        delivery_timeline_days=sub_order.delivery_timeline_days,
    )


def _return_response(request: ReturnRequest) -> ReturnResponse:
    shipments = shipments_for(str(request.id))
    return ReturnResponse(
        return_id=str(request.id),
        return_code=request.return_code,
        order_id=str(request.order_id),
        method=request.method,
        preferred_resolution=request.preferred_resolution,
        status=request.status,
        tracking_number=shipments[0].tracking_number if shipments else None,
        pickup_error=request.pickup_error,
        approved_refund_amount=request.approved_refund_amount,
        refund_amount=request.refund_amount,
        refund_currency=request.refund_currency,
        refund_reference=request.refund_reference,
    )


# ---------------------------------------------------------------------------
# Webhooks
# ---------------------------------------------------------------------------
webhook_router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@webhook_router.post("/commerce/orders", response_model=StatusResponse)
async def commerce_order_webhook(
    request: Request,
    x_wc_webhook_signature: str = Header(default=""),
    services: Services = Depends(get_services),
) -> StatusResponse:
    """Receive an order-created webhook from the commerce backend."""
    raw_body = await request.body()
    if not verify_signature(raw_body, x_wc_webhook_signature, services.settings.commerce_webhook_secret):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    try:
        payload = json.loads(raw_body or b"{}")
        result = await run_in_threadpool(services.ingestion.ingest, payload)
    except Exception as exc:
        logger.exception("Commerce order webhook failed", error=str(exc))
        return StatusResponse(status="failed", detail=str(exc))
    return StatusResponse(status="created" if result.created else "duplicate", detail=result.order_id)


@webhook_router.post("/courier", response_model=StatusResponse)
async def courier_webhook(request: Request) -> StatusResponse:
    """Receive a courier status update. Always acknowledged."""
    try:
        body = json.loads(await request.body() or b"{}")
        tracking_number = body.get("orderNo") or body.get("tracking_number")
        if not tracking_number:
            logger.warning("Courier webhook without tracking number", body=body)
            return StatusResponse(status=UpdateOutcome.IGNORED, detail="Missing tracking number")

        command = ApplyCourierStatus(
            tracking_number=str(tracking_number),
            courier_status=body.get("orderStatus") or body.get("status"),
            description=body.get("statusDescription"),
            occurred_at=parse_timestamp(body.get("deliveryDate")),
            raw_data=json.dumps(body),
        )
        outcome = current_domain.process(command, asynchronous=False)
    except Exception as exc:
        logger.exception("Courier webhook processing failed", error=str(exc))
        return StatusResponse(status="failed", detail=str(exc))

    detail = "Order not found in system" if outcome == UpdateOutcome.NOT_FOUND else None
    return StatusResponse(status=outcome, detail=detail)


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=IngestResponse)
def ingest_order(payload: dict, services: Services = Depends(get_services)) -> IngestResponse:
    """Ingest an order from an internal caller. Errors are returned, not swallowed."""
    result = services.ingestion.ingest(payload)
    return IngestResponse(order_id=result.order_id, created=result.created)


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str) -> OrderResponse:
    order = current_domain.repository_for(Order).get(order_id)
    sub_orders = current_domain.repository_for(SubOrder)._dao.query.filter(order_id=order_id).all().items
    return OrderResponse(
        order_id=str(order.id),
        external_order_id=order.external_order_id,
        overall_status=order.overall_status,
        payment_status=order.payment_status,
        subtotal=order.subtotal,
        total=order.total,
        shipping_fee_paid=order.shipping_fee_paid,
        sub_orders=[_sub_order_summary(s) for s in sub_orders],
    )


# ---------------------------------------------------------------------------
# Sub-orders
# ---------------------------------------------------------------------------
sub_order_router = APIRouter(prefix="/sub-orders", tags=["sub-orders"])


@sub_order_router.post("/{sub_order_id}/shipment", response_model=SubOrderSummary)
def create_shipment(sub_order_id: str, services: Services = Depends(get_services)) -> SubOrderSummary:
    """Book the courier for a sub-order (idempotent)."""
    return _sub_order_summary(services.booking.create_shipment(sub_order_id))


@sub_order_router.post("/{sub_order_id}/tracking/refresh", response_model=StatusResponse)
def refresh_tracking(sub_order_id: str, services: Services = Depends(get_services)) -> StatusResponse:
    """Pull the courier's current status for a sub-order."""
    return StatusResponse(status=services.booking.refresh_tracking(sub_order_id))


# ---------------------------------------------------------------------------
# Returns
# ---------------------------------------------------------------------------
return_router = APIRouter(prefix="/returns", tags=["returns"])


@return_router.post("", status_code=201, response_model=ReturnResponse)
def create_return(body: CreateReturnRequest, services: Services = Depends(get_services)) -> ReturnResponse:
    """Open a customer return."""
    request = services.returns.open_return(
        order_id=body.order_id,
        method=body.method,
        preferred_resolution=body.preferred_resolution,
        reason=body.reason,
        customer_id=body.customer_id,
        customer_email=body.customer_email,
        evidence=body.evidence,
        items=body.items,
        sub_order_id=body.sub_order_id,
    )
    return _return_response(request)


@return_router.get("/{return_id}", response_model=ReturnResponse)
async def get_return(return_id: str) -> ReturnResponse:
    return _return_response(current_domain.repository_for(ReturnRequest).get(return_id))


@return_router.post("/{return_id}/pickup", response_model=ReturnResponse)
def book_pickup(return_id: str, services: Services = Depends(get_services)) -> ReturnResponse:
    """Retry a deferred courier pickup booking."""
    return _return_response(services.returns.book_pickup(return_id))


@return_router.patch("/{return_id}/tracking", response_model=StatusResponse)
async def submit_tracking(return_id: str, body: SubmitTrackingRequest) -> StatusResponse:
    """Customer submits the courier tracking number for a drop-off return."""
    command = SubmitReturnTracking(return_id=return_id, tracking_number=body.tracking_number)
    return StatusResponse(status=current_domain.process(command, asynchronous=False))


@return_router.patch("/{return_id}/status", response_model=StatusResponse)
async def advance_status(return_id: str, body: AdvanceReturnStatusRequest) -> StatusResponse:
    """Staff record arrival at the hub or the start of inspection."""
    command = AdvanceReturnStatus(return_id=return_id, status=body.status)
    return StatusResponse(status=current_domain.process(command, asynchronous=False))


@return_router.post("/{return_id}/inspection", response_model=ReturnResponse)
def decide_inspection(
    return_id: str,
    body: InspectionDecisionRequest,
    services: Services = Depends(get_services),
) -> ReturnResponse:
    """Staff inspection decision. Approved refunds are paid immediately."""
    request = services.inspection.decide(
        return_id,
        body.status,
        inspection_result=body.inspection_result,
        inspection_notes=body.inspection_notes,
        approved_refund_amount=body.approved_refund_amount,
    )
    return _return_response(request)


@return_router.post("/{return_id}/refund/retry", response_model=ReturnResponse)
def retry_refund(return_id: str, services: Services = Depends(get_services)) -> ReturnResponse:
    return _return_response(services.inspection.retry_refund(return_id))


@return_router.post("/sync", response_model=SyncSummaryResponse)
def sync_returns(services: Services = Depends(get_services)) -> SyncSummaryResponse:
    """Reconcile in-flight return shipments with the courier now."""
    summary = services.reconciler.run()
    return SyncSummaryResponse(
        checked=summary.checked,
        updated=summary.updated,
        skipped=summary.skipped,
        failed=summary.failed,
    )
