"""Pydantic API schemas for the logistics service.

These are the external API contracts. Routes translate them into calls on
the domain components and commands.
"""

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------
class CreateReturnRequest(BaseModel):
    order_id: str
    method: str
    preferred_resolution: str
    reason: str
    customer_id: str | None = None
    customer_email: str | None = None
    sub_order_id: str | None = None
    evidence: list[str] = Field(default_factory=list)
    items: list[dict] = Field(default_factory=list)


class SubmitTrackingRequest(BaseModel):
    tracking_number: str


class AdvanceReturnStatusRequest(BaseModel):
    status: str


class InspectionDecisionRequest(BaseModel):
    status: str
    inspection_result: str | None = None
    inspection_notes: str | None = None
    approved_refund_amount: float | None = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------
class StatusResponse(BaseModel):
    status: str
    detail: str | None = None


class IngestResponse(BaseModel):
    order_id: str
    created: bool


class SubOrderSummary(BaseModel):
    sub_order_id: str
    hub_id: str
    courier_id: str | None = None
    status: str
    tracking_number: str | None = None
    total_weight: float
    real_shipping_cost: float
    allocated_shipping_fee: float
    shipping_profit_loss: float
    cost_source: str | None = None
    delivery_timeline_days: int | None = None


class OrderResponse(BaseModel):
    order_id: str
    external_order_id: str
    overall_status: str
    payment_status: str
    subtotal: float
    total: float
    shipping_fee_paid: float
    sub_orders: list[SubOrderSummary]


class ReturnResponse(BaseModel):
    return_id: str
    return_code: str
    order_id: str
    method: str
    preferred_resolution: str
    status: str
    tracking_number: str | None = None
    pickup_error: str | None = None
    approved_refund_amount: float | None = None
    refund_amount: float | None = None
    refund_currency: str | None = None
    refund_reference: str | None = None


class SyncSummaryResponse(BaseModel):
    checked: int
    updated: int
    skipped: int
    failed: int
