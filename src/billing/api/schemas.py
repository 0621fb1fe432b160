"""Pydantic request/response schemas for the Billing API.

These are external contracts (anti-corruption layer), separate from the
internal Protean commands. Money crosses the boundary as integer cents;
the ``*_display`` fields carry the formatted amount for people, and a
manual payment may be entered as typed text instead.
"""

from datetime import date, datetime
from decimal import Decimal

from protean.exceptions import ValidationError
from pydantic import BaseModel, Field

from billing.invoice.display import display_status, status_display
from billing.shared.money import dollars_to_cents, format_currency


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class LineItemSchema(BaseModel):
    description: str
    quantity: int
    unit_price: int  # cents
    milestone_id: str | None = None


class LineItemResponse(LineItemSchema):
    id: str
    line_total: int


class PaymentResponse(BaseModel):
    id: str
    amount: int
    method: str
    external_transaction_id: str | None = None
    paid_at: datetime
    note: str | None = None
    recorded_by: str


class RefundResponse(BaseModel):
    id: str
    amount: int
    reason: str
    external_refund_id: str | None = None
    refunded_at: datetime
    recorded_by: str


# ---------------------------------------------------------------------------
# Invoice Request Schemas
# ---------------------------------------------------------------------------
class CreateInvoiceRequest(BaseModel):
    client_id: str
    title: str
    description: str | None = None
    project_id: str | None = None
    payer_ids: list[str] = Field(default_factory=list)
    line_items: list[LineItemSchema]
    tax_rate: Decimal = Decimal("0")
    discount_amount: int = 0
    issue_date: date | None = None
    due_date: date
    scheduled_send_date: date | None = None
    accepted_channels: list[str] | None = None
    allow_partial_payments: bool = True
    auto_pay_enabled: bool = False
    card_on_file_id: str | None = None
    customer_notes: str | None = None
    internal_notes: str | None = None
    created_by: str
    publish: bool = False

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "client_id": "client-001",
                    "title": "Kitchen remodel deposit",
                    "line_items": [{"description": "Cabinets", "quantity": 2, "unit_price": 5000}],
                    "tax_rate": "0.08",
                    "due_date": "2026-12-01",
                    "created_by": "admin-001",
                }
            ]
        }
    }


class RevisionRequest(BaseModel):
    expected_revision: int | None = None


class ScheduleInvoiceRequest(RevisionRequest):
    send_date: date


class CancelInvoiceRequest(RevisionRequest):
    canceled_by: str
    reason: str | None = None


class RefundInvoiceRequest(RevisionRequest):
    recorded_by: str
    reason: str
    amount_cents: int | None = None
    external_refund_id: str | None = None


class ManualPaymentRequest(RevisionRequest):
    amount_cents: int | None = None
    amount: str | None = None  # as typed by a person, e.g. "$1,250.00"
    method: str
    recorded_by: str
    note: str | None = None

    def cents(self) -> int:
        if self.amount_cents is not None:
            return self.amount_cents
        if self.amount is None:
            raise ValidationError({"amount_cents": ["Provide amount_cents or amount"]})
        return dollars_to_cents(self.amount)


class PaymentLinkRequest(BaseModel):
    payer_contact: str | None = None


class ConfigureGatewayRequest(BaseModel):
    should_succeed: bool = True
    failure_reason: str = "Gateway unavailable"


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class InvoiceIdResponse(BaseModel):
    invoice_id: str


class StatusResponse(BaseModel):
    status: str = "ok"


class PaymentLinkResponse(BaseModel):
    payment_url: str


class WebhookResponse(BaseModel):
    outcome: str


class SweepResponse(BaseModel):
    marked_overdue: list[str]
    sent: list[str]
    failed: list[str]


class GatewayConfigResponse(BaseModel):
    gateway: str
    should_succeed: bool
    failure_reason: str


class InvoiceStatsResponse(BaseModel):
    total: int
    draft: int
    scheduled: int
    sent: int
    partially_paid: int
    paid: int
    overdue: int
    canceled: int
    refunded: int
    total_revenue: int
    outstanding_balance: int
    client_outstanding_balance: int | None = None


class InvoiceResponse(BaseModel):
    id: str
    invoice_number: str
    title: str
    description: str | None = None
    client_id: str
    payer_ids: list[str]
    project_id: str | None = None
    status: str
    display_status: str
    status_label: str
    status_color: str
    line_items: list[LineItemResponse]
    payments: list[PaymentResponse]
    refunds: list[RefundResponse]
    tax_rate: str
    subtotal: int
    tax_amount: int
    discount_amount: int
    total_amount: int
    amount_paid: int
    amount_due: int
    total_display: str
    amount_due_display: str
    issue_date: date
    due_date: date
    scheduled_send_date: date | None = None
    sent_at: datetime | None = None
    paid_at: datetime | None = None
    accepted_channels: list[str]
    allow_partial_payments: bool
    auto_pay_enabled: bool
    payment_url: str | None = None
    reminders_sent: int
    customer_notes: str | None = None
    revision: int

    @classmethod
    def from_invoice(cls, invoice, now: datetime) -> "InvoiceResponse":
        shown = display_status(invoice, now)
        style = status_display(shown)
        return cls(
            id=str(invoice.id),
            invoice_number=invoice.invoice_number,
            title=invoice.title,
            description=invoice.description,
            client_id=str(invoice.client_id),
            payer_ids=invoice.payer_id_list,
            project_id=str(invoice.project_id) if invoice.project_id else None,
            status=invoice.status,
            display_status=shown.value,
            status_label=style.label,
            status_color=style.color,
            line_items=[
                LineItemResponse(
                    id=str(item.id),
                    description=item.description,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    line_total=item.line_total,
                    milestone_id=item.milestone_id,
                )
                for item in invoice.ordered_line_items
            ],
            payments=[
                PaymentResponse(
                    id=str(p.id),
                    amount=p.amount,
                    method=p.method,
                    external_transaction_id=p.external_transaction_id,
                    paid_at=p.paid_at,
                    note=p.note,
                    recorded_by=str(p.recorded_by),
                )
                for p in invoice.ordered_payments
            ],
            refunds=[
                RefundResponse(
                    id=str(r.id),
                    amount=r.amount,
                    reason=r.reason,
                    external_refund_id=r.external_refund_id,
                    refunded_at=r.refunded_at,
                    recorded_by=str(r.recorded_by),
                )
                for r in invoice.ordered_refunds
            ],
            tax_rate=invoice.tax_rate,
            subtotal=invoice.subtotal,
            tax_amount=invoice.tax_amount,
            discount_amount=invoice.discount_amount,
            total_amount=invoice.total_amount,
            amount_paid=invoice.amount_paid,
            amount_due=invoice.amount_due,
            total_display=format_currency(invoice.total_amount),
            amount_due_display=format_currency(invoice.amount_due),
            issue_date=invoice.issue_date,
            due_date=invoice.due_date,
            scheduled_send_date=invoice.scheduled_send_date,
            sent_at=invoice.sent_at,
            paid_at=invoice.paid_at,
            accepted_channels=invoice.accepted_channel_list,
            allow_partial_payments=invoice.allow_partial_payments,
            auto_pay_enabled=invoice.auto_pay_enabled,
            payment_url=invoice.outstanding_payment_url(),
            reminders_sent=invoice.reminders_sent or 0,
            customer_notes=invoice.customer_notes,
            revision=invoice.revision or 0,
        )
