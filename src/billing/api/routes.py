"""FastAPI routes for the Billing domain: invoices, payments and gateway webhooks."""

import json
import os
from datetime import UTC, datetime

from fastapi import APIRouter, Header, HTTPException, Request
from protean.utils.globals import current_domain

from billing.api.schemas import (
    CancelInvoiceRequest,
    ConfigureGatewayRequest,
    CreateInvoiceRequest,
    GatewayConfigResponse,
    InvoiceIdResponse,
    InvoiceResponse,
    InvoiceStatsResponse,
    ManualPaymentRequest,
    PaymentLinkRequest,
    PaymentLinkResponse,
    RefundInvoiceRequest,
    RevisionRequest,
    ScheduleInvoiceRequest,
    StatusResponse,
    SweepResponse,
    WebhookResponse,
)
from billing.gateway import get_gateway
from billing.gateway.fake_adapter import FakeGateway
from billing.gateway.reconciliation import reconcile_invoice
from billing.gateway.webhook import parse_square_event, process_webhook
from billing.invoice.cancellation import CancelInvoice
from billing.invoice.creation import CreateInvoice
from billing.invoice.deletion import DeleteDraftInvoice
from billing.invoice.display import client_outstanding_balance, invoice_stats
from billing.invoice.expiry import sweep_invoices
from billing.invoice.invoice import Invoice
from billing.invoice.locking import named_lock, process_locked
from billing.invoice.refund import RefundInvoice
from billing.invoice.sending import ScheduleInvoice, SendInvoice, SendPaymentReminder
from billing.invoice.service import get_invoice, record_manual_payment, request_payment_link

# ---------------------------------------------------------------------------
# Invoice Router
# ---------------------------------------------------------------------------
invoice_router = APIRouter(prefix="/invoices", tags=["invoices"])


@invoice_router.post("", status_code=201, response_model=InvoiceIdResponse)
async def create_invoice(body: CreateInvoiceRequest) -> InvoiceIdResponse:
    """Create a draft invoice, optionally publishing it right away."""
    command = CreateInvoice(
        client_id=body.client_id,
        title=body.title,
        description=body.description,
        project_id=body.project_id,
        payer_ids=json.dumps(body.payer_ids),
        line_items=json.dumps([item.model_dump() for item in body.line_items]),
        tax_rate=str(body.tax_rate),
        discount_amount=body.discount_amount,
        issue_date=body.issue_date,
        due_date=body.due_date,
        scheduled_send_date=body.scheduled_send_date,
        accepted_channels=json.dumps(body.accepted_channels) if body.accepted_channels is not None else None,
        allow_partial_payments=body.allow_partial_payments,
        auto_pay_enabled=body.auto_pay_enabled,
        card_on_file_id=body.card_on_file_id,
        customer_notes=body.customer_notes,
        internal_notes=body.internal_notes,
        created_by=body.created_by,
        publish=body.publish,
    )
    # The year counter is read-modify-write; one creator at a time
    with named_lock("invoice-number-sequence"):
        result = current_domain.process(command, asynchronous=False)
    return InvoiceIdResponse(invoice_id=result)


@invoice_router.get("/stats", response_model=InvoiceStatsResponse)
async def get_invoice_stats(client_id: str | None = None) -> InvoiceStatsResponse:
    """Dashboard counts and balances across all invoices."""
    invoices = current_domain.repository_for(Invoice)._dao.query.all().items
    stats = invoice_stats(invoices, now=datetime.now(UTC))
    return InvoiceStatsResponse(
        total=stats.total,
        draft=stats.draft,
        scheduled=stats.scheduled,
        sent=stats.sent,
        partially_paid=stats.partially_paid,
        paid=stats.paid,
        overdue=stats.overdue,
        canceled=stats.canceled,
        refunded=stats.refunded,
        total_revenue=stats.total_revenue,
        outstanding_balance=stats.outstanding_balance,
        client_outstanding_balance=client_outstanding_balance(invoices, client_id) if client_id else None,
    )


@invoice_router.post("/sweep", response_model=SweepResponse)
async def run_invoice_sweep() -> SweepResponse:
    """Mark elapsed invoices overdue and send scheduled ones. Called by a scheduler."""
    result = sweep_invoices()
    return SweepResponse(marked_overdue=result.marked_overdue, sent=result.sent, failed=result.failed)


@invoice_router.get("/{invoice_id}", response_model=InvoiceResponse)
async def read_invoice(invoice_id: str) -> InvoiceResponse:
    now = datetime.now(UTC)
    return InvoiceResponse.from_invoice(get_invoice(invoice_id, now), now)


@invoice_router.delete("/{invoice_id}", response_model=StatusResponse)
async def delete_draft_invoice(invoice_id: str) -> StatusResponse:
    process_locked(invoice_id, DeleteDraftInvoice(invoice_id=invoice_id))
    return StatusResponse(status="deleted")


@invoice_router.post("/{invoice_id}/send", response_model=StatusResponse)
async def send_invoice(invoice_id: str, body: RevisionRequest | None = None) -> StatusResponse:
    expected = body.expected_revision if body else None
    process_locked(invoice_id, SendInvoice(invoice_id=invoice_id, expected_revision=expected))
    return StatusResponse(status="sent")


@invoice_router.post("/{invoice_id}/schedule", response_model=StatusResponse)
async def schedule_invoice(invoice_id: str, body: ScheduleInvoiceRequest) -> StatusResponse:
    command = ScheduleInvoice(
        invoice_id=invoice_id,
        send_date=body.send_date,
        expected_revision=body.expected_revision,
    )
    process_locked(invoice_id, command)
    return StatusResponse(status="scheduled")


@invoice_router.post("/{invoice_id}/cancel", response_model=StatusResponse)
async def cancel_invoice(invoice_id: str, body: CancelInvoiceRequest) -> StatusResponse:
    command = CancelInvoice(
        invoice_id=invoice_id,
        canceled_by=body.canceled_by,
        reason=body.reason,
        expected_revision=body.expected_revision,
    )
    process_locked(invoice_id, command)
    return StatusResponse(status="canceled")


@invoice_router.post("/{invoice_id}/refund", response_model=StatusResponse)
async def refund_invoice(invoice_id: str, body: RefundInvoiceRequest) -> StatusResponse:
    command = RefundInvoice(
        invoice_id=invoice_id,
        amount_cents=body.amount_cents,
        reason=body.reason,
        recorded_by=body.recorded_by,
        external_refund_id=body.external_refund_id,
        expected_revision=body.expected_revision,
    )
    process_locked(invoice_id, command)
    return StatusResponse(status="refunded")


@invoice_router.post("/{invoice_id}/reminders", response_model=StatusResponse)
async def send_payment_reminder(invoice_id: str) -> StatusResponse:
    process_locked(invoice_id, SendPaymentReminder(invoice_id=invoice_id))
    return StatusResponse(status="reminder_sent")


@invoice_router.post("/{invoice_id}/payments", status_code=201, response_model=InvoiceResponse)
async def record_payment(invoice_id: str, body: ManualPaymentRequest) -> InvoiceResponse:
    """Record a payment received outside the gateway."""
    invoice = record_manual_payment(
        invoice_id,
        amount_cents=body.cents(),
        method=body.method,
        recorded_by=body.recorded_by,
        note=body.note,
        expected_revision=body.expected_revision,
    )
    return InvoiceResponse.from_invoice(invoice, datetime.now(UTC))


@invoice_router.post("/{invoice_id}/payment-link", response_model=PaymentLinkResponse)
async def create_payment_link(invoice_id: str, body: PaymentLinkRequest | None = None) -> PaymentLinkResponse:
    """Return a hosted payment link for the current balance, creating one if needed."""
    url = request_payment_link(invoice_id, get_gateway(), payer_contact=body.payer_contact if body else None)
    return PaymentLinkResponse(payment_url=url)


@invoice_router.post("/{invoice_id}/reconcile", response_model=StatusResponse)
async def reconcile_with_gateway(invoice_id: str) -> StatusResponse:
    """Ask the gateway whether the invoice was paid and record it if so."""
    payment_id = reconcile_invoice(invoice_id, get_gateway())
    return StatusResponse(status="payment_recorded" if payment_id else "no_change")


# ---------------------------------------------------------------------------
# Webhook Router
# ---------------------------------------------------------------------------
webhook_router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@webhook_router.post("/square", response_model=WebhookResponse)
async def square_webhook(
    request: Request,
    x_square_hmacsha256_signature: str = Header(default=""),
) -> WebhookResponse:
    """Process a Square webhook notification."""
    payload = await request.body()
    if not get_gateway().verify_webhook_signature(payload, x_square_hmacsha256_signature):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    try:
        body = json.loads(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Webhook body is not valid JSON") from exc

    outcome = process_webhook(parse_square_event(body))
    return WebhookResponse(outcome=outcome)


# ---------------------------------------------------------------------------
# Gateway Router
# ---------------------------------------------------------------------------
gateway_router = APIRouter(prefix="/gateway", tags=["gateway"])


@gateway_router.post("/configure", response_model=GatewayConfigResponse)
async def configure_gateway(body: ConfigureGatewayRequest) -> GatewayConfigResponse:
    """Configure the FakeGateway behavior (non-production only)."""
    if os.environ.get("PROTEAN_ENV") == "production":
        raise HTTPException(status_code=403, detail="Gateway configuration not available in production")

    gateway = get_gateway()
    if not isinstance(gateway, FakeGateway):
        raise HTTPException(status_code=400, detail="Gateway configuration only available for FakeGateway")

    gateway.configure(should_succeed=body.should_succeed, failure_reason=body.failure_reason)
    return GatewayConfigResponse(
        gateway=type(gateway).__name__,
        should_succeed=gateway.should_succeed,
        failure_reason=gateway.failure_reason,
    )
