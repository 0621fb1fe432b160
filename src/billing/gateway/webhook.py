"""Inbound gateway webhooks: normalization, event-id dedup and dispatch.

Square retries deliveries until it gets a 2xx, so the same event can arrive
many times. Each ``event_id`` is processed at most once: the id is recorded
after dispatch, under a lock on the id. Payments are additionally deduped by
transaction id inside the ledger.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from billing.domain import billing
from billing.invoice.cancellation import CancelInvoice
from billing.invoice.invoice import Invoice
from billing.invoice.lifecycle import InvoiceStatus
from billing.invoice.locking import invoice_update, named_lock, process_locked
from billing.invoice.payment import GATEWAY_ACTOR, RecordGatewayPayment
from billing.invoice.payment_link import LinkGatewayInvoice
from billing.invoice.refund import RefundInvoice
from billing.invoice.sending import SendInvoice

logger = structlog.get_logger(__name__)

PAYMENT_MADE = "invoice.payment_made"
CANCELED = "invoice.canceled"
REFUNDED = "invoice.refunded"
PUBLISHED = "invoice.published"


@dataclass(frozen=True)
class WebhookEvent:
    """A gateway notification reduced to what billing acts on."""

    event_id: str
    type: str
    invoice_id: str | None = None
    external_invoice_id: str | None = None
    external_order_id: str | None = None
    amount: int | None = None  # cents, for this payment or refund
    total_paid: int | None = None  # cents, cumulative, when only that is reported
    transaction_id: str | None = None
    payload: dict = field(default_factory=dict)


@billing.aggregate
class ProcessedWebhook:
    event_id = Identifier(identifier=True, required=True)
    event_type = String(required=True, max_length=100)
    invoice_id = Identifier()
    outcome = String(required=True, max_length=20)  # applied | ignored | rejected
    processed_at = DateTime(required=True)


def _money(obj: dict | None) -> int | None:
    if not obj:
        return None
    return obj.get("amount")


def parse_square_event(body: dict) -> WebhookEvent:
    """Normalize a Square webhook body.

    ``payment.created``/``payment.updated`` for a completed payment (how
    payment links report) are folded into ``invoice.payment_made``.
    """
    event_id = body.get("event_id")
    event_type = body.get("type")
    if not event_id or not event_type:
        raise ValidationError({"event": ["Webhook body needs event_id and type"]})

    data = body.get("data") or {}
    obj = data.get("object") or {}

    if event_type in ("payment.created", "payment.updated"):
        payment = obj.get("payment") or {}
        if payment.get("status") != "COMPLETED":
            return WebhookEvent(event_id=event_id, type=event_type, payload=body)
        return WebhookEvent(
            event_id=event_id,
            type=PAYMENT_MADE,
            invoice_id=payment.get("reference_id"),
            external_order_id=payment.get("order_id"),
            amount=_money(payment.get("amount_money")),
            transaction_id=payment.get("id"),
            payload=body,
        )

    if event_type == "refund.updated":
        refund = obj.get("refund") or {}
        if refund.get("status") != "COMPLETED":
            return WebhookEvent(event_id=event_id, type=event_type, payload=body)
        return WebhookEvent(
            event_id=event_id,
            type=REFUNDED,
            external_order_id=refund.get("order_id"),
            amount=_money(refund.get("amount_money")),
            transaction_id=refund.get("id"),
            payload=body,
        )

    invoice = obj.get("invoice") or {}
    total_paid = None
    if event_type == PAYMENT_MADE:
        total_paid = sum(
            _money(request.get("total_completed_amount_money")) or 0
            for request in invoice.get("payment_requests") or []
        )
    return WebhookEvent(
        event_id=event_id,
        type=event_type,
        external_invoice_id=invoice.get("id") or data.get("id"),
        external_order_id=invoice.get("order_id"),
        total_paid=total_paid,
        payload=body,
    )


def resolve_invoice(event: WebhookEvent) -> Invoice:
    """Find the billing invoice a gateway event refers to."""
    repo = current_domain.repository_for(Invoice)
    if event.invoice_id:
        return repo.get(event.invoice_id)

    for field_name, value in (
        ("gateway_invoice_id", event.external_invoice_id),
        ("gateway_order_id", event.external_order_id),
    ):
        if value:
            matches = repo._dao.query.filter(**{field_name: value}).all().items
            if matches:
                return matches[0]
    raise ObjectNotFoundError(f"No invoice matches gateway event {event.event_id}")


def _apply_payment(event: WebhookEvent, invoice: Invoice) -> str:
    if event.amount is None and event.total_paid is not None:
        return _apply_running_total(event, invoice)
    if not event.amount or event.amount <= 0:
        return "ignored"

    process_locked(
        invoice.id,
        RecordGatewayPayment(
            invoice_id=invoice.id,
            amount_cents=event.amount,
            transaction_id=event.transaction_id or event.event_id,
        ),
    )
    return "applied"


def _apply_running_total(event: WebhookEvent, invoice: Invoice) -> str:
    """Apply what the processor collected beyond the payments it already reported.

    The reported total only counts processor money, so manual entries are left
    out of the comparison. The ledger is read under the invoice lock.
    """
    with invoice_update(invoice.id):
        current = current_domain.repository_for(Invoice).get(invoice.id)
        amount = event.total_paid - current.gateway_amount_paid
        if amount <= 0:
            return "ignored"
        current_domain.process(
            RecordGatewayPayment(
                invoice_id=invoice.id,
                amount_cents=amount,
                transaction_id=event.transaction_id or f"{invoice.id}:{event.total_paid}",
            ),
            asynchronous=False,
        )
    return "applied"


def _link_gateway_invoice(event: WebhookEvent, invoice: Invoice) -> None:
    if event.external_invoice_id and invoice.gateway_invoice_id != event.external_invoice_id:
        process_locked(
            invoice.id,
            LinkGatewayInvoice(invoice_id=invoice.id, gateway_invoice_id=event.external_invoice_id),
        )


def _apply_cancel(event: WebhookEvent, invoice: Invoice) -> str:
    if invoice.current_status == InvoiceStatus.CANCELED:
        return "ignored"
    process_locked(
        invoice.id,
        CancelInvoice(invoice_id=invoice.id, canceled_by=GATEWAY_ACTOR, reason="Canceled at the payment processor"),
    )
    return "applied"


def _apply_refund(event: WebhookEvent, invoice: Invoice) -> str:
    if invoice.current_status == InvoiceStatus.REFUNDED:
        return "ignored"
    process_locked(
        invoice.id,
        RefundInvoice(
            invoice_id=invoice.id,
            amount_cents=event.amount,
            reason="Refunded at the payment processor",
            recorded_by=GATEWAY_ACTOR,
            external_refund_id=event.transaction_id,
        ),
    )
    return "applied"


def _apply_publish(event: WebhookEvent, invoice: Invoice) -> str:
    if invoice.current_status not in (InvoiceStatus.DRAFT, InvoiceStatus.SCHEDULED):
        return "ignored"
    process_locked(invoice.id, SendInvoice(invoice_id=invoice.id))
    return "applied"


_HANDLERS = {
    PAYMENT_MADE: _apply_payment,
    CANCELED: _apply_cancel,
    REFUNDED: _apply_refund,
    PUBLISHED: _apply_publish,
}


def process_webhook(event: WebhookEvent, now: datetime | None = None) -> str:
    """Apply ``event`` once and return its outcome.

    Outcomes: ``applied``, ``ignored`` (nothing to do), ``rejected`` (the
    invoice refused the change; recorded so redelivery stops) and
    ``duplicate`` (already processed). An unknown invoice raises
    ``ObjectNotFoundError`` and is not recorded, so a later delivery can
    still succeed.
    """
    now = now or datetime.now(UTC)
    repo = current_domain.repository_for(ProcessedWebhook)

    with named_lock(f"webhook:{event.event_id}"):
        if repo._dao.query.filter(event_id=event.event_id).all().items:
            logger.info("Ignoring redelivered webhook", event_id=event.event_id, event_type=event.type)
            return "duplicate"

        handler = _HANDLERS.get(event.type)
        invoice_id = None
        if handler is None:
            outcome = "ignored"
        else:
            invoice = resolve_invoice(event)
            invoice_id = str(invoice.id)
            _link_gateway_invoice(event, invoice)
            try:
                outcome = handler(event, invoice)
            except ValidationError as exc:
                logger.warning(
                    "Gateway event rejected by invoice",
                    event_id=event.event_id,
                    event_type=event.type,
                    invoice_id=invoice_id,
                    error=str(exc),
                )
                outcome = "rejected"

        repo.add(
            ProcessedWebhook(
                event_id=event.event_id,
                event_type=event.type,
                invoice_id=invoice_id,
                outcome=outcome,
                processed_at=now,
            )
        )

    logger.info(
        "Processed gateway webhook",
        event_id=event.event_id,
        event_type=event.type,
        invoice_id=invoice_id,
        outcome=outcome,
    )
    return outcome
