"""Application service for reads and updates that need more than one step.

Commands that touch a single invoice are run through ``process_locked`` so
writers to the same invoice are serialized. Gateway calls are made before
the lock is taken; only their result is written under it.
"""

from datetime import UTC, datetime

import structlog
from protean.utils.globals import current_domain

from billing.exceptions import PaymentNotAcceptedError
from billing.gateway.port import InvoiceGateway
from billing.invoice.expiry import MarkInvoiceOverdue
from billing.invoice.invoice import Invoice
from billing.invoice.lifecycle import PAYABLE_STATUSES
from billing.invoice.locking import process_locked
from billing.invoice.overdue import needs_overdue_transition
from billing.invoice.payment import RecordManualPayment
from billing.invoice.payment_link import AttachPaymentLink

logger = structlog.get_logger(__name__)


def get_invoice(invoice_id: str, now: datetime | None = None) -> Invoice:
    """Load an invoice, first applying DueDateElapsed if it has become overdue."""
    now = now or datetime.now(UTC)
    invoice = current_domain.repository_for(Invoice).get(invoice_id)
    if needs_overdue_transition(invoice, now):
        process_locked(invoice_id, MarkInvoiceOverdue(invoice_id=invoice_id, as_of=now))
        invoice = current_domain.repository_for(Invoice).get(invoice_id)
    return invoice


def record_manual_payment(
    invoice_id: str,
    amount_cents: int,
    method: str,
    recorded_by: str,
    note: str | None = None,
    expected_revision: int | None = None,
) -> Invoice:
    """Record an off-gateway payment and return the updated invoice."""
    process_locked(
        invoice_id,
        RecordManualPayment(
            invoice_id=invoice_id,
            amount_cents=amount_cents,
            method=getattr(method, "value", method),
            note=note,
            recorded_by=recorded_by,
            expected_revision=expected_revision,
        ),
    )
    return current_domain.repository_for(Invoice).get(invoice_id)


def request_payment_link(
    invoice_id: str,
    gateway: InvoiceGateway,
    payer_contact: str | None = None,
    now: datetime | None = None,
) -> str:
    """Return the hosted payment URL for the invoice's current balance.

    An outstanding link for the same balance is reused; otherwise the
    gateway creates one and it is stored on the invoice.
    """
    invoice = get_invoice(invoice_id, now)
    if invoice.current_status not in PAYABLE_STATUSES:
        raise PaymentNotAcceptedError(invoice.current_status)

    existing = invoice.outstanding_payment_url()
    if existing:
        return existing

    link = gateway.create_payment_link(
        str(invoice.id),
        invoice.amount_due,
        payer_contact=payer_contact,
        description=f"{invoice.invoice_number} {invoice.title}",
        accepted_channels=invoice.accepted_channel_list,
    )
    logger.info("Created payment link", invoice_id=str(invoice.id), amount_due=invoice.amount_due)

    return process_locked(
        invoice_id,
        AttachPaymentLink(
            invoice_id=invoice_id,
            payment_url=link.url,
            amount_cents=invoice.amount_due,
            link_id=link.link_id,
            order_id=link.order_id,
        ),
    )
