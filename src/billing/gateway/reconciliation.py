"""Pull-based reconciliation for when webhooks are late or never arrive.

The processor is polled without holding any invoice lock. A reported
payment is then recorded like a webhook payment, keyed by its transaction
id, so it is harmless if the webhook shows up afterwards.
"""

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from billing.exceptions import GatewayError
from billing.gateway.port import InvoiceGateway
from billing.invoice.invoice import Invoice
from billing.invoice.lifecycle import PAYABLE_STATUSES
from billing.invoice.locking import process_locked
from billing.invoice.payment import RecordGatewayPayment

logger = structlog.get_logger(__name__)


def reconcile_invoice(invoice_id: str, gateway: InvoiceGateway) -> str | None:
    """Record a payment the gateway reports for ``invoice_id``.

    Returns the ledger payment id, or None when there was nothing to record.
    ``GatewayError`` propagates; the caller decides when to retry.
    """
    invoice = current_domain.repository_for(Invoice).get(invoice_id)
    if invoice.current_status not in PAYABLE_STATUSES:
        return None

    status = gateway.check_status(str(invoice.id), order_id=invoice.gateway_order_id)
    if not status.paid or not status.amount:
        return None
    if not status.transaction_id:
        raise GatewayError(f"Gateway reported a payment for {invoice_id} without a transaction id")

    payment_id = process_locked(
        invoice_id,
        RecordGatewayPayment(
            invoice_id=invoice_id,
            amount_cents=status.amount,
            transaction_id=status.transaction_id,
        ),
    )
    logger.info(
        "Reconciled gateway payment",
        invoice_id=str(invoice_id),
        transaction_id=status.transaction_id,
        amount=status.amount,
    )
    return payment_id


def reconcile_open_invoices(gateway: InvoiceGateway) -> list[str]:
    """Poll every payable invoice that has a gateway link. Returns invoice ids updated."""
    repo = current_domain.repository_for(Invoice)
    reconciled = []
    for status in sorted(PAYABLE_STATUSES, key=lambda s: s.value):
        for invoice in repo._dao.query.filter(status=status.value).all().items:
            if not invoice.payment_link_id and not invoice.gateway_order_id:
                continue
            try:
                if reconcile_invoice(str(invoice.id), gateway):
                    reconciled.append(str(invoice.id))
            except (GatewayError, ValidationError) as exc:
                logger.warning("Failed to reconcile invoice", invoice_id=str(invoice.id), error=str(exc))

    logger.info("Gateway reconciliation complete", reconciled=len(reconciled))
    return reconciled
