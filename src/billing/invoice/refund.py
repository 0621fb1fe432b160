"""Invoice refund: command and handler.

Only PAID invoices can be refunded. The refund is a separate ledger entry;
the original payments are left as recorded.
"""

from datetime import UTC, datetime

from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from billing.domain import billing
from billing.exceptions import DuplicatePaymentError
from billing.invoice.invoice import Invoice
from billing.invoice.ledger import record_refund
from billing.invoice.loading import load_for_update


@billing.command(part_of="Invoice")
class RefundInvoice:
    """Refund some or all of the money collected on a paid invoice."""

    invoice_id = Identifier(required=True)
    amount_cents = Integer()  # defaults to everything paid
    reason = String(required=True, max_length=500)
    recorded_by = Identifier(required=True)
    external_refund_id = String(max_length=255)
    expected_revision = Integer()


@billing.command_handler(part_of=Invoice)
class RefundInvoiceHandler:
    @handle(RefundInvoice)
    def refund_invoice(self, command):
        invoice = load_for_update(command.invoice_id, command.expected_revision)
        try:
            _, refund = record_refund(
                invoice,
                reason=command.reason,
                actor_id=str(command.recorded_by),
                amount=command.amount_cents,
                external_refund_id=command.external_refund_id,
                now=datetime.now(UTC),
            )
        except DuplicatePaymentError as exc:
            return str(exc.entry.id)

        current_domain.repository_for(Invoice).add(invoice)
        return str(refund.id)
