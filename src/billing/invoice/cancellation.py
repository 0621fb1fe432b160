"""Invoice cancellation: command and handler."""

from datetime import UTC, datetime

from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from billing.domain import billing
from billing.invoice.invoice import Invoice
from billing.invoice.loading import load_for_update


@billing.command(part_of="Invoice")
class CancelInvoice:
    """Cancel an invoice that has not been settled."""

    invoice_id = Identifier(required=True)
    reason = String(max_length=500)
    canceled_by = Identifier(required=True)
    expected_revision = Integer()


@billing.command_handler(part_of=Invoice)
class CancelInvoiceHandler:
    @handle(CancelInvoice)
    def cancel_invoice(self, command):
        invoice = load_for_update(command.invoice_id, command.expected_revision)
        invoice.cancel(canceled_by=str(command.canceled_by), reason=command.reason, now=datetime.now(UTC))
        current_domain.repository_for(Invoice).add(invoice)
