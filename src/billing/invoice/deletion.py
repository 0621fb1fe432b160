"""Draft deletion: command and handler.

Only drafts may be deleted; anything that reached a client is canceled
instead so its history survives.
"""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier
from protean.utils.globals import current_domain

from billing.domain import billing
from billing.invoice.invoice import Invoice
from billing.invoice.lifecycle import InvoiceStatus
from billing.projections.invoice_summary import InvoiceSummary


@billing.command(part_of="Invoice")
class DeleteDraftInvoice:
    invoice_id = Identifier(required=True)


@billing.command_handler(part_of=Invoice)
class DeleteDraftInvoiceHandler:
    @handle(DeleteDraftInvoice)
    def delete_draft(self, command):
        repo = current_domain.repository_for(Invoice)
        invoice = repo.get(command.invoice_id)
        if invoice.current_status != InvoiceStatus.DRAFT:
            raise ValidationError(
                {"status": ["Only draft invoices can be deleted. Cancel the invoice instead."]}
            )
        repo._dao.delete(invoice)

        # Deletion raises no event, so the summary row goes with the draft
        summaries = current_domain.repository_for(InvoiceSummary)
        for row in summaries._dao.query.filter(invoice_id=command.invoice_id).all().items:
            summaries._dao.delete(row)
