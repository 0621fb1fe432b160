"""Repository access shared by the invoice command handlers."""

from protean.utils.globals import current_domain

from billing.exceptions import ConcurrentUpdateError
from billing.invoice.invoice import Invoice


def load_for_update(invoice_id, expected_revision=None) -> Invoice:
    """Fetch an invoice, refusing it if it moved past ``expected_revision``."""
    invoice = current_domain.repository_for(Invoice).get(invoice_id)
    if expected_revision is not None and invoice.revision != expected_revision:
        raise ConcurrentUpdateError(invoice_id, expected_revision, invoice.revision)
    return invoice
