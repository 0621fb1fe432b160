"""Invoice creation: command and handler.

Creates a DRAFT invoice with the next invoice number for the current year.
With ``publish`` set, the invoice is sent right away, or scheduled when its
send date is still in the future.
"""

import json
from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Boolean, Date, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from billing.domain import billing
from billing.invoice.builder import InvoiceDraft, LineItemDraft, build_invoice
from billing.invoice.invoice import DEFAULT_PAYMENT_CHANNELS, Invoice
from billing.invoice.numbering import InvoiceSequence, highest_sequence

logger = structlog.get_logger(__name__)


@billing.command(part_of="Invoice")
class CreateInvoice:
    """Create a new invoice for a client."""

    client_id = Identifier(required=True)
    title = String(required=True, max_length=255)
    description = Text()
    project_id = Identifier()
    payer_ids = Text()  # JSON: list of additional payer ids
    line_items = Text(required=True)  # JSON: list of {description, quantity, unit_price, milestone_id?}
    tax_rate = String(max_length=20, default="0")
    discount_amount = Integer(default=0)
    issue_date = Date()
    due_date = Date(required=True)
    scheduled_send_date = Date()
    accepted_channels = Text()  # JSON: list of channel names
    allow_partial_payments = Boolean(default=True)
    auto_pay_enabled = Boolean(default=False)
    card_on_file_id = String(max_length=255)
    customer_notes = Text()
    internal_notes = Text()
    created_by = Identifier(required=True)
    publish = Boolean(default=False)


def _loads(value, default):
    if value is None or value == "":
        return default
    return json.loads(value) if isinstance(value, str) else value


def draft_from_command(command) -> InvoiceDraft:
    items = [
        LineItemDraft(
            description=item["description"],
            quantity=item["quantity"],
            unit_price=item["unit_price"],
            milestone_id=item.get("milestone_id"),
        )
        for item in _loads(command.line_items, [])
    ]
    return InvoiceDraft(
        client_id=str(command.client_id),
        title=command.title,
        description=command.description,
        project_id=str(command.project_id) if command.project_id else None,
        payer_ids=tuple(_loads(command.payer_ids, [])),
        line_items=tuple(items),
        tax_rate=command.tax_rate or "0",
        discount_amount=command.discount_amount or 0,
        issue_date=command.issue_date,
        due_date=command.due_date,
        scheduled_send_date=command.scheduled_send_date,
        accepted_channels=tuple(_loads(command.accepted_channels, list(DEFAULT_PAYMENT_CHANNELS))),
        allow_partial_payments=command.allow_partial_payments is not False,
        auto_pay_enabled=bool(command.auto_pay_enabled),
        card_on_file_id=command.card_on_file_id,
        customer_notes=command.customer_notes,
        internal_notes=command.internal_notes,
    )


def allocate_invoice_number(year: int) -> str:
    repo = current_domain.repository_for(InvoiceSequence)
    try:
        sequence = repo.get(str(year))
    except ObjectNotFoundError:
        # First invoice of the year here; continue after any numbers already issued
        existing = current_domain.repository_for(Invoice)._dao.query.all().items
        sequence = InvoiceSequence.start(year, highest_sequence((inv.invoice_number for inv in existing), year))
    number = sequence.allocate()
    repo.add(sequence)
    return number


@billing.command_handler(part_of=Invoice)
class CreateInvoiceHandler:
    @handle(CreateInvoice)
    def create_invoice(self, command):
        now = datetime.now(UTC)
        draft = draft_from_command(command)
        invoice = build_invoice(
            draft,
            invoice_number=allocate_invoice_number(now.year),
            created_by=str(command.created_by),
            now=now,
        )

        if command.publish:
            if draft.scheduled_send_date and draft.scheduled_send_date > now.date():
                invoice.schedule(draft.scheduled_send_date, now=now)
            else:
                invoice.send(now=now)

        current_domain.repository_for(Invoice).add(invoice)
        logger.info(
            "Created invoice",
            invoice_id=str(invoice.id),
            invoice_number=invoice.invoice_number,
            total_amount=invoice.total_amount,
            status=invoice.status,
        )
        return str(invoice.id)
