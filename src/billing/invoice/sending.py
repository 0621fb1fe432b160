"""Invoice delivery: send, schedule and reminder commands and handler."""

from datetime import UTC, datetime

from protean import handle
from protean.fields import Date, Identifier, Integer
from protean.utils.globals import current_domain

from billing.domain import billing
from billing.invoice.invoice import Invoice
from billing.invoice.loading import load_for_update


@billing.command(part_of="Invoice")
class SendInvoice:
    """Send (publish) a draft or scheduled invoice to its client."""

    invoice_id = Identifier(required=True)
    expected_revision = Integer()


@billing.command(part_of="Invoice")
class ScheduleInvoice:
    """Schedule a draft invoice to be sent on a later date."""

    invoice_id = Identifier(required=True)
    send_date = Date(required=True)
    expected_revision = Integer()


@billing.command(part_of="Invoice")
class SendPaymentReminder:
    """Record that a payment reminder went out."""

    invoice_id = Identifier(required=True)


@billing.command_handler(part_of=Invoice)
class InvoiceDeliveryHandler:
    @handle(SendInvoice)
    def send_invoice(self, command):
        invoice = load_for_update(command.invoice_id, command.expected_revision)
        invoice.send(now=datetime.now(UTC))
        current_domain.repository_for(Invoice).add(invoice)

    @handle(ScheduleInvoice)
    def schedule_invoice(self, command):
        invoice = load_for_update(command.invoice_id, command.expected_revision)
        invoice.schedule(command.send_date, now=datetime.now(UTC))
        current_domain.repository_for(Invoice).add(invoice)

    @handle(SendPaymentReminder)
    def send_reminder(self, command):
        invoice = load_for_update(command.invoice_id)
        invoice.record_reminder(now=datetime.now(UTC))
        current_domain.repository_for(Invoice).add(invoice)
        return invoice.reminders_sent
