"""Payment link bookkeeping: commands and handlers.

The link itself is created by the gateway before this command runs; the
handler only records it, and refuses when the balance moved in between.
The processor's own invoice id is recorded the first time an event
names it next to an order or invoice we already know.
"""

from datetime import UTC, datetime

from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from billing.domain import billing
from billing.invoice.invoice import Invoice
from billing.invoice.loading import load_for_update


@billing.command(part_of="Invoice")
class AttachPaymentLink:
    invoice_id = Identifier(required=True)
    payment_url = String(required=True, max_length=1000)
    amount_cents = Integer(required=True)
    link_id = String(max_length=255)
    order_id = String(max_length=255)


@billing.command_handler(part_of=Invoice)
class AttachPaymentLinkHandler:
    @handle(AttachPaymentLink)
    def attach_payment_link(self, command):
        invoice = load_for_update(command.invoice_id)
        invoice.attach_payment_link(
            command.payment_url,
            amount=command.amount_cents,
            link_id=command.link_id,
            order_id=command.order_id,
            now=datetime.now(UTC),
        )
        current_domain.repository_for(Invoice).add(invoice)
        return invoice.payment_url


@billing.command(part_of="Invoice")
class LinkGatewayInvoice:
    invoice_id = Identifier(required=True)
    gateway_invoice_id = String(required=True, max_length=255)


@billing.command_handler(part_of=Invoice)
class LinkGatewayInvoiceHandler:
    @handle(LinkGatewayInvoice)
    def link_gateway_invoice(self, command):
        invoice = load_for_update(command.invoice_id)
        invoice.link_gateway_invoice(command.gateway_invoice_id, now=datetime.now(UTC))
        current_domain.repository_for(Invoice).add(invoice)
