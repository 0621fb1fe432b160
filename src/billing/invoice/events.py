"""Domain events for the Invoice aggregate.

All events are versioned, immutable facts representing invoice state changes.
Amounts are integer cents.
"""

from protean.fields import Date, DateTime, Identifier, Integer, String

from billing.domain import billing


@billing.event(part_of="Invoice")
class InvoiceCreated:
    """A draft invoice was built from its line items."""

    __version__ = 1

    invoice_id = Identifier(required=True)
    invoice_number = String(required=True)
    client_id = Identifier(required=True)
    project_id = Identifier()
    title = String(required=True)
    total_amount = Integer(required=True)
    due_date = Date(required=True)
    created_by = Identifier(required=True)
    created_at = DateTime(required=True)


@billing.event(part_of="Invoice")
class InvoiceScheduled:
    """A draft invoice was scheduled to be sent on a future date."""

    __version__ = 1

    invoice_id = Identifier(required=True)
    scheduled_send_date = Date(required=True)
    scheduled_at = DateTime(required=True)


@billing.event(part_of="Invoice")
class InvoiceSent:
    """An invoice was delivered/published to its client."""

    __version__ = 1

    invoice_id = Identifier(required=True)
    invoice_number = String(required=True)
    client_id = Identifier(required=True)
    amount_due = Integer(required=True)
    due_date = Date(required=True)
    sent_at = DateTime(required=True)


@billing.event(part_of="Invoice")
class PaymentApplied:
    """A payment was appended to the invoice ledger."""

    __version__ = 1

    invoice_id = Identifier(required=True)
    payment_id = Identifier(required=True)
    amount = Integer(required=True)
    method = String(required=True)
    external_transaction_id = String()
    amount_paid = Integer(required=True)
    amount_due = Integer(required=True)
    status = String(required=True)
    recorded_by = Identifier(required=True)
    paid_at = DateTime(required=True)


@billing.event(part_of="Invoice")
class InvoicePaid:
    """The invoice balance reached zero."""

    __version__ = 1

    invoice_id = Identifier(required=True)
    client_id = Identifier(required=True)
    total_amount = Integer(required=True)
    paid_at = DateTime(required=True)


@billing.event(part_of="Invoice")
class InvoiceMarkedOverdue:
    """The due date elapsed with a balance outstanding."""

    __version__ = 1

    invoice_id = Identifier(required=True)
    client_id = Identifier(required=True)
    amount_due = Integer(required=True)
    due_date = Date(required=True)
    marked_at = DateTime(required=True)


@billing.event(part_of="Invoice")
class InvoiceCanceled:
    """The invoice was canceled before settlement."""

    __version__ = 1

    invoice_id = Identifier(required=True)
    reason = String()
    canceled_by = Identifier(required=True)
    canceled_at = DateTime(required=True)


@billing.event(part_of="Invoice")
class InvoiceRefunded:
    """Money collected on a paid invoice was returned to the payer."""

    __version__ = 1

    invoice_id = Identifier(required=True)
    refund_id = Identifier(required=True)
    amount = Integer(required=True)
    reason = String(required=True)
    amount_paid = Integer(required=True)
    amount_due = Integer(required=True)
    refunded_at = DateTime(required=True)


@billing.event(part_of="Invoice")
class PaymentLinkAttached:
    """A hosted payment link was created for the outstanding balance."""

    __version__ = 1

    invoice_id = Identifier(required=True)
    payment_url = String(required=True)
    amount = Integer(required=True)
    attached_at = DateTime(required=True)


@billing.event(part_of="Invoice")
class PaymentReminderSent:
    """A payment reminder went out for an unpaid invoice."""

    __version__ = 1

    invoice_id = Identifier(required=True)
    reminders_sent = Integer(required=True)
    sent_at = DateTime(required=True)
