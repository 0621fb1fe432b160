"""Invoice summary: one row per invoice for dashboard lists and client views."""

from protean.core.projector import on
from protean.fields import Boolean, Date, DateTime, Identifier, Integer, String
from protean.utils.globals import current_domain

from billing.domain import billing
from billing.invoice.events import (
    InvoiceCanceled,
    InvoiceCreated,
    InvoiceMarkedOverdue,
    InvoicePaid,
    InvoiceRefunded,
    InvoiceScheduled,
    InvoiceSent,
    PaymentApplied,
    PaymentLinkAttached,
)
from billing.invoice.invoice import Invoice
from billing.invoice.lifecycle import InvoiceStatus


@billing.projection
class InvoiceSummary:
    invoice_id = Identifier(identifier=True, required=True)
    invoice_number = String(required=True)
    client_id = Identifier(required=True)
    project_id = Identifier()
    title = String(required=True)
    total_amount = Integer(default=0)
    amount_paid = Integer(default=0)
    amount_due = Integer(default=0)
    status = String(required=True)
    due_date = Date()
    payment_count = Integer(default=0)
    has_payment_link = Boolean(default=False)
    created_at = DateTime()
    updated_at = DateTime()


@billing.projector(projector_for=InvoiceSummary, aggregates=[Invoice])
class InvoiceSummaryProjector:
    @on(InvoiceCreated)
    def on_invoice_created(self, event):
        current_domain.repository_for(InvoiceSummary).add(
            InvoiceSummary(
                invoice_id=event.invoice_id,
                invoice_number=event.invoice_number,
                client_id=event.client_id,
                project_id=event.project_id,
                title=event.title,
                total_amount=event.total_amount,
                amount_due=event.total_amount,
                status=InvoiceStatus.DRAFT.value,
                due_date=event.due_date,
                created_at=event.created_at,
                updated_at=event.created_at,
            )
        )

    @on(InvoiceScheduled)
    def on_invoice_scheduled(self, event):
        repo = current_domain.repository_for(InvoiceSummary)
        view = repo.get(event.invoice_id)
        view.status = InvoiceStatus.SCHEDULED.value
        view.updated_at = event.scheduled_at
        repo.add(view)

    @on(InvoiceSent)
    def on_invoice_sent(self, event):
        repo = current_domain.repository_for(InvoiceSummary)
        view = repo.get(event.invoice_id)
        view.status = InvoiceStatus.SENT.value
        view.updated_at = event.sent_at
        repo.add(view)

    @on(PaymentApplied)
    def on_payment_applied(self, event):
        repo = current_domain.repository_for(InvoiceSummary)
        view = repo.get(event.invoice_id)
        view.amount_paid = event.amount_paid
        view.amount_due = event.amount_due
        view.status = event.status
        view.payment_count = (view.payment_count or 0) + 1
        view.has_payment_link = False
        view.updated_at = event.paid_at
        repo.add(view)

    @on(InvoicePaid)
    def on_invoice_paid(self, event):
        repo = current_domain.repository_for(InvoiceSummary)
        view = repo.get(event.invoice_id)
        view.status = InvoiceStatus.PAID.value
        view.updated_at = event.paid_at
        repo.add(view)

    @on(InvoiceMarkedOverdue)
    def on_invoice_marked_overdue(self, event):
        repo = current_domain.repository_for(InvoiceSummary)
        view = repo.get(event.invoice_id)
        view.status = InvoiceStatus.OVERDUE.value
        view.updated_at = event.marked_at
        repo.add(view)

    @on(InvoiceCanceled)
    def on_invoice_canceled(self, event):
        repo = current_domain.repository_for(InvoiceSummary)
        view = repo.get(event.invoice_id)
        view.status = InvoiceStatus.CANCELED.value
        view.has_payment_link = False
        view.updated_at = event.canceled_at
        repo.add(view)

    @on(InvoiceRefunded)
    def on_invoice_refunded(self, event):
        repo = current_domain.repository_for(InvoiceSummary)
        view = repo.get(event.invoice_id)
        view.status = InvoiceStatus.REFUNDED.value
        view.amount_paid = event.amount_paid
        view.amount_due = event.amount_due
        view.updated_at = event.refunded_at
        repo.add(view)

    @on(PaymentLinkAttached)
    def on_payment_link_attached(self, event):
        repo = current_domain.repository_for(InvoiceSummary)
        view = repo.get(event.invoice_id)
        view.has_payment_link = True
        view.updated_at = event.attached_at
        repo.add(view)
