"""Presentation helpers: status labels/colours and dashboard statistics."""

from dataclasses import dataclass
from datetime import datetime

from billing.invoice.lifecycle import InvoiceStatus
from billing.invoice.overdue import is_overdue
from billing.shared.money import Cents


@dataclass(frozen=True)
class StatusDisplay:
    label: str
    color: str
    bg: str


STATUS_DISPLAY = {
    InvoiceStatus.DRAFT: StatusDisplay("Draft", "text-gray-600", "bg-gray-100"),
    InvoiceStatus.SCHEDULED: StatusDisplay("Scheduled", "text-blue-600", "bg-blue-100"),
    InvoiceStatus.SENT: StatusDisplay("Sent", "text-yellow-600", "bg-yellow-100"),
    InvoiceStatus.PARTIALLY_PAID: StatusDisplay("Partial", "text-orange-600", "bg-orange-100"),
    InvoiceStatus.PAID: StatusDisplay("Paid", "text-green-600", "bg-green-100"),
    InvoiceStatus.OVERDUE: StatusDisplay("Overdue", "text-red-600", "bg-red-100"),
    InvoiceStatus.CANCELED: StatusDisplay("Canceled", "text-gray-400", "bg-gray-50"),
    InvoiceStatus.REFUNDED: StatusDisplay("Refunded", "text-purple-600", "bg-purple-100"),
}


def display_status(invoice, now: datetime) -> InvoiceStatus:
    """The status to show: OVERDUE whenever the detector fires, else the stored one.

    Drafts and scheduled invoices keep their own status; they have not been
    sent, so there is nothing for the client to be late on.
    """
    status = invoice.current_status
    if status in (InvoiceStatus.DRAFT, InvoiceStatus.SCHEDULED):
        return status
    if invoice.amount_due > 0 and is_overdue(status, invoice.due_date, now):
        return InvoiceStatus.OVERDUE
    return status


def status_display(status: InvoiceStatus) -> StatusDisplay:
    return STATUS_DISPLAY[InvoiceStatus(status)]


@dataclass(frozen=True)
class InvoiceStats:
    total: int
    draft: int
    scheduled: int
    sent: int
    partially_paid: int
    paid: int
    overdue: int
    canceled: int
    refunded: int
    total_revenue: Cents
    outstanding_balance: Cents


def invoice_stats(invoices, now: datetime | None = None) -> InvoiceStats:
    """Counts per status plus revenue and outstanding balance, in cents.

    With ``now`` the counts use the display status, so unpaid invoices past
    their due date count as overdue even before the sweep has marked them.
    """
    invoices = list(invoices)
    statuses = [display_status(inv, now) if now else inv.current_status for inv in invoices]

    def count(status):
        return sum(1 for s in statuses if s == status)

    revenue = Cents.sum(
        inv.amount_paid
        for inv in invoices
        if inv.current_status in (InvoiceStatus.PAID, InvoiceStatus.PARTIALLY_PAID)
    )
    outstanding = Cents.sum(
        inv.amount_due
        for inv in invoices
        if inv.current_status
        not in (InvoiceStatus.PAID, InvoiceStatus.CANCELED, InvoiceStatus.DRAFT, InvoiceStatus.REFUNDED)
    )
    return InvoiceStats(
        total=len(invoices),
        draft=count(InvoiceStatus.DRAFT),
        scheduled=count(InvoiceStatus.SCHEDULED),
        sent=count(InvoiceStatus.SENT),
        partially_paid=count(InvoiceStatus.PARTIALLY_PAID),
        paid=count(InvoiceStatus.PAID),
        overdue=count(InvoiceStatus.OVERDUE),
        canceled=count(InvoiceStatus.CANCELED),
        refunded=count(InvoiceStatus.REFUNDED),
        total_revenue=revenue,
        outstanding_balance=outstanding,
    )


def client_outstanding_balance(invoices, client_id: str) -> Cents:
    """Amount the client still owes across sent, partially paid and overdue invoices."""
    return Cents.sum(
        inv.amount_due
        for inv in invoices
        if str(inv.client_id) == str(client_id)
        and inv.current_status in (InvoiceStatus.SENT, InvoiceStatus.PARTIALLY_PAID, InvoiceStatus.OVERDUE)
    )
