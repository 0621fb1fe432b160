"""Overdue detection.

Overdue is derived, not stored: it is recomputed on every read from the
status and due date. A stored OVERDUE status only records that the
DueDateElapsed event has already been applied.
"""

from datetime import date, datetime

from billing.invoice.lifecycle import TERMINAL_STATUSES, InvoiceStatus

# Statuses whose stored value still has to move to OVERDUE once detected
ELAPSABLE_STATUSES = frozenset({InvoiceStatus.SENT, InvoiceStatus.PARTIALLY_PAID})


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def is_overdue(status: InvoiceStatus, due_date: date | datetime, now: datetime) -> bool:
    """True when the invoice is not settled or closed and ``now`` is past its due date.

    Due dates are calendar days, so an invoice due today is not overdue until
    tomorrow.
    """
    return InvoiceStatus(status) not in TERMINAL_STATUSES and _as_date(now) > _as_date(due_date)


def needs_overdue_transition(invoice, now: datetime) -> bool:
    """True when ``invoice`` is overdue but its stored status has not caught up."""
    status = invoice.current_status
    return (
        status in ELAPSABLE_STATUSES
        and invoice.amount_due > 0
        and is_overdue(status, invoice.due_date, now)
    )
