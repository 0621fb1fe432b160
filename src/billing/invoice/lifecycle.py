"""Invoice status machine.

State Machine:
    DRAFT → SCHEDULED → SENT
    DRAFT → SENT
    SENT / PARTIALLY_PAID / OVERDUE → PARTIALLY_PAID (payment, balance left)
    SENT / PARTIALLY_PAID / OVERDUE → PAID (payment settles the balance)
    SENT / PARTIALLY_PAID → OVERDUE (due date elapsed, balance left)
    any non-terminal → CANCELED
    PAID → REFUNDED

PAID, CANCELED and REFUNDED are terminal.
"""

from enum import Enum

from billing.exceptions import IllegalTransitionError


class InvoiceStatus(Enum):
    DRAFT = "DRAFT"
    SCHEDULED = "SCHEDULED"
    SENT = "SENT"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELED = "CANCELED"
    REFUNDED = "REFUNDED"


class InvoiceEvent(Enum):
    SEND = "Send"
    SCHEDULE = "Schedule"
    PAYMENT_APPLIED = "PaymentApplied"
    DUE_DATE_ELAPSED = "DueDateElapsed"
    CANCEL = "Cancel"
    REFUND = "Refund"


TERMINAL_STATUSES = frozenset({InvoiceStatus.PAID, InvoiceStatus.CANCELED, InvoiceStatus.REFUNDED})

# Statuses in which the ledger accepts new payments
PAYABLE_STATUSES = frozenset({InvoiceStatus.SENT, InvoiceStatus.PARTIALLY_PAID, InvoiceStatus.OVERDUE})

_SEND_SOURCES = frozenset({InvoiceStatus.DRAFT, InvoiceStatus.SCHEDULED})
_ELAPSE_SOURCES = frozenset({InvoiceStatus.SENT, InvoiceStatus.PARTIALLY_PAID})
_CANCEL_SOURCES = frozenset(
    {
        InvoiceStatus.DRAFT,
        InvoiceStatus.SCHEDULED,
        InvoiceStatus.SENT,
        InvoiceStatus.PARTIALLY_PAID,
        InvoiceStatus.OVERDUE,
    }
)


def next_status(current: InvoiceStatus, event: InvoiceEvent, amount_due: int | None = None) -> InvoiceStatus:
    """Return the status ``event`` moves ``current`` to.

    ``amount_due`` is the balance after the event and is required for
    PaymentApplied and DueDateElapsed. Raises IllegalTransitionError for any
    pair outside the transition table.
    """
    current = InvoiceStatus(current)
    event = InvoiceEvent(event)

    if event == InvoiceEvent.SEND and current in _SEND_SOURCES:
        return InvoiceStatus.SENT
    if event == InvoiceEvent.SCHEDULE and current == InvoiceStatus.DRAFT:
        return InvoiceStatus.SCHEDULED
    if event == InvoiceEvent.PAYMENT_APPLIED and current in PAYABLE_STATUSES and amount_due is not None:
        if amount_due == 0:
            return InvoiceStatus.PAID
        if amount_due > 0:
            return InvoiceStatus.PARTIALLY_PAID
    if event == InvoiceEvent.DUE_DATE_ELAPSED and current in _ELAPSE_SOURCES and amount_due and amount_due > 0:
        return InvoiceStatus.OVERDUE
    if event == InvoiceEvent.CANCEL and current in _CANCEL_SOURCES:
        return InvoiceStatus.CANCELED
    if event == InvoiceEvent.REFUND and current == InvoiceStatus.PAID:
        return InvoiceStatus.REFUNDED

    raise IllegalTransitionError(event, current)


def can_apply(current: InvoiceStatus, event: InvoiceEvent, amount_due: int | None = None) -> bool:
    try:
        next_status(current, event, amount_due)
    except IllegalTransitionError:
        return False
    return True


def is_terminal(status: InvoiceStatus) -> bool:
    return InvoiceStatus(status) in TERMINAL_STATUSES
