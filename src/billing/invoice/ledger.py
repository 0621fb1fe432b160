"""Payment ledger: the only code that changes ``amount_paid``/``amount_due``.

Payments and refunds are appended, never edited or removed. After every
append the balances are recomputed from the entries and the status machine
receives the matching event inside the same ``atomic_change`` block, so an
invoice is never seen with a new entry but the old status.

Gateway-originated payments carry the processor's transaction id; a second
payment with an id already on the ledger raises ``DuplicatePaymentError``,
which callers treat as a successful no-op.
"""

from dataclasses import dataclass
from datetime import UTC, datetime

import structlog
from protean import atomic_change
from protean.exceptions import ValidationError

from billing.exceptions import DuplicatePaymentError, InvalidPaymentError, PaymentNotAcceptedError
from billing.invoice.events import InvoicePaid, InvoiceRefunded, PaymentApplied
from billing.invoice.invoice import Invoice, Payment, PaymentMethod, Refund
from billing.invoice.lifecycle import PAYABLE_STATUSES, InvoiceEvent, InvoiceStatus, next_status
from billing.shared.money import Cents

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PaymentRequest:
    amount: int  # cents
    method: PaymentMethod | str
    note: str | None = None
    external_transaction_id: str | None = None


def ledger_balance(invoice: Invoice) -> tuple[Cents, Cents]:
    """Recompute ``(amount_paid, amount_due)`` from the ledger entries."""
    paid = Cents.sum(p.amount for p in invoice.payments or []) - Cents.sum(r.amount for r in invoice.refunds or [])
    return paid, Cents(invoice.total_amount) - paid


def verify_ledger(invoice: Invoice) -> None:
    """Raise ValidationError if the stored balances disagree with the entries."""
    paid, due = ledger_balance(invoice)
    if paid != invoice.amount_paid or due != invoice.amount_due:
        raise ValidationError(
            {
                "ledger": [
                    f"Stored balance (paid={invoice.amount_paid}, due={invoice.amount_due}) "
                    f"does not match ledger (paid={paid}, due={due})"
                ]
            }
        )


def _payment_amount(value) -> Cents:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidPaymentError({"amount": ["Payment amount must be a whole number of cents"]})
    return Cents(value)


def _payment_method(value) -> PaymentMethod:
    try:
        return PaymentMethod(getattr(value, "value", value))
    except ValueError:
        raise InvalidPaymentError({"method": [f"Unknown payment method: {value}"]}) from None


def record_payment(
    invoice: Invoice,
    request: PaymentRequest,
    actor_id: str,
    now: datetime | None = None,
) -> tuple[Invoice, Payment]:
    """Append a payment to ``invoice`` and advance its status.

    Returns the updated invoice and the applied payment. The invoice is left
    untouched when any check fails.
    """
    existing = invoice.find_payment_by_transaction(request.external_transaction_id)
    if existing is not None:
        logger.info(
            "Ignoring duplicate gateway payment",
            invoice_id=str(invoice.id),
            transaction_id=request.external_transaction_id,
        )
        raise DuplicatePaymentError(existing, request.external_transaction_id)

    status = invoice.current_status
    if status not in PAYABLE_STATUSES:
        raise PaymentNotAcceptedError(status)

    amount = _payment_amount(request.amount)
    method = _payment_method(request.method)
    if amount <= 0:
        raise InvalidPaymentError({"amount": ["Payment amount must be greater than zero"]})
    if amount > invoice.amount_due:
        raise InvalidPaymentError(
            {"amount": [f"Payment amount ({amount}) exceeds amount due ({invoice.amount_due})"]}
        )
    if not invoice.allow_partial_payments and amount != invoice.amount_due:
        raise InvalidPaymentError(
            {"amount": [f"Partial payments are not allowed; pay the full {invoice.amount_due}"]}
        )

    verify_ledger(invoice)

    now = now or datetime.now(UTC)
    payment = Payment(
        sequence=len(invoice.payments or []) + 1,
        amount=amount,
        method=method.value,
        external_transaction_id=request.external_transaction_id,
        paid_at=now,
        note=request.note,
        recorded_by=str(actor_id),
    )
    amount_paid = Cents(invoice.amount_paid) + amount
    amount_due = Cents(invoice.total_amount) - amount_paid

    with atomic_change(invoice):
        invoice.add_payments(payment)
        invoice.amount_paid = amount_paid
        invoice.amount_due = amount_due
        target = invoice.apply_transition(InvoiceEvent.PAYMENT_APPLIED, now, amount_due=amount_due)
        if target == InvoiceStatus.PAID:
            invoice.paid_at = now
            invoice.payment_url = None

    invoice.raise_(
        PaymentApplied(
            invoice_id=str(invoice.id),
            payment_id=str(payment.id),
            amount=amount,
            method=method.value,
            external_transaction_id=request.external_transaction_id,
            amount_paid=amount_paid,
            amount_due=amount_due,
            status=target.value,
            recorded_by=str(actor_id),
            paid_at=now,
        )
    )
    if target == InvoiceStatus.PAID:
        invoice.raise_(
            InvoicePaid(
                invoice_id=str(invoice.id),
                client_id=str(invoice.client_id),
                total_amount=invoice.total_amount,
                paid_at=now,
            )
        )

    logger.info(
        "Recorded payment",
        invoice_id=str(invoice.id),
        payment_id=str(payment.id),
        amount=int(amount),
        method=method.value,
        amount_due=int(amount_due),
        status=target.value,
    )
    return invoice, payment


def record_refund(
    invoice: Invoice,
    reason: str,
    actor_id: str,
    amount: int | None = None,
    external_refund_id: str | None = None,
    now: datetime | None = None,
) -> tuple[Invoice, Refund]:
    """Refund money collected on a PAID invoice, moving it to REFUNDED.

    ``amount`` defaults to everything paid. ``amount_paid`` goes down and
    ``amount_due`` up by the refunded amount.
    """
    if external_refund_id:
        existing = next((r for r in invoice.refunds or [] if r.external_refund_id == external_refund_id), None)
        if existing is not None:
            logger.info("Ignoring duplicate refund", invoice_id=str(invoice.id), refund_id=external_refund_id)
            raise DuplicatePaymentError(existing, external_refund_id)

    # Raises IllegalTransitionError unless the invoice is PAID
    next_status(invoice.current_status, InvoiceEvent.REFUND)

    amount = Cents(invoice.amount_paid) if amount is None else _payment_amount(amount)
    if amount <= 0:
        raise InvalidPaymentError({"amount": ["Refund amount must be greater than zero"]})
    if amount > invoice.amount_paid:
        raise InvalidPaymentError(
            {"amount": [f"Refund amount ({amount}) exceeds amount paid ({invoice.amount_paid})"]}
        )
    if not (reason or "").strip():
        raise InvalidPaymentError({"reason": ["A refund reason is required"]})

    verify_ledger(invoice)

    now = now or datetime.now(UTC)
    refund = Refund(
        sequence=len(invoice.refunds or []) + 1,
        amount=amount,
        reason=reason.strip(),
        external_refund_id=external_refund_id,
        refunded_at=now,
        recorded_by=str(actor_id),
    )
    amount_paid = Cents(invoice.amount_paid) - amount
    amount_due = Cents(invoice.total_amount) - amount_paid

    with atomic_change(invoice):
        invoice.add_refunds(refund)
        invoice.amount_paid = amount_paid
        invoice.amount_due = amount_due
        invoice.apply_transition(InvoiceEvent.REFUND, now)
        invoice.refunded_at = now

    invoice.raise_(
        InvoiceRefunded(
            invoice_id=str(invoice.id),
            refund_id=str(refund.id),
            amount=amount,
            reason=refund.reason,
            amount_paid=amount_paid,
            amount_due=amount_due,
            refunded_at=now,
        )
    )
    logger.info(
        "Recorded refund",
        invoice_id=str(invoice.id),
        refund_id=str(refund.id),
        amount=int(amount),
        amount_due=int(amount_due),
    )
    return invoice, refund
