"""Invoice aggregate (CQRS): billing document, payment ledger and status.

The Invoice owns its line items, the append-only list of payments applied
against it and the refunds issued from it. Totals are computed once by the
builder; ``amount_paid``/``amount_due`` are only ever changed by the ledger.
Status changes go through ``billing.invoice.lifecycle.next_status``.

All monetary fields are integer cents.
"""

import json
from datetime import UTC, date, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    Date,
    DateTime,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
)

from billing.domain import billing
from billing.exceptions import PaymentNotAcceptedError
from billing.invoice.events import (
    InvoiceCanceled,
    InvoiceMarkedOverdue,
    InvoiceScheduled,
    InvoiceSent,
    PaymentLinkAttached,
    PaymentReminderSent,
)
from billing.invoice.lifecycle import PAYABLE_STATUSES, InvoiceEvent, InvoiceStatus, next_status


class PaymentMethod(Enum):
    SQUARE_ONLINE = "SQUARE_ONLINE"
    CARD_ON_FILE = "CARD_ON_FILE"
    CASH = "CASH"
    CHECK = "CHECK"
    BANK_TRANSFER = "BANK_TRANSFER"
    CREDIT_CARD = "CREDIT_CARD"
    OTHER = "OTHER"


# Methods an admin may record by hand
MANUAL_PAYMENT_METHODS = frozenset(
    {
        PaymentMethod.CASH,
        PaymentMethod.CHECK,
        PaymentMethod.BANK_TRANSFER,
        PaymentMethod.CREDIT_CARD,
        PaymentMethod.OTHER,
    }
)

GATEWAY_PAYMENT_METHODS = frozenset({PaymentMethod.SQUARE_ONLINE, PaymentMethod.CARD_ON_FILE})

PAYMENT_CHANNELS = ("card", "bankAccount", "squareGiftCard", "cashAppPay")
DEFAULT_PAYMENT_CHANNELS = ("card", "bankAccount")


@billing.entity(part_of="Invoice")
class LineItem:
    """One billable entry. ``line_total`` is always quantity * unit_price."""

    position = Integer(required=True, min_value=0)
    description = String(required=True, max_length=500)
    quantity = Integer(required=True, min_value=0)
    unit_price = Integer(required=True, min_value=0)
    line_total = Integer(required=True, min_value=0)
    milestone_id = Identifier()


@billing.entity(part_of="Invoice")
class Payment:
    """A payment applied against the invoice. Never edited once recorded."""

    sequence = Integer(required=True, min_value=1)
    amount = Integer(required=True, min_value=1)
    method = String(required=True, max_length=50, choices=PaymentMethod)
    external_transaction_id = String(max_length=255)
    paid_at = DateTime(required=True)
    note = String(max_length=1000)
    recorded_by = Identifier(required=True)


@billing.entity(part_of="Invoice")
class Refund:
    """Money returned from a paid invoice; a compensating ledger entry."""

    sequence = Integer(required=True, min_value=1)
    amount = Integer(required=True, min_value=1)
    reason = String(required=True, max_length=500)
    external_refund_id = String(max_length=255)
    refunded_at = DateTime(required=True)
    recorded_by = Identifier(required=True)


@billing.aggregate
class Invoice:
    invoice_number = String(required=True, max_length=50)
    title = String(required=True, max_length=255)
    description = Text()

    client_id = Identifier(required=True)
    payer_ids = Text(default="[]")  # JSON list of additional payer ids
    project_id = Identifier()

    line_items = HasMany(LineItem)
    payments = HasMany(Payment)
    refunds = HasMany(Refund)

    tax_rate = String(max_length=20, default="0")  # decimal fraction, kept as text to stay exact
    subtotal = Integer(default=0)
    tax_amount = Integer(default=0)
    discount_amount = Integer(default=0)
    total_amount = Integer(default=0)
    amount_paid = Integer(default=0)
    amount_due = Integer(default=0)

    status = String(
        max_length=20,
        choices=InvoiceStatus,
        default=InvoiceStatus.DRAFT.value,
    )

    issue_date = Date(required=True)
    due_date = Date(required=True)
    scheduled_send_date = Date()
    sent_at = DateTime()
    paid_at = DateTime()
    canceled_at = DateTime()
    refunded_at = DateTime()

    accepted_channels = Text(default=json.dumps(list(DEFAULT_PAYMENT_CHANNELS)))
    allow_partial_payments = Boolean(default=True)
    auto_pay_enabled = Boolean(default=False)
    card_on_file_id = String(max_length=255)

    payment_url = String(max_length=1000)
    payment_link_id = String(max_length=255)
    payment_link_amount = Integer()
    gateway_order_id = String(max_length=255)
    gateway_invoice_id = String(max_length=255)

    reminders_sent = Integer(default=0)
    last_reminder_at = DateTime()

    customer_notes = Text()
    internal_notes = Text()
    cancel_reason = String(max_length=500)

    revision = Integer(default=0)
    created_by = Identifier(required=True)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Invariants
    # -------------------------------------------------------------------
    @invariant.post
    def totals_must_add_up(self):
        if self.total_amount != self.subtotal + self.tax_amount - self.discount_amount:
            raise ValidationError({"total_amount": ["Total must equal subtotal + tax - discount"]})
        if self.amount_paid + self.amount_due != self.total_amount:
            raise ValidationError({"amount_due": ["Amount paid and amount due must add up to the total"]})

    @invariant.post
    def balances_cannot_be_negative(self):
        if self.amount_due < 0 or self.amount_paid < 0:
            raise ValidationError({"amount_due": ["Balances cannot be negative"]})

    @invariant.post
    def paid_status_matches_balance(self):
        settled = self.amount_due == 0 and self.amount_paid > 0
        if (self.status == InvoiceStatus.PAID.value) != settled:
            raise ValidationError({"status": ["Invoice is PAID exactly when it is settled in full"]})

    @invariant.post
    def partially_paid_has_partial_balance(self):
        if self.status == InvoiceStatus.PARTIALLY_PAID.value and not (0 < self.amount_paid < self.total_amount):
            raise ValidationError({"status": ["PARTIALLY_PAID requires a partial balance"]})

    # -------------------------------------------------------------------
    # Read helpers
    # -------------------------------------------------------------------
    @property
    def current_status(self) -> InvoiceStatus:
        return InvoiceStatus(self.status)

    @property
    def ordered_line_items(self) -> list:
        return sorted(self.line_items or [], key=lambda item: item.position)

    @property
    def ordered_payments(self) -> list:
        return sorted(self.payments or [], key=lambda payment: payment.sequence)

    @property
    def ordered_refunds(self) -> list:
        return sorted(self.refunds or [], key=lambda refund: refund.sequence)

    @property
    def gateway_amount_paid(self) -> int:
        """Cents collected through the payment processor; manual entries excluded."""
        return sum(
            payment.amount
            for payment in (self.payments or [])
            if payment.external_transaction_id or PaymentMethod(payment.method) in GATEWAY_PAYMENT_METHODS
        )

    @property
    def payer_id_list(self) -> list[str]:
        return json.loads(self.payer_ids) if self.payer_ids else []

    @property
    def accepted_channel_list(self) -> list[str]:
        return json.loads(self.accepted_channels) if self.accepted_channels else []

    def can_be_paid_by(self, user_id: str) -> bool:
        return str(user_id) == str(self.client_id) or str(user_id) in self.payer_id_list

    def find_payment_by_transaction(self, transaction_id: str):
        if not transaction_id:
            return None
        return next(
            (p for p in (self.payments or []) if p.external_transaction_id == transaction_id),
            None,
        )

    def outstanding_payment_url(self) -> str | None:
        """The stored payment link, if it still targets the current balance."""
        if self.current_status not in PAYABLE_STATUSES or not self.payment_url:
            return None
        if self.payment_link_amount != self.amount_due:
            return None
        return self.payment_url

    # -------------------------------------------------------------------
    # State transition helpers
    # -------------------------------------------------------------------
    def _touch(self, now: datetime) -> None:
        self.updated_at = now
        self.revision = (self.revision or 0) + 1

    def apply_transition(self, event: InvoiceEvent, now: datetime, amount_due: int | None = None) -> InvoiceStatus:
        """Move to the status ``event`` leads to. The ledger uses this for payment events."""
        target = next_status(self.current_status, event, amount_due)
        self.status = target.value
        self._touch(now)
        return target

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def schedule(self, send_date: date, now: datetime | None = None) -> None:
        """Schedule a draft to be sent on ``send_date``."""
        now = now or datetime.now(UTC)
        if send_date is None or send_date <= now.date():
            raise ValidationError({"scheduled_send_date": ["Scheduled send date must be in the future"]})
        if send_date > self.due_date:
            raise ValidationError({"scheduled_send_date": ["Scheduled send date cannot be after the due date"]})

        with atomic_change(self):
            self.apply_transition(InvoiceEvent.SCHEDULE, now)
            self.scheduled_send_date = send_date

        self.raise_(
            InvoiceScheduled(
                invoice_id=str(self.id),
                scheduled_send_date=send_date,
                scheduled_at=now,
            )
        )

    def send(self, now: datetime | None = None) -> None:
        """Deliver/publish the invoice to its client."""
        now = now or datetime.now(UTC)
        with atomic_change(self):
            self.apply_transition(InvoiceEvent.SEND, now)
            self.sent_at = now

        self.raise_(
            InvoiceSent(
                invoice_id=str(self.id),
                invoice_number=self.invoice_number,
                client_id=str(self.client_id),
                amount_due=self.amount_due,
                due_date=self.due_date,
                sent_at=now,
            )
        )

    def mark_overdue(self, now: datetime | None = None) -> None:
        """Apply DueDateElapsed. The caller decides the due date has passed."""
        now = now or datetime.now(UTC)
        self.apply_transition(InvoiceEvent.DUE_DATE_ELAPSED, now, amount_due=self.amount_due)

        self.raise_(
            InvoiceMarkedOverdue(
                invoice_id=str(self.id),
                client_id=str(self.client_id),
                amount_due=self.amount_due,
                due_date=self.due_date,
                marked_at=now,
            )
        )

    def cancel(self, canceled_by: str, reason: str | None = None, now: datetime | None = None) -> None:
        now = now or datetime.now(UTC)
        with atomic_change(self):
            self.apply_transition(InvoiceEvent.CANCEL, now)
            self.canceled_at = now
            self.cancel_reason = reason
            self.payment_url = None

        self.raise_(
            InvoiceCanceled(
                invoice_id=str(self.id),
                reason=reason,
                canceled_by=str(canceled_by),
                canceled_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Gateway bookkeeping and reminders
    # -------------------------------------------------------------------
    def attach_payment_link(
        self,
        payment_url: str,
        amount: int,
        link_id: str | None = None,
        order_id: str | None = None,
        now: datetime | None = None,
    ) -> None:
        """Remember the hosted payment link created for ``amount``."""
        if self.current_status not in PAYABLE_STATUSES:
            raise PaymentNotAcceptedError(self.current_status)
        if amount != self.amount_due:
            raise ValidationError({"amount": ["Payment link must target the current amount due"]})

        now = now or datetime.now(UTC)
        with atomic_change(self):
            self.payment_url = payment_url
            self.payment_link_id = link_id
            self.payment_link_amount = amount
            if order_id:
                self.gateway_order_id = order_id
            self._touch(now)

        self.raise_(
            PaymentLinkAttached(
                invoice_id=str(self.id),
                payment_url=payment_url,
                amount=amount,
                attached_at=now,
            )
        )

    def link_gateway_invoice(self, gateway_invoice_id: str, now: datetime | None = None) -> None:
        """Remember the processor's invoice id so later events can be matched by it."""
        if self.gateway_invoice_id == gateway_invoice_id:
            return
        self.gateway_invoice_id = gateway_invoice_id
        self._touch(now or datetime.now(UTC))

    def record_reminder(self, now: datetime | None = None) -> None:
        if self.current_status not in PAYABLE_STATUSES:
            raise PaymentNotAcceptedError(self.current_status)

        now = now or datetime.now(UTC)
        with atomic_change(self):
            self.reminders_sent = (self.reminders_sent or 0) + 1
            self.last_reminder_at = now
            self._touch(now)

        self.raise_(
            PaymentReminderSent(
                invoice_id=str(self.id),
                reminders_sent=self.reminders_sent,
                sent_at=now,
            )
        )
