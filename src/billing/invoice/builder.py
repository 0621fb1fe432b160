"""Invoice builder: turns an InvoiceDraft into a computed DRAFT invoice.

Computation order is fixed: line totals → subtotal → tax → discount → grand
total → ``amount_paid = 0``/``amount_due = total``. Tax uses round-half-up,
so building twice from the same inputs always gives the same totals.
Nothing is persisted here.
"""

import json
from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import Decimal

from protean.exceptions import ValidationError

from billing.invoice.events import InvoiceCreated
from billing.invoice.invoice import DEFAULT_PAYMENT_CHANNELS, PAYMENT_CHANNELS, Invoice, LineItem
from billing.shared.money import Cents, compute_tax, parse_rate


@dataclass(frozen=True)
class LineItemDraft:
    description: str
    quantity: int
    unit_price: int  # cents
    milestone_id: str | None = None


@dataclass(frozen=True)
class InvoiceDraft:
    client_id: str
    title: str
    line_items: tuple[LineItemDraft, ...]
    due_date: date
    tax_rate: Decimal | str | int = 0
    discount_amount: int = 0
    issue_date: date | None = None
    project_id: str | None = None
    payer_ids: tuple[str, ...] = ()
    description: str | None = None
    scheduled_send_date: date | None = None
    accepted_channels: tuple[str, ...] = DEFAULT_PAYMENT_CHANNELS
    allow_partial_payments: bool = True
    auto_pay_enabled: bool = False
    card_on_file_id: str | None = None
    customer_notes: str | None = None
    internal_notes: str | None = None


@dataclass(frozen=True)
class InvoiceTotals:
    line_totals: tuple[Cents, ...]
    subtotal: Cents
    tax_amount: Cents
    discount_amount: Cents
    total_amount: Cents


def _whole_number(value, field_name: str, position: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError({field_name: [f"Line {position + 1}: {field_name} must be a whole number"]})
    if value < 0:
        raise ValidationError({field_name: [f"Line {position + 1}: {field_name} cannot be negative"]})
    return value


def compute_totals(line_items, tax_rate=0, discount_amount=0) -> InvoiceTotals:
    """Compute canonical totals for ``line_items``.

    Raises ValidationError for an empty item list, negative or fractional
    quantities/prices, an out-of-range tax rate, or a discount larger than
    subtotal + tax.
    """
    items = list(line_items)
    if not items:
        raise ValidationError({"line_items": ["An invoice needs at least one line item"]})

    line_totals = []
    for position, item in enumerate(items):
        quantity = _whole_number(item.quantity, "quantity", position)
        unit_price = _whole_number(item.unit_price, "unit_price", position)
        line_totals.append(Cents(quantity) * unit_price)

    subtotal = Cents.sum(line_totals)
    tax_amount = compute_tax(subtotal, parse_rate(tax_rate))

    if isinstance(discount_amount, bool) or not isinstance(discount_amount, int):
        raise ValidationError({"discount_amount": ["Discount must be a whole number of cents"]})
    discount = Cents(discount_amount)
    if discount < 0:
        raise ValidationError({"discount_amount": ["Discount cannot be negative"]})
    if discount > subtotal + tax_amount:
        raise ValidationError({"discount_amount": ["Discount cannot exceed subtotal plus tax"]})

    return InvoiceTotals(
        line_totals=tuple(line_totals),
        subtotal=subtotal,
        tax_amount=tax_amount,
        discount_amount=discount,
        total_amount=subtotal + tax_amount - discount,
    )


def build_invoice(
    draft: InvoiceDraft,
    invoice_number: str,
    created_by: str,
    now: datetime | None = None,
) -> Invoice:
    """Build a fully computed Invoice in DRAFT status from ``draft``."""
    now = now or datetime.now(UTC)
    issue_date = draft.issue_date or now.date()

    totals = compute_totals(draft.line_items, draft.tax_rate, draft.discount_amount)

    if draft.due_date is None:
        raise ValidationError({"due_date": ["Due date is required"]})
    if draft.due_date < issue_date:
        raise ValidationError({"due_date": ["Due date cannot precede the issue date"]})
    if not (draft.title or "").strip():
        raise ValidationError({"title": ["Invoice title is required"]})

    unknown = [channel for channel in draft.accepted_channels if channel not in PAYMENT_CHANNELS]
    if unknown:
        raise ValidationError({"accepted_channels": [f"Unknown payment channels: {', '.join(unknown)}"]})

    invoice = Invoice(
        invoice_number=invoice_number,
        title=draft.title.strip(),
        description=draft.description,
        client_id=draft.client_id,
        payer_ids=json.dumps([str(payer) for payer in draft.payer_ids]),
        project_id=draft.project_id,
        tax_rate=str(parse_rate(draft.tax_rate)),
        subtotal=totals.subtotal,
        tax_amount=totals.tax_amount,
        discount_amount=totals.discount_amount,
        total_amount=totals.total_amount,
        amount_paid=0,
        amount_due=totals.total_amount,
        issue_date=issue_date,
        due_date=draft.due_date,
        scheduled_send_date=draft.scheduled_send_date,
        accepted_channels=json.dumps(list(draft.accepted_channels)),
        allow_partial_payments=draft.allow_partial_payments,
        auto_pay_enabled=draft.auto_pay_enabled,
        card_on_file_id=draft.card_on_file_id,
        customer_notes=draft.customer_notes,
        internal_notes=draft.internal_notes,
        created_by=created_by,
        created_at=now,
        updated_at=now,
    )
    for position, (item, line_total) in enumerate(zip(draft.line_items, totals.line_totals, strict=True)):
        invoice.add_line_items(
            LineItem(
                position=position,
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                line_total=line_total,
                milestone_id=item.milestone_id,
            )
        )

    invoice.raise_(
        InvoiceCreated(
            invoice_id=str(invoice.id),
            invoice_number=invoice_number,
            client_id=str(draft.client_id),
            project_id=draft.project_id,
            title=invoice.title,
            total_amount=totals.total_amount,
            due_date=draft.due_date,
            created_by=str(created_by),
            created_at=now,
        )
    )
    return invoice
