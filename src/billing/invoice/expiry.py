"""Overdue marking: command, handler and the periodic sweep.

The sweep is meant to be triggered by an external scheduler (cron, K8s
CronJob) through the maintenance endpoint. It is idempotent: each invoice is
re-checked under its lock before anything changes, so running it twice in a
row, or alongside a payment, is harmless.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import DateTime, Identifier
from protean.utils.globals import current_domain

from billing.domain import billing
from billing.exceptions import ConcurrentUpdateError
from billing.invoice.invoice import Invoice
from billing.invoice.lifecycle import InvoiceStatus
from billing.invoice.loading import load_for_update
from billing.invoice.locking import process_locked
from billing.invoice.overdue import ELAPSABLE_STATUSES, needs_overdue_transition
from billing.invoice.sending import SendInvoice

logger = structlog.get_logger(__name__)


@billing.command(part_of="Invoice")
class MarkInvoiceOverdue:
    """Apply DueDateElapsed if the invoice is still overdue as of ``as_of``."""

    invoice_id = Identifier(required=True)
    as_of = DateTime()  # Optional: defaults to now


@billing.command_handler(part_of=Invoice)
class MarkInvoiceOverdueHandler:
    @handle(MarkInvoiceOverdue)
    def mark_overdue(self, command):
        as_of = command.as_of or datetime.now(UTC)
        invoice = load_for_update(command.invoice_id)
        if not needs_overdue_transition(invoice, as_of):
            return False

        invoice.mark_overdue(now=as_of)
        current_domain.repository_for(Invoice).add(invoice)
        logger.info(
            "Marked invoice as overdue",
            invoice_id=str(invoice.id),
            due_date=str(invoice.due_date),
            amount_due=invoice.amount_due,
        )
        return True


@dataclass
class SweepResult:
    marked_overdue: list[str] = field(default_factory=list)
    sent: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


def _invoices_in(status: InvoiceStatus) -> list:
    return current_domain.repository_for(Invoice)._dao.query.filter(status=status.value).all().items


def sweep_invoices(now: datetime | None = None) -> SweepResult:
    """Mark elapsed invoices overdue and send scheduled invoices that are due."""
    now = now or datetime.now(UTC)
    result = SweepResult()

    logger.info("Running invoice sweep", as_of=now.isoformat())

    for status in sorted(ELAPSABLE_STATUSES, key=lambda s: s.value):
        for invoice in _invoices_in(status):
            if not needs_overdue_transition(invoice, now):
                continue
            try:
                if process_locked(invoice.id, MarkInvoiceOverdue(invoice_id=invoice.id, as_of=now)):
                    result.marked_overdue.append(str(invoice.id))
            except (ValidationError, ObjectNotFoundError, ConcurrentUpdateError) as exc:
                result.failed.append(str(invoice.id))
                logger.warning("Failed to mark invoice overdue", invoice_id=str(invoice.id), error=str(exc))

    for invoice in _invoices_in(InvoiceStatus.SCHEDULED):
        if not invoice.scheduled_send_date or invoice.scheduled_send_date > now.date():
            continue
        try:
            process_locked(invoice.id, SendInvoice(invoice_id=invoice.id, expected_revision=invoice.revision))
            result.sent.append(str(invoice.id))
        except (ValidationError, ObjectNotFoundError, ConcurrentUpdateError) as exc:
            result.failed.append(str(invoice.id))
            logger.warning("Failed to send scheduled invoice", invoice_id=str(invoice.id), error=str(exc))

    logger.info(
        "Invoice sweep complete",
        marked_overdue=len(result.marked_overdue),
        sent=len(result.sent),
        failed=len(result.failed),
    )
    return result
