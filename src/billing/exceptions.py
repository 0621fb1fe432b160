"""Error taxonomy for invoice processing.

Every error here is local to a single invoice. Construction and payment
errors extend Protean's ``ValidationError`` so they carry a field-keyed
``messages`` dict like the rest of the domain's validation failures.
"""

from protean.exceptions import ValidationError


class InvalidPaymentError(ValidationError):
    """A payment amount or request the ledger refuses to apply."""


class IllegalTransitionError(ValidationError):
    """An event was requested against a status that forbids it."""

    def __init__(self, event, current_status, messages=None):
        self.event = event
        self.current_status = current_status
        event_name = getattr(event, "value", event)
        status_name = getattr(current_status, "value", current_status)
        super().__init__(messages or {"status": [f"Cannot apply {event_name} to an invoice in {status_name}"]})


class PaymentNotAcceptedError(InvalidPaymentError, IllegalTransitionError):
    """The invoice's status does not accept payments (draft or terminal)."""

    def __init__(self, current_status):
        status_name = getattr(current_status, "value", current_status)
        IllegalTransitionError.__init__(
            self,
            "PaymentApplied",
            current_status,
            {"status": [f"Invoice in {status_name} cannot accept payments"]},
        )


class DuplicatePaymentError(Exception):
    """A gateway transaction id that is already on the ledger.

    Soft error: callers treat it as a successful no-op.
    """

    def __init__(self, entry, transaction_id):
        self.entry = entry
        self.transaction_id = transaction_id
        super().__init__(f"Transaction {transaction_id} already recorded")


class ConcurrentUpdateError(Exception):
    """The invoice changed since the caller last read it."""

    def __init__(self, invoice_id, expected_revision, actual_revision):
        self.invoice_id = invoice_id
        self.expected_revision = expected_revision
        self.actual_revision = actual_revision
        super().__init__(
            f"Invoice {invoice_id} is at revision {actual_revision}, expected {expected_revision}"
        )


class GatewayError(Exception):
    """The payment processor failed, timed out or answered with an error."""

    def __init__(self, detail, status_code=None):
        self.detail = detail
        self.status_code = status_code
        message = f"Gateway error ({status_code}): {detail}" if status_code else f"Gateway error: {detail}"
        super().__init__(message)


__all__ = [
    "ConcurrentUpdateError",
    "DuplicatePaymentError",
    "GatewayError",
    "IllegalTransitionError",
    "InvalidPaymentError",
    "PaymentNotAcceptedError",
    "ValidationError",
]
