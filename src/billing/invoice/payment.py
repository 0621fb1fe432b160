"""Payment recording: manual and gateway payment commands and handler.

Manual payments are entered by an admin for money received outside the
gateway. Gateway payments come from webhooks or status polling and always
carry the processor's transaction id; replays of a known id are no-ops.
"""

from datetime import UTC, datetime

import structlog
from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from billing.domain import billing
from billing.exceptions import DuplicatePaymentError, InvalidPaymentError
from billing.invoice.invoice import GATEWAY_PAYMENT_METHODS, MANUAL_PAYMENT_METHODS, Invoice, PaymentMethod
from billing.invoice.ledger import PaymentRequest, record_payment
from billing.invoice.loading import load_for_update

logger = structlog.get_logger(__name__)

GATEWAY_ACTOR = "gateway"


@billing.command(part_of="Invoice")
class RecordManualPayment:
    """Record cash, check, transfer or other payment received off-gateway."""

    invoice_id = Identifier(required=True)
    amount_cents = Integer(required=True)
    method = String(required=True, max_length=50)
    note = String(max_length=1000)
    recorded_by = Identifier(required=True)
    expected_revision = Integer()


@billing.command(part_of="Invoice")
class RecordGatewayPayment:
    """Apply a payment confirmed by the payment processor."""

    invoice_id = Identifier(required=True)
    amount_cents = Integer(required=True)
    transaction_id = String(required=True, max_length=255)
    method = String(max_length=50, default=PaymentMethod.SQUARE_ONLINE.value)
    note = String(max_length=1000)


def _method_from(value, allowed) -> PaymentMethod:
    try:
        method = PaymentMethod(value)
    except ValueError:
        raise InvalidPaymentError({"method": [f"Unknown payment method: {value}"]}) from None
    if method not in allowed:
        raise InvalidPaymentError({"method": [f"{method.value} cannot be used here"]})
    return method


@billing.command_handler(part_of=Invoice)
class PaymentHandler:
    @handle(RecordManualPayment)
    def record_manual_payment(self, command):
        method = _method_from(command.method, MANUAL_PAYMENT_METHODS)
        invoice = load_for_update(command.invoice_id, command.expected_revision)
        _, payment = record_payment(
            invoice,
            PaymentRequest(amount=command.amount_cents, method=method, note=command.note),
            actor_id=str(command.recorded_by),
            now=datetime.now(UTC),
        )
        current_domain.repository_for(Invoice).add(invoice)
        return str(payment.id)

    @handle(RecordGatewayPayment)
    def record_gateway_payment(self, command):
        method = _method_from(command.method, GATEWAY_PAYMENT_METHODS)
        invoice = load_for_update(command.invoice_id)
        try:
            _, payment = record_payment(
                invoice,
                PaymentRequest(
                    amount=command.amount_cents,
                    method=method,
                    note=command.note,
                    external_transaction_id=command.transaction_id,
                ),
                actor_id=GATEWAY_ACTOR,
                now=datetime.now(UTC),
            )
        except DuplicatePaymentError as exc:
            return str(exc.entry.id)

        current_domain.repository_for(Invoice).add(invoice)
        return str(payment.id)
