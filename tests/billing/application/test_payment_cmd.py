"""Application tests for recording manual and gateway payments."""

import json
from datetime import UTC, datetime, timedelta

import pytest
from billing.exceptions import ConcurrentUpdateError, InvalidPaymentError, PaymentNotAcceptedError
from billing.invoice.creation import CreateInvoice
from billing.invoice.invoice import Invoice, PaymentMethod
from billing.invoice.lifecycle import InvoiceStatus
from billing.invoice.payment import RecordGatewayPayment, RecordManualPayment
from protean import current_domain


def _create_invoice(amount=100000, publish=True, allow_partial_payments=True):
    command = CreateInvoice(
        client_id="client-001",
        title="Bathroom tile",
        line_items=json.dumps([{"description": "Tile work", "quantity": 1, "unit_price": amount}]),
        due_date=datetime.now(UTC).date() + timedelta(days=30),
        created_by="admin-1",
        publish=publish,
        allow_partial_payments=allow_partial_payments,
    )
    return current_domain.process(command, asynchronous=False)


def _get(invoice_id):
    return current_domain.repository_for(Invoice).get(invoice_id)


def _manual(invoice_id, amount, method="CHECK", **kwargs):
    return current_domain.process(
        RecordManualPayment(invoice_id=invoice_id, amount_cents=amount, method=method, recorded_by="admin-1", **kwargs),
        asynchronous=False,
    )


def _gateway(invoice_id, amount, transaction_id):
    return current_domain.process(
        RecordGatewayPayment(invoice_id=invoice_id, amount_cents=amount, transaction_id=transaction_id),
        asynchronous=False,
    )


class TestManualPayment:
    def test_partial_then_full(self):
        invoice_id = _create_invoice()

        _manual(invoice_id, 40000)
        invoice = _get(invoice_id)
        assert invoice.status == InvoiceStatus.PARTIALLY_PAID.value
        assert invoice.amount_paid == 40000
        assert invoice.amount_due == 60000

        _manual(invoice_id, 60000, method="BANK_TRANSFER")
        invoice = _get(invoice_id)
        assert invoice.status == InvoiceStatus.PAID.value
        assert invoice.amount_due == 0
        assert invoice.paid_at is not None
        assert [p.amount for p in invoice.ordered_payments] == [40000, 60000]

    def test_returns_payment_id(self):
        invoice_id = _create_invoice()
        payment_id = _manual(invoice_id, 1000, note="Deposit")
        payment = _get(invoice_id).ordered_payments[0]
        assert str(payment.id) == payment_id
        assert payment.note == "Deposit"
        assert payment.recorded_by == "admin-1"

    def test_overpayment_is_rejected(self):
        invoice_id = _create_invoice()
        with pytest.raises(InvalidPaymentError):
            _manual(invoice_id, 100001)
        assert _get(invoice_id).amount_paid == 0

    def test_gateway_method_is_not_manual(self):
        invoice_id = _create_invoice()
        with pytest.raises(InvalidPaymentError):
            _manual(invoice_id, 1000, method=PaymentMethod.SQUARE_ONLINE.value)

    def test_unknown_method(self):
        invoice_id = _create_invoice()
        with pytest.raises(InvalidPaymentError):
            _manual(invoice_id, 1000, method="IOU")

    def test_draft_does_not_accept_payments(self):
        invoice_id = _create_invoice(publish=False)
        with pytest.raises(PaymentNotAcceptedError):
            _manual(invoice_id, 1000)

    def test_partial_payments_can_be_disabled(self):
        invoice_id = _create_invoice(allow_partial_payments=False)
        with pytest.raises(InvalidPaymentError):
            _manual(invoice_id, 1000)
        _manual(invoice_id, 100000)
        assert _get(invoice_id).status == InvoiceStatus.PAID.value

    def test_stale_revision(self):
        invoice_id = _create_invoice()
        revision = _get(invoice_id).revision
        _manual(invoice_id, 1000, expected_revision=revision)
        with pytest.raises(ConcurrentUpdateError):
            _manual(invoice_id, 1000, expected_revision=revision)
        assert _get(invoice_id).amount_paid == 1000


class TestGatewayPayment:
    def test_records_transaction_id(self):
        invoice_id = _create_invoice()
        _gateway(invoice_id, 100000, "sq-txn-1")
        invoice = _get(invoice_id)
        assert invoice.status == InvoiceStatus.PAID.value
        payment = invoice.ordered_payments[0]
        assert payment.external_transaction_id == "sq-txn-1"
        assert payment.method == PaymentMethod.SQUARE_ONLINE.value

    def test_replayed_transaction_is_a_no_op(self):
        invoice_id = _create_invoice()
        first = _gateway(invoice_id, 25000, "sq-txn-1")
        second = _gateway(invoice_id, 25000, "sq-txn-1")

        assert first == second
        invoice = _get(invoice_id)
        assert invoice.amount_paid == 25000
        assert len(invoice.payments) == 1

    def test_replay_after_invoice_is_paid(self):
        invoice_id = _create_invoice()
        first = _gateway(invoice_id, 100000, "sq-txn-1")
        assert _gateway(invoice_id, 100000, "sq-txn-1") == first
        assert _get(invoice_id).amount_paid == 100000
