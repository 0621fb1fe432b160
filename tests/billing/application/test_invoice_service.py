"""Application tests for the invoice service: reads, manual payments and payment links."""

import json
from datetime import UTC, datetime, timedelta

import pytest
from billing.exceptions import GatewayError, PaymentNotAcceptedError
from billing.invoice.creation import CreateInvoice
from billing.invoice.invoice import Invoice
from billing.invoice.lifecycle import InvoiceStatus
from billing.invoice.service import get_invoice, record_manual_payment, request_payment_link
from protean import current_domain


def _create_invoice(due_in_days=30, publish=True):
    today = datetime.now(UTC).date()
    command = CreateInvoice(
        client_id="client-001",
        title="Deck staining",
        line_items=json.dumps([{"description": "Stain and seal", "quantity": 1, "unit_price": 60000}]),
        issue_date=min(today, today + timedelta(days=due_in_days)),
        due_date=today + timedelta(days=due_in_days),
        created_by="admin-1",
        publish=publish,
    )
    return current_domain.process(command, asynchronous=False)


class TestGetInvoice:
    def test_refreshes_overdue_on_read(self):
        invoice_id = _create_invoice(due_in_days=-2)
        assert current_domain.repository_for(Invoice).get(invoice_id).status == InvoiceStatus.SENT.value

        invoice = get_invoice(invoice_id)

        assert invoice.status == InvoiceStatus.OVERDUE.value
        assert current_domain.repository_for(Invoice).get(invoice_id).status == InvoiceStatus.OVERDUE.value

    def test_current_invoice_is_unchanged(self):
        invoice_id = _create_invoice()
        invoice = get_invoice(invoice_id)
        assert invoice.status == InvoiceStatus.SENT.value
        assert invoice.revision == 1


class TestRecordManualPayment:
    def test_returns_updated_invoice(self):
        invoice_id = _create_invoice()
        invoice = record_manual_payment(invoice_id, 60000, "CHECK", recorded_by="admin-1", note="Check #1042")
        assert invoice.status == InvoiceStatus.PAID.value
        assert invoice.ordered_payments[0].note == "Check #1042"

    def test_overdue_invoice_can_be_paid(self):
        invoice_id = _create_invoice(due_in_days=-2)
        get_invoice(invoice_id)
        invoice = record_manual_payment(invoice_id, 60000, "CASH", recorded_by="admin-1")
        assert invoice.status == InvoiceStatus.PAID.value


class TestRequestPaymentLink:
    def test_creates_and_stores_link(self, fake_gateway):
        invoice_id = _create_invoice()
        url = request_payment_link(invoice_id, fake_gateway, payer_contact="owner@example.com")

        invoice = current_domain.repository_for(Invoice).get(invoice_id)
        assert url.startswith("https://fake-gateway.test/pay/")
        assert invoice.payment_url == url
        assert invoice.payment_link_amount == 60000
        assert invoice.gateway_order_id.startswith("fake_order_")
        assert fake_gateway.calls[0]["payer_contact"] == "owner@example.com"

    def test_reuses_outstanding_link(self, fake_gateway):
        invoice_id = _create_invoice()
        first = request_payment_link(invoice_id, fake_gateway)
        second = request_payment_link(invoice_id, fake_gateway)
        assert first == second
        assert len([c for c in fake_gateway.calls if c["method"] == "create_payment_link"]) == 1

    def test_new_link_after_partial_payment(self, fake_gateway):
        invoice_id = _create_invoice()
        request_payment_link(invoice_id, fake_gateway)
        record_manual_payment(invoice_id, 10000, "CASH", recorded_by="admin-1")

        request_payment_link(invoice_id, fake_gateway)

        invoice = current_domain.repository_for(Invoice).get(invoice_id)
        assert invoice.payment_link_amount == 50000
        assert fake_gateway.calls[-1]["amount_due"] == 50000

    def test_gateway_failure_leaves_invoice_unchanged(self, fake_gateway):
        invoice_id = _create_invoice()
        fake_gateway.configure(should_succeed=False, failure_reason="Square is down")
        revision = current_domain.repository_for(Invoice).get(invoice_id).revision

        with pytest.raises(GatewayError):
            request_payment_link(invoice_id, fake_gateway)

        invoice = current_domain.repository_for(Invoice).get(invoice_id)
        assert invoice.payment_url is None
        assert invoice.revision == revision

    def test_draft_cannot_be_paid_online(self, fake_gateway):
        invoice_id = _create_invoice(publish=False)
        with pytest.raises(PaymentNotAcceptedError):
            request_payment_link(invoice_id, fake_gateway)
        assert fake_gateway.calls == []
