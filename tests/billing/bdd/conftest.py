"""Shared BDD fixtures and step definitions for the Billing domain."""

import json
from datetime import UTC, datetime, timedelta

import pytest
from billing.exceptions import IllegalTransitionError, InvalidPaymentError
from billing.invoice.creation import CreateInvoice
from billing.invoice.invoice import Invoice
from billing.invoice.payment import RecordGatewayPayment, RecordManualPayment
from billing.invoice.sending import SendInvoice
from protean import current_domain
from pytest_bdd import given, parsers, then, when


def _create_invoice(quantity, unit_price, tax_rate="0", due_in_days=30, publish=False):
    today = datetime.now(UTC).date()
    command = CreateInvoice(
        client_id="client-001",
        title="Remodel",
        line_items=json.dumps([{"description": "Work", "quantity": quantity, "unit_price": unit_price}]),
        tax_rate=tax_rate,
        issue_date=min(today, today + timedelta(days=due_in_days)),
        due_date=today + timedelta(days=due_in_days),
        created_by="admin-1",
        publish=publish,
    )
    return current_domain.process(command, asynchronous=False)


@pytest.fixture()
def outcome():
    return {}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(
    parsers.cfparse('an invoice with {quantity:d} x {unit_price:d} cents at a tax rate of "{tax_rate}"'),
    target_fixture="invoice_id",
)
def _draft_invoice(quantity, unit_price, tax_rate):
    return _create_invoice(quantity, unit_price, tax_rate)


@given(
    parsers.cfparse('a sent invoice with {quantity:d} x {unit_price:d} cents at a tax rate of "{tax_rate}"'),
    target_fixture="invoice_id",
)
def _sent_invoice(quantity, unit_price, tax_rate):
    return _create_invoice(quantity, unit_price, tax_rate, publish=True)


@given(
    parsers.cfparse("a sent invoice with {quantity:d} x {unit_price:d} cents that was due {days:d} days ago"),
    target_fixture="invoice_id",
)
def _past_due_invoice(quantity, unit_price, days):
    return _create_invoice(quantity, unit_price, due_in_days=-days, publish=True)


# ---------------------------------------------------------------------------
# When steps (also usable as Given)
# ---------------------------------------------------------------------------
@when("the invoice is sent")
def _send(invoice_id):
    current_domain.process(SendInvoice(invoice_id=invoice_id), asynchronous=False)


@given(parsers.cfparse("a {method} payment of {amount:d} is recorded"))
@when(parsers.cfparse("a {method} payment of {amount:d} is recorded"))
def _manual_payment(invoice_id, method, amount):
    current_domain.process(
        RecordManualPayment(invoice_id=invoice_id, amount_cents=amount, method=method, recorded_by="admin-1"),
        asynchronous=False,
    )


@given(parsers.cfparse('a gateway payment of {amount:d} arrives with transaction "{transaction_id}"'))
@when(parsers.cfparse('a gateway payment of {amount:d} arrives with transaction "{transaction_id}"'))
def _gateway_payment(invoice_id, amount, transaction_id):
    current_domain.process(
        RecordGatewayPayment(invoice_id=invoice_id, amount_cents=amount, transaction_id=transaction_id),
        asynchronous=False,
    )


@when(parsers.cfparse("a {method} payment of {amount:d} is attempted"))
def _attempt_payment(invoice_id, method, amount, outcome):
    try:
        _manual_payment(invoice_id, method, amount)
    except (IllegalTransitionError, InvalidPaymentError) as exc:
        outcome["error"] = exc


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
def _invoice(invoice_id):
    return current_domain.repository_for(Invoice).get(invoice_id)


@then(parsers.cfparse('the invoice status is "{status}"'))
def _status(invoice_id, status):
    assert _invoice(invoice_id).status == status


@then(parsers.cfparse("the subtotal is {amount:d}"))
def _subtotal(invoice_id, amount):
    assert _invoice(invoice_id).subtotal == amount


@then(parsers.cfparse("the tax amount is {amount:d}"))
def _tax_amount(invoice_id, amount):
    assert _invoice(invoice_id).tax_amount == amount


@then(parsers.cfparse("the total amount is {amount:d}"))
def _total_amount(invoice_id, amount):
    assert _invoice(invoice_id).total_amount == amount


@then(parsers.cfparse("the amount due is {amount:d}"))
def _amount_due(invoice_id, amount):
    assert _invoice(invoice_id).amount_due == amount


@then(parsers.cfparse("the amount paid is {amount:d}"))
def _amount_paid(invoice_id, amount):
    assert _invoice(invoice_id).amount_paid == amount


@then(parsers.cfparse("the invoice has {count:d} payments"))
def _payment_count(invoice_id, count):
    assert len(_invoice(invoice_id).payments) == count


@then("the payment is refused")
def _refused(outcome):
    assert isinstance(outcome.get("error"), (IllegalTransitionError, InvalidPaymentError))
