"""Tests for the invoice status machine's transition table."""

import pytest
from billing.exceptions import IllegalTransitionError
from billing.invoice.lifecycle import (
    TERMINAL_STATUSES,
    InvoiceEvent,
    InvoiceStatus,
    can_apply,
    is_terminal,
    next_status,
)

S = InvoiceStatus
E = InvoiceEvent


class TestAllowedTransitions:
    @pytest.mark.parametrize("source", [S.DRAFT, S.SCHEDULED])
    def test_send(self, source):
        assert next_status(source, E.SEND) == S.SENT

    def test_schedule_from_draft(self):
        assert next_status(S.DRAFT, E.SCHEDULE) == S.SCHEDULED

    @pytest.mark.parametrize("source", [S.SENT, S.PARTIALLY_PAID, S.OVERDUE])
    def test_partial_payment(self, source):
        assert next_status(source, E.PAYMENT_APPLIED, amount_due=500) == S.PARTIALLY_PAID

    @pytest.mark.parametrize("source", [S.SENT, S.PARTIALLY_PAID, S.OVERDUE])
    def test_settling_payment(self, source):
        assert next_status(source, E.PAYMENT_APPLIED, amount_due=0) == S.PAID

    @pytest.mark.parametrize("source", [S.SENT, S.PARTIALLY_PAID])
    def test_due_date_elapsed(self, source):
        assert next_status(source, E.DUE_DATE_ELAPSED, amount_due=1) == S.OVERDUE

    @pytest.mark.parametrize("source", [S.DRAFT, S.SCHEDULED, S.SENT, S.PARTIALLY_PAID, S.OVERDUE])
    def test_cancel(self, source):
        assert next_status(source, E.CANCEL) == S.CANCELED

    def test_refund_from_paid(self):
        assert next_status(S.PAID, E.REFUND) == S.REFUNDED


class TestIllegalTransitions:
    @pytest.mark.parametrize("terminal", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
    @pytest.mark.parametrize("event", [E.SEND, E.SCHEDULE, E.PAYMENT_APPLIED, E.DUE_DATE_ELAPSED, E.CANCEL])
    def test_terminal_states_reject_everything(self, terminal, event):
        with pytest.raises(IllegalTransitionError):
            next_status(terminal, event, amount_due=100)

    def test_refund_is_only_for_paid(self):
        for status in (S.CANCELED, S.REFUNDED, S.SENT, S.PARTIALLY_PAID):
            with pytest.raises(IllegalTransitionError):
                next_status(status, E.REFUND)

    def test_draft_cannot_take_payment(self):
        with pytest.raises(IllegalTransitionError):
            next_status(S.DRAFT, E.PAYMENT_APPLIED, amount_due=0)

    def test_overdue_is_not_marked_twice(self):
        with pytest.raises(IllegalTransitionError):
            next_status(S.OVERDUE, E.DUE_DATE_ELAPSED, amount_due=100)

    def test_due_date_elapsed_needs_a_balance(self):
        with pytest.raises(IllegalTransitionError):
            next_status(S.SENT, E.DUE_DATE_ELAPSED, amount_due=0)

    def test_schedule_only_from_draft(self):
        with pytest.raises(IllegalTransitionError):
            next_status(S.SCHEDULED, E.SCHEDULE)

    def test_error_names_event_and_state(self):
        with pytest.raises(IllegalTransitionError) as exc_info:
            next_status(S.CANCELED, E.SEND)
        assert exc_info.value.event == E.SEND
        assert exc_info.value.current_status == S.CANCELED
        assert "Send" in str(exc_info.value)
        assert "CANCELED" in str(exc_info.value)

    def test_accepts_string_values(self):
        assert next_status("DRAFT", "Send") == S.SENT


class TestHelpers:
    def test_can_apply(self):
        assert can_apply(S.DRAFT, E.SEND)
        assert not can_apply(S.PAID, E.CANCEL)

    def test_is_terminal(self):
        assert is_terminal(S.PAID)
        assert is_terminal("REFUNDED")
        assert not is_terminal(S.OVERDUE)
