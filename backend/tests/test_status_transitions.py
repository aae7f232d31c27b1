# Overview: Pytest coverage for the shared status transition table.

import pytest

from backoffice.errors import StateError, ValidationError
from backoffice.services import status_service
from backoffice.services.status_service import (
    advance_payment_status,
    allowed,
    is_terminal,
    payment_status_for,
    require_transition,
)


class TestDispatchLifecycle:

    @pytest.mark.parametrize("current,target", [
        ("pending", "dispatched"),
        ("pending", "cancelled"),
        ("dispatched", "received"),
        ("dispatched", "cancelled"),
    ])
    def test_allowed_transitions(self, current, target):
        require_transition("dispatch", current, target)

    @pytest.mark.parametrize("current,target", [
        ("pending", "received"),
        ("received", "dispatched"),
        ("received", "cancelled"),
        ("cancelled", "pending"),
        ("dispatched", "pending"),
    ])
    def test_rejected_transitions(self, current, target):
        with pytest.raises(StateError):
            require_transition("dispatch", current, target)

    def test_terminal_states(self):
        assert is_terminal("dispatch", "received")
        assert is_terminal("dispatch", "cancelled")
        assert not is_terminal("dispatch", "pending")

    def test_unknown_target_status(self):
        with pytest.raises(ValidationError):
            require_transition("dispatch", "pending", "shipped")


class TestPaymentLifecycle:

    def test_payment_never_moves_backwards(self):
        assert "unpaid" not in allowed("payment", "partially_paid")
        assert allowed("payment", "paid") == frozenset()

    def test_status_from_amounts(self):
        assert payment_status_for(100, 0) == "unpaid"
        assert payment_status_for(100, 40) == "partially_paid"
        assert payment_status_for(100, 100) == "paid"

    def test_advance_from_unpaid_to_paid_directly(self):
        assert advance_payment_status("unpaid", 100, 100) == "paid"

    def test_advance_keeps_status_when_unchanged(self):
        assert advance_payment_status("partially_paid", 100, 60) == "partially_paid"


class TestQuotationLifecycle:

    def test_active_can_convert_expire_or_cancel(self):
        assert allowed("quotation", "active") == frozenset({"converted", "expired", "cancelled"})

    @pytest.mark.parametrize("current", ["converted", "expired", "cancelled"])
    def test_closed_quotations_are_final(self, current):
        with pytest.raises(StateError):
            require_transition("quotation", current, "active")


def test_every_kind_lists_its_statuses():
    for kind in status_service.TRANSITIONS:
        assert status_service.statuses(kind)
