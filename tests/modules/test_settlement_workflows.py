"""
Tests for the settlement and cost allocation state machines.
"""

from types import SimpleNamespace
from uuid import uuid4

import pytest

from windpark_kernel.exceptions import AllocationStateError, SettlementStateError
from windpark_modules.lease_revenue.workflows import (
    COST_ALLOCATION_WORKFLOW,
    LEASE_REVENUE_SETTLEMENT_WORKFLOW,
    require_allocation_transition,
    require_settlement_transition,
)


def row(status):
    return SimpleNamespace(id=uuid4(), status=status)


class TestSettlementWorkflow:
    """Tests for LEASE_REVENUE_SETTLEMENT_WORKFLOW."""

    @pytest.mark.parametrize(
        "status, action, target",
        [
            ("OPEN", "calculate", "CALCULATED"),
            ("CALCULATED", "calculate", "CALCULATED"),
            ("CALCULATED", "create_advance_invoices", "ADVANCE_CREATED"),
            ("CALCULATED", "create_settlement_invoices", "SETTLED"),
            ("ADVANCE_CREATED", "create_settlement_invoices", "SETTLED"),
            ("ADVANCE_CREATED", "submit_for_review", "PENDING_REVIEW"),
            ("SETTLED", "submit_for_review", "PENDING_REVIEW"),
            ("PENDING_REVIEW", "approve", "APPROVED"),
            ("APPROVED", "close", "CLOSED"),
        ],
    )
    def test_allowed(self, status, action, target):
        assert require_settlement_transition(row(status), action).to_state == target

    @pytest.mark.parametrize(
        "status, action",
        [
            ("SETTLED", "calculate"),
            ("OPEN", "create_advance_invoices"),
            ("ADVANCE_CREATED", "create_advance_invoices"),
            ("CALCULATED", "approve"),
            ("PENDING_REVIEW", "close"),
        ],
    )
    def test_rejected(self, status, action):
        with pytest.raises(SettlementStateError) as exc_info:
            require_settlement_transition(row(status), action)
        assert exc_info.value.current_status == status

    def test_closed_is_terminal(self):
        assert LEASE_REVENUE_SETTLEMENT_WORKFLOW.terminal_states == ("CLOSED",)
        assert not any(
            t.from_state == "CLOSED" for t in LEASE_REVENUE_SETTLEMENT_WORKFLOW.transitions
        )

    def test_rejection_logged(self, captured_logs):
        with pytest.raises(SettlementStateError):
            require_settlement_transition(row("CLOSED"), "calculate")
        record = next(r for r in captured_logs() if r["message"] == "settlement_transition_rejected")
        assert record["action"] == "calculate"
        assert record["level"] == "WARNING"


class TestAllocationWorkflow:
    """Tests for COST_ALLOCATION_WORKFLOW."""

    def test_lifecycle(self):
        assert require_allocation_transition(row("DRAFT"), "create_invoices").to_state == "INVOICED"
        assert require_allocation_transition(row("INVOICED"), "close").to_state == "CLOSED"

    def test_draft_cannot_close(self):
        with pytest.raises(AllocationStateError) as exc_info:
            require_allocation_transition(row("DRAFT"), "close")
        assert exc_info.value.allowed == ("INVOICED",)

    def test_initial_state(self):
        assert COST_ALLOCATION_WORKFLOW.initial_state == "DRAFT"
