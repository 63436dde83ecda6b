"""Lease Revenue Workflows.

State machines for the landowner settlement and the operator cost
allocation.  Service operations check their transition here before
touching any row.
"""

from windpark_kernel.domain.workflow import Transition, Workflow
from windpark_kernel.exceptions import AllocationStateError, SettlementStateError
from windpark_kernel.logging_config import get_logger

logger = get_logger("modules.lease_revenue.workflows")


LEASE_REVENUE_SETTLEMENT_WORKFLOW = Workflow(
    name="lease_revenue_settlement",
    description="Landowner lease fee settlement (advance or final)",
    initial_state="OPEN",
    states=(
        "OPEN",
        "CALCULATED",
        "ADVANCE_CREATED",
        "SETTLED",
        "PENDING_REVIEW",
        "APPROVED",
        "CLOSED",
    ),
    transitions=(
        Transition("OPEN", "CALCULATED", action="calculate"),
        Transition("CALCULATED", "CALCULATED", action="calculate"),
        Transition("CALCULATED", "ADVANCE_CREATED", action="create_advance_invoices"),
        Transition("CALCULATED", "SETTLED", action="create_settlement_invoices"),
        Transition("ADVANCE_CREATED", "SETTLED", action="create_settlement_invoices"),
        Transition("SETTLED", "PENDING_REVIEW", action="submit_for_review"),
        Transition("ADVANCE_CREATED", "PENDING_REVIEW", action="submit_for_review"),
        Transition("PENDING_REVIEW", "APPROVED", action="approve"),
        Transition("APPROVED", "CLOSED", action="close"),
    ),
    terminal_states=("CLOSED",),
)


COST_ALLOCATION_WORKFLOW = Workflow(
    name="park_cost_allocation",
    description="Split of lease fees among operator funds",
    initial_state="DRAFT",
    states=("DRAFT", "INVOICED", "CLOSED"),
    transitions=(
        Transition("DRAFT", "INVOICED", action="create_invoices"),
        Transition("INVOICED", "CLOSED", action="close"),
    ),
    terminal_states=("CLOSED",),
)


def require_settlement_transition(settlement, action: str) -> Transition:
    """
    Transition fired by ``action`` from the settlement's current status.

    Raises:
        SettlementStateError: If ``action`` is not allowed from that status.
    """
    transition = LEASE_REVENUE_SETTLEMENT_WORKFLOW.find_transition(settlement.status, action)
    if transition is None:
        logger.warning(
            "settlement_transition_rejected",
            extra={
                "settlement_id": str(settlement.id),
                "status": settlement.status,
                "action": action,
            },
        )
        raise SettlementStateError(
            str(settlement.id),
            settlement.status,
            LEASE_REVENUE_SETTLEMENT_WORKFLOW.source_states(action),
        )
    return transition


def require_allocation_transition(allocation, action: str) -> Transition:
    """
    Transition fired by ``action`` from the allocation's current status.

    Raises:
        AllocationStateError: If ``action`` is not allowed from that status.
    """
    transition = COST_ALLOCATION_WORKFLOW.find_transition(allocation.status, action)
    if transition is None:
        raise AllocationStateError(
            str(allocation.id),
            allocation.status,
            COST_ALLOCATION_WORKFLOW.source_states(action),
        )
    return transition
