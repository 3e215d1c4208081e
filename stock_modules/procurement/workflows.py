"""
Procurement Workflows.

State machine for goods-received notes.  ``GRNService`` looks up every
transition here by (current status, action); anything not listed is an
invalid transition.
"""

from stock_kernel.domain.workflow import Guard, Transition, Workflow
from stock_kernel.logging_config import get_logger

logger = get_logger("modules.procurement.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

HAS_RECEIVED_ITEMS = Guard(
    name="has_received_items",
    description="At least one item has a received quantity above zero",
)

NO_BLOCKING_OVER_RECEIPT = Guard(
    name="no_blocking_over_receipt",
    description="No accepted quantity exceeds its PO line's pending quantity "
    "unless over-receipt is allowed",
)

REJECTION_REASON_GIVEN = Guard(
    name="rejection_reason_given",
    description="A non-empty rejection reason is supplied",
)

logger.info(
    "procurement_workflow_guards_defined",
    extra={
        "guards": [
            HAS_RECEIVED_ITEMS.name,
            NO_BLOCKING_OVER_RECEIPT.name,
            REJECTION_REASON_GIVEN.name,
        ],
    },
)


# -----------------------------------------------------------------------------
# Goods Received Note Workflow
# -----------------------------------------------------------------------------

GRN_WORKFLOW = Workflow(
    name="goods_received_note",
    description="Goods-received note lifecycle",
    initial_state="draft",
    states=(
        "draft",
        "pending_approval",
        "approved",
        "rejected",
        "cancelled",
    ),
    transitions=(
        Transition("draft", "pending_approval", action="submit", guard=HAS_RECEIVED_ITEMS),
        Transition(
            "pending_approval",
            "approved",
            action="approve",
            guard=NO_BLOCKING_OVER_RECEIPT,
            appends_movements=True,
        ),
        Transition("pending_approval", "rejected", action="reject", guard=REJECTION_REASON_GIVEN),
        Transition("draft", "cancelled", action="cancel"),
        Transition("pending_approval", "cancelled", action="cancel"),
        Transition("approved", "approved", action="publish", idempotent=True),
    ),
    terminal_states=("rejected", "cancelled"),
)

GRN_ACTIONS: tuple[str, ...] = ("submit", "approve", "reject", "cancel", "publish")

logger.info(
    "procurement_grn_workflow_registered",
    extra={
        "workflow_name": GRN_WORKFLOW.name,
        "state_count": len(GRN_WORKFLOW.states),
        "transition_count": len(GRN_WORKFLOW.transitions),
        "initial_state": GRN_WORKFLOW.initial_state,
    },
)
