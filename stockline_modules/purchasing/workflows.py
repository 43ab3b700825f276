"""
Purchase Order Workflow.

    pending            --confirm--> confirmed
    pending            --receive--> partially_received | received
    confirmed          --receive--> partially_received | received
    partially_received --receive--> partially_received | received

Received is terminal.
"""

from stockline_kernel.domain.workflow import Guard, Transition, Workflow
from stockline_kernel.logging_config import get_logger

logger = get_logger("modules.purchasing.workflows")


WITHIN_ORDERED = Guard(
    name="within_ordered",
    description="Each received increment stays within the line's open quantity",
)


PURCHASE_ORDER_WORKFLOW = Workflow(
    name="purchase_order",
    description="Purchase order receiving lifecycle",
    initial_state="pending",
    states=(
        "pending",
        "confirmed",
        "partially_received",
        "received",
    ),
    transitions=(
        Transition("pending", "confirmed", action="confirm"),
        Transition("pending", "partially_received", action="receive", guard=WITHIN_ORDERED, moves_stock=True),
        Transition("pending", "received", action="receive", guard=WITHIN_ORDERED, moves_stock=True),
        Transition("confirmed", "partially_received", action="receive", guard=WITHIN_ORDERED, moves_stock=True),
        Transition("confirmed", "received", action="receive", guard=WITHIN_ORDERED, moves_stock=True),
        Transition("partially_received", "partially_received", action="receive", guard=WITHIN_ORDERED, moves_stock=True),
        Transition("partially_received", "received", action="receive", guard=WITHIN_ORDERED, moves_stock=True),
    ),
    terminal_states=("received",),
)

logger.debug(
    "purchasing_workflow_defined",
    extra={"workflow": PURCHASE_ORDER_WORKFLOW.name, "states": list(PURCHASE_ORDER_WORKFLOW.states)},
)
