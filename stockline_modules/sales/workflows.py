"""
Sales Order Workflow.

State machine for the sales order lifecycle.

    pending             --fulfill--> partially_fulfilled | fulfilled
    pending             --cancel-->  cancelled
    partially_fulfilled --fulfill--> partially_fulfilled | fulfilled

Fulfilled and cancelled are terminal.  Cancellation is only possible before
any unit has shipped.
"""

from stockline_kernel.domain.workflow import Guard, Transition, Workflow
from stockline_kernel.logging_config import get_logger

logger = get_logger("modules.sales.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

STOCK_AVAILABLE = Guard(
    name="stock_available",
    description="Every requested decrement is covered by on-hand stock",
)

NOTHING_SHIPPED = Guard(
    name="nothing_shipped",
    description="No line has a fulfilled quantity",
)


# -----------------------------------------------------------------------------
# Sales Order Workflow
# -----------------------------------------------------------------------------

SALES_ORDER_WORKFLOW = Workflow(
    name="sales_order",
    description="Sales order fulfillment lifecycle",
    initial_state="pending",
    states=(
        "pending",
        "partially_fulfilled",
        "fulfilled",
        "cancelled",
    ),
    transitions=(
        Transition("pending", "partially_fulfilled", action="fulfill", guard=STOCK_AVAILABLE, moves_stock=True),
        Transition("pending", "fulfilled", action="fulfill", guard=STOCK_AVAILABLE, moves_stock=True),
        Transition("pending", "cancelled", action="cancel", guard=NOTHING_SHIPPED),
        Transition("partially_fulfilled", "partially_fulfilled", action="fulfill", guard=STOCK_AVAILABLE, moves_stock=True),
        Transition("partially_fulfilled", "fulfilled", action="fulfill", guard=STOCK_AVAILABLE, moves_stock=True),
    ),
    terminal_states=("fulfilled", "cancelled"),
)

logger.debug(
    "sales_workflow_defined",
    extra={"workflow": SALES_ORDER_WORKFLOW.name, "states": list(SALES_ORDER_WORKFLOW.states)},
)
