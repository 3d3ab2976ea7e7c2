"""
Quote Workflows (``invoicing_modules.quotes.workflows``).

Responsibility
--------------
Declares the quote decision lifecycle.  A pending quote is accepted or
declined; a decision can be reversed until the quote is converted.  Only
an accepted quote converts, and ``converted`` is terminal.

Failure modes
-------------
* ``QuoteService`` raises ``InvalidTransitionError`` for any move the
  workflow does not list, including every change to a converted quote.
"""

from __future__ import annotations

from invoicing_kernel.domain.workflow import Guard, Transition, Workflow
from invoicing_kernel.logging_config import get_logger
from invoicing_modules.quotes.models import QuoteStatus

logger = get_logger("modules.quotes.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

CLIENT_EXISTS = Guard(
    name="client_exists",
    description="Quote client still resolves so an invoice can be issued",
)


# -----------------------------------------------------------------------------
# Quote Workflow
# -----------------------------------------------------------------------------

QUOTE_WORKFLOW = Workflow(
    name="quote",
    description="Quote decision and conversion lifecycle",
    initial_state=QuoteStatus.PENDING.value,
    states=tuple(status.value for status in QuoteStatus),
    transitions=(
        Transition("pending", "accepted", action="accept"),
        Transition("pending", "declined", action="decline"),
        Transition("accepted", "declined", action="decline"),
        Transition("declined", "accepted", action="accept"),
        Transition("accepted", "converted", action="convert", guard=CLIENT_EXISTS),
    ),
    terminal_states=(QuoteStatus.CONVERTED.value,),
)

logger.info(
    "quote_workflow_defined",
    extra={
        "workflow": QUOTE_WORKFLOW.name,
        "states": len(QUOTE_WORKFLOW.states),
        "transitions": len(QUOTE_WORKFLOW.transitions),
    },
)
