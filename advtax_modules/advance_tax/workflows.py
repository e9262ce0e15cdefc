"""Advance Tax Workflows.

State machine for the assessment lifecycle.
"""

from advtax_kernel.domain.workflow import Guard, Transition, Workflow
from advtax_kernel.logging_config import get_logger

logger = get_logger("modules.advance_tax.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

SCHEDULE_COMPUTED = Guard(
    name="schedule_computed",
    description="Quarterly schedule has been generated",
)

SCHEDULE_RECOMPUTED = Guard(
    name="schedule_recomputed",
    description="Schedule recomputed from the full payment history",
)

logger.info(
    "advance_tax_workflow_guards_defined",
    extra={
        "guards": [
            SCHEDULE_COMPUTED.name,
            SCHEDULE_RECOMPUTED.name,
        ],
    },
)


# -----------------------------------------------------------------------------
# Assessment Workflow
# -----------------------------------------------------------------------------

ASSESSMENT_WORKFLOW = Workflow(
    name="advance_tax_assessment",
    description="Advance tax assessment lifecycle",
    initial_state="draft",
    states=(
        "draft",
        "active",
        "finalized",
    ),
    transitions=(
        Transition("draft", "active", action="activate", guard=SCHEDULE_COMPUTED),
        Transition("active", "finalized", action="finalize", guard=SCHEDULE_RECOMPUTED),
    ),
    terminal_states=("finalized",),
)

# States in which inputs may be edited and the schedule recomputed.
EDITABLE_STATES = frozenset({"draft", "active"})

# States in which payments may be recorded.
PAYABLE_STATES = frozenset({"active"})

logger.info(
    "advance_tax_workflow_registered",
    extra={
        "workflow_name": ASSESSMENT_WORKFLOW.name,
        "state_count": len(ASSESSMENT_WORKFLOW.states),
        "transition_count": len(ASSESSMENT_WORKFLOW.transitions),
    },
)
