"""
Workflow Templates for Approval Workflow Mining.

A template names the states of a workflow, which of them end a case, the
known variants that receive readable ids, and the expected time of each
transition.

Available templates:
- permit_workflow: Permit application approval process

Usage:
    from approval_mining.templates import get_permit_template

    template = get_permit_template()
    template.identify_variant(["submitted", ...])
"""

from .permit_workflow import (
    FINAL_STATES,
    PERMIT_STATES,
    PERMIT_TRANSITION_TIME_RANGES,
    PERMIT_VARIANTS,
    TransitionKey,
    VariantDefinition,
    WorkflowTemplate,
    get_permit_template,
)

__all__ = [
    "FINAL_STATES",
    "PERMIT_STATES",
    "PERMIT_TRANSITION_TIME_RANGES",
    "PERMIT_VARIANTS",
    "TransitionKey",
    "VariantDefinition",
    "WorkflowTemplate",
    "get_permit_template",
]
