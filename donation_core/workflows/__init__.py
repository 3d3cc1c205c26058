# donation_core/workflows/__init__.py
"""
Donor application workflow.

Only the pure parts are re-exported here; ``executor`` and ``guards``
depend on models and are imported from their modules directly.
"""
from __future__ import annotations

from donation_core.workflows.eligibility import can_schedule_appointments
from donation_core.workflows.rules import (
    Action,
    NotificationTemplate,
    Role,
    TRANSITION_RULES,
    TransitionOutcome,
    TransitionRule,
    allowed_actions,
    allowed_next_states,
    apply,
    find_rule,
    normalize_action,
    normalize_role,
    required_roles,
    workflow_definition,
)
from donation_core.workflows.statuses import (
    ApplicationStatus,
    UnknownStatus,
    aliases_of,
    color_class_of,
    is_known,
    is_rejected,
    is_terminal,
    label_of,
    progress_percent_of,
    resolve,
    status_metadata,
)

__all__ = [
    "Action",
    "ApplicationStatus",
    "NotificationTemplate",
    "Role",
    "TRANSITION_RULES",
    "TransitionOutcome",
    "TransitionRule",
    "UnknownStatus",
    "aliases_of",
    "allowed_actions",
    "allowed_next_states",
    "apply",
    "can_schedule_appointments",
    "color_class_of",
    "find_rule",
    "is_known",
    "is_rejected",
    "is_terminal",
    "label_of",
    "normalize_action",
    "normalize_role",
    "progress_percent_of",
    "required_roles",
    "resolve",
    "status_metadata",
    "workflow_definition",
]
