# donation_core/workflows/eligibility.py
"""
Appointment eligibility.

Derived from the current status on every call; callers must not cache
the result across a transition.
"""

from __future__ import annotations

from donation_core.workflows.rules import Role, normalize_role
from donation_core.workflows.statuses import ApplicationStatus, resolve

DONOR_SCHEDULING_STATUSES = frozenset(
    {
        ApplicationStatus.INITIALLY_APPROVED,
        ApplicationStatus.MEDICAL_EVALUATION_IN_PROGRESS,
        ApplicationStatus.MEDICAL_EVALUATION_COMPLETED,
    }
)


def can_schedule_appointments(status, role: str) -> bool:
    """
    Doctors, admins and every other non-donor role are the schedulers and
    are always allowed. A donor is allowed only from initial approval up to
    the end of the medical evaluation.
    """
    if normalize_role(role) != Role.DONOR:
        return True
    return resolve(status) in DONOR_SCHEDULING_STATUSES
