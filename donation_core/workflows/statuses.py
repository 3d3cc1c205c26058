# donation_core/workflows/statuses.py
"""
Status registry for donor applications.

Single source of truth for:
- the closed set of canonical application statuses
- historical aliases and their resolution
- display metadata (label, color class, progress percentage)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Union

from django.db import models


class ApplicationStatus(models.TextChoices):
    PENDING = "pending", "Pending Review"
    INITIAL_DOCTOR_APPROVED = "initial-doctor-approved", "Doctor Initially Approved"
    PENDING_INITIAL_ADMIN_APPROVAL = (
        "pending-initial-admin-approval",
        "Pending Initial Admin Approval",
    )
    INITIALLY_APPROVED = "initially-approved", "Initially Approved"
    MEDICAL_EVALUATION_IN_PROGRESS = (
        "medical-evaluation-in-progress",
        "Medical Evaluation In Progress",
    )
    MEDICAL_EVALUATION_COMPLETED = (
        "medical-evaluation-completed",
        "Medical Evaluation Completed",
    )
    PENDING_FINAL_ADMIN_REVIEW = "pending-final-admin-review", "Pending Final Admin Review"
    FINAL_ADMIN_APPROVED = "final-admin-approved", "Final Admin Approved"
    WAITING_LIST = "waiting-list", "On Waiting List"
    MATCH_FOUND = "match-found", "Match Found"
    INITIAL_DOCTOR_REJECTED = "initial-doctor-rejected", "Doctor Rejected"
    INITIAL_ADMIN_REJECTED = "initial-admin-rejected", "Initial Admin Rejected"
    FINAL_ADMIN_REJECTED = "final-admin-rejected", "Final Admin Rejected"


@dataclass(frozen=True)
class UnknownStatus:
    """
    Result of resolving a string that matches no known status.

    Carries the raw value so callers can log or display it.
    """

    raw: str = ""

    @property
    def label(self) -> str:
        return "Unknown Status"


ResolvedStatus = Union[ApplicationStatus, UnknownStatus]


# ===============================================================
# Ordering and classification
# ===============================================================
SUCCESS_PATH: List[ApplicationStatus] = [
    ApplicationStatus.PENDING,
    ApplicationStatus.INITIAL_DOCTOR_APPROVED,
    ApplicationStatus.PENDING_INITIAL_ADMIN_APPROVAL,
    ApplicationStatus.INITIALLY_APPROVED,
    ApplicationStatus.MEDICAL_EVALUATION_IN_PROGRESS,
    ApplicationStatus.MEDICAL_EVALUATION_COMPLETED,
    ApplicationStatus.PENDING_FINAL_ADMIN_REVIEW,
    ApplicationStatus.FINAL_ADMIN_APPROVED,
    ApplicationStatus.WAITING_LIST,
    ApplicationStatus.MATCH_FOUND,
]

REJECTED_STATUSES = frozenset(
    {
        ApplicationStatus.INITIAL_DOCTOR_REJECTED,
        ApplicationStatus.INITIAL_ADMIN_REJECTED,
        ApplicationStatus.FINAL_ADMIN_REJECTED,
    }
)

TERMINAL_STATUSES = REJECTED_STATUSES | {ApplicationStatus.MATCH_FOUND}


# ===============================================================
# Display metadata
# ===============================================================
STATUS_COLORS: Dict[ApplicationStatus, str] = {
    ApplicationStatus.PENDING: "bg-yellow-100 text-yellow-800",
    ApplicationStatus.INITIAL_DOCTOR_APPROVED: "bg-blue-50 text-blue-800",
    ApplicationStatus.PENDING_INITIAL_ADMIN_APPROVAL: "bg-orange-100 text-orange-800",
    ApplicationStatus.INITIALLY_APPROVED: "bg-green-100 text-green-800",
    ApplicationStatus.MEDICAL_EVALUATION_IN_PROGRESS: "bg-purple-100 text-purple-800",
    ApplicationStatus.MEDICAL_EVALUATION_COMPLETED: "bg-blue-100 text-blue-800",
    ApplicationStatus.PENDING_FINAL_ADMIN_REVIEW: "bg-orange-100 text-orange-800",
    ApplicationStatus.FINAL_ADMIN_APPROVED: "bg-green-100 text-green-800",
    ApplicationStatus.WAITING_LIST: "bg-indigo-100 text-indigo-800",
    ApplicationStatus.MATCH_FOUND: "bg-pink-100 text-pink-800",
    ApplicationStatus.INITIAL_DOCTOR_REJECTED: "bg-red-100 text-red-800",
    ApplicationStatus.INITIAL_ADMIN_REJECTED: "bg-red-200 text-red-800",
    ApplicationStatus.FINAL_ADMIN_REJECTED: "bg-red-100 text-red-800",
}

UNKNOWN_COLOR = "bg-gray-100 text-gray-800"

# Must be non-decreasing along every non-rejecting rule in rules.py.
STATUS_PROGRESS: Dict[ApplicationStatus, int] = {
    ApplicationStatus.PENDING: 0,
    ApplicationStatus.INITIAL_DOCTOR_APPROVED: 25,
    ApplicationStatus.PENDING_INITIAL_ADMIN_APPROVAL: 30,
    ApplicationStatus.INITIALLY_APPROVED: 40,
    ApplicationStatus.MEDICAL_EVALUATION_IN_PROGRESS: 65,
    ApplicationStatus.MEDICAL_EVALUATION_COMPLETED: 75,
    ApplicationStatus.PENDING_FINAL_ADMIN_REVIEW: 78,
    ApplicationStatus.FINAL_ADMIN_APPROVED: 80,
    ApplicationStatus.WAITING_LIST: 85,
    ApplicationStatus.MATCH_FOUND: 100,
    ApplicationStatus.INITIAL_DOCTOR_REJECTED: 0,
    ApplicationStatus.INITIAL_ADMIN_REJECTED: 0,
    ApplicationStatus.FINAL_ADMIN_REJECTED: 0,
}


# ===============================================================
# ALIAS RESOLUTION
# ===============================================================
# Spellings that existed in stored documents and do not follow from
# the canonical value, the enum name or the label.
LEGACY_ALIASES: Dict[str, ApplicationStatus] = {
    "initial-admin-approved": ApplicationStatus.INITIALLY_APPROVED,
    "initially-admin-approved": ApplicationStatus.INITIALLY_APPROVED,
    "rejected-admin-initial": ApplicationStatus.INITIAL_ADMIN_REJECTED,
    "pending-admin-review": ApplicationStatus.PENDING_INITIAL_ADMIN_APPROVAL,
    "evaluation-in-progress": ApplicationStatus.MEDICAL_EVALUATION_IN_PROGRESS,
    "evaluation-completed": ApplicationStatus.MEDICAL_EVALUATION_COMPLETED,
    "final-approved": ApplicationStatus.FINAL_ADMIN_APPROVED,
    "final-rejected": ApplicationStatus.FINAL_ADMIN_REJECTED,
    "submitted": ApplicationStatus.PENDING,
}


def _alias_key(value) -> str:
    """
    Collapse case, whitespace, underscores and hyphens so that
    "INITIALLY_APPROVED", "initially-approved" and "Initially Approved"
    share one key.
    """
    key = str(value or "").strip().lower()
    key = re.sub(r"[\s_\-]+", "-", key)
    return key.strip("-")


def _build_alias_index() -> Dict[str, ApplicationStatus]:
    index: Dict[str, ApplicationStatus] = {}
    for status in ApplicationStatus:
        index[_alias_key(status.value)] = status
        index[_alias_key(status.name)] = status
        index[_alias_key(status.label)] = status
    for alias, status in LEGACY_ALIASES.items():
        index[_alias_key(alias)] = status
    return index


_ALIAS_INDEX = _build_alias_index()


def aliases_of(status: ApplicationStatus) -> List[str]:
    """
    Every spelling known to resolve to ``status``.
    """
    out = {status.value, status.name, status.label}
    out |= {alias for alias, target in LEGACY_ALIASES.items() if target == status}
    return sorted(out)


def stored_spellings(statuses) -> List[str]:
    """
    Every known spelling of ``statuses``, for database filters that must
    also match rows written before values were canonical.
    """
    out = set()
    for status in statuses:
        out.update(aliases_of(status))
    return sorted(out)


def canonical_value(raw) -> str:
    """
    The stored form of ``raw``: the canonical value when it resolves,
    otherwise ``raw`` unchanged.
    """
    status = resolve(raw)
    if isinstance(status, ApplicationStatus):
        return status.value
    return "" if raw is None else str(raw)


def resolve(raw) -> ResolvedStatus:
    """
    Map any historical spelling to its canonical status.

    Never raises: unrecognized input yields ``UnknownStatus``.
    """
    if isinstance(raw, ApplicationStatus):
        return raw
    if isinstance(raw, UnknownStatus):
        return raw
    status = _ALIAS_INDEX.get(_alias_key(raw))
    if status is None:
        return UnknownStatus(raw="" if raw is None else str(raw))
    return status


def is_known(raw) -> bool:
    return isinstance(resolve(raw), ApplicationStatus)


def is_terminal(raw) -> bool:
    return resolve(raw) in TERMINAL_STATUSES


def is_rejected(raw) -> bool:
    return resolve(raw) in REJECTED_STATUSES


# ===============================================================
# Lookups
# ===============================================================
def label_of(raw) -> str:
    status = resolve(raw)
    return status.label


def color_class_of(raw) -> str:
    status = resolve(raw)
    if isinstance(status, UnknownStatus):
        return UNKNOWN_COLOR
    return STATUS_COLORS[status]


def progress_percent_of(raw) -> int:
    status = resolve(raw)
    if isinstance(status, UnknownStatus):
        return 0
    return STATUS_PROGRESS[status]


def status_metadata(raw) -> Dict:
    """
    JSON-serializable rendering bundle for UIs.
    """
    status = resolve(raw)
    known = isinstance(status, ApplicationStatus)
    return {
        "value": status.value if known else status.raw,
        "known": known,
        "label": label_of(status),
        "color_class": color_class_of(status),
        "progress": progress_percent_of(status),
        "terminal": known and status in TERMINAL_STATUSES,
        "rejected": known and status in REJECTED_STATUSES,
    }


def registry_definition() -> List[Dict]:
    return [status_metadata(s) for s in ApplicationStatus]
