"""
Authoritative transition table for donor applications.

Defines:
- Role and action normalization
- Every legal (status, role, action) -> next status rule
- Payload requirements and the annotations each rule writes
- Notification templates attached to rules
- The pure ``apply`` function and introspection helpers

Nothing in this module performs I/O. Persisting the outcome and
dispatching its notification is the executor's job.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from donation_core.exceptions import InvalidTransition, MissingPayload
from donation_core.workflows.statuses import (
    ApplicationStatus,
    REJECTED_STATUSES,
    TERMINAL_STATUSES,
    UnknownStatus,
    resolve,
)

S = ApplicationStatus


# ===============================================================
# ROLES
# ===============================================================
class Role:
    DONOR = "DONOR"
    RECIPIENT = "RECIPIENT"
    DOCTOR = "DOCTOR"
    ADMIN = "ADMIN"
    SYSTEM = "SYSTEM"


ROLE_ALIASES: Dict[str, str] = {
    "DONOR": Role.DONOR,
    "RECIPIENT": Role.RECIPIENT,
    "PATIENT": Role.RECIPIENT,
    "DOCTOR": Role.DOCTOR,
    "PHYSICIAN": Role.DOCTOR,
    "STAFF": Role.DOCTOR,
    "ADMIN": Role.ADMIN,
    "ADMINISTRATOR": Role.ADMIN,
    "SUPERUSER": Role.ADMIN,
    "SYSTEM": Role.SYSTEM,
}


def normalize_role(role: str) -> str:
    """
    Canonicalize role strings: uppercase, separators to underscores,
    then alias mapping. Unknown roles pass through uppercased so they
    simply match no rule.
    """
    r = (role or "").strip().upper()
    if not r:
        return r
    r = re.sub(r"[\s\-]+", "_", r)
    r = re.sub(r"_+", "_", r)
    return ROLE_ALIASES.get(r, r)


# ===============================================================
# ACTIONS
# ===============================================================
class Action:
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    FORWARD_TO_ADMIN = "FORWARD_TO_ADMIN"
    SCHEDULE_EVALUATION = "SCHEDULE_EVALUATION"
    COMPLETE_EVALUATION = "COMPLETE_EVALUATION"
    SUBMIT_FINAL_REVIEW = "SUBMIT_FINAL_REVIEW"
    ADD_TO_WAITING_LIST = "ADD_TO_WAITING_LIST"
    RECORD_MATCH = "RECORD_MATCH"


def normalize_action(action: str) -> str:
    """
    "scheduleEvaluation", "schedule-evaluation" and "SCHEDULE_EVALUATION"
    all normalize to "SCHEDULE_EVALUATION".
    """
    a = (action or "").strip()
    a = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", a)
    a = re.sub(r"[\s\-]+", "_", a)
    a = re.sub(r"_+", "_", a)
    return a.upper()


# ===============================================================
# RULE STRUCTURES
# ===============================================================
APPROVAL_UPDATE = "approval_update"
APPOINTMENT_UPDATE = "appointment_update"


@dataclass(frozen=True)
class NotificationTemplate:
    title: str
    message: str
    category: str = APPROVAL_UPDATE


@dataclass(frozen=True)
class TransitionRule:
    source: ApplicationStatus
    role: str
    action: str
    target: ApplicationStatus
    notification: Optional[NotificationTemplate] = None
    # payload keys that must be present and non-blank
    required: Tuple[str, ...] = ()
    # (payload key, application field): text appended to the field
    annotations: Tuple[Tuple[str, str], ...] = ()
    # (payload key, application field): value replaces the field
    assignments: Tuple[Tuple[str, str], ...] = ()
    # payload key -> text used when the optional key is absent
    defaults: Tuple[Tuple[str, str], ...] = ()
    # application fields the executor sets to the time of the write
    stamps: Tuple[str, ...] = ()
    # SYSTEM action the executor applies immediately after this rule
    follow_up: Optional[str] = None

    @property
    def rejects(self) -> bool:
        return self.target in REJECTED_STATUSES


@dataclass(frozen=True)
class TransitionOutcome:
    rule: TransitionRule
    from_status: ApplicationStatus
    next_status: ApplicationStatus
    notification: Optional[NotificationTemplate]
    field_updates: Dict[str, Any] = field(default_factory=dict)
    side_effects: Tuple[str, ...] = ()

    @property
    def follow_up(self) -> Optional[str]:
        return self.rule.follow_up


# Side-effect markers the executor understands.
STAMP_REJECTION = "stamp_rejection"
AUTO_FORWARD = "auto_forward"


# ===============================================================
# NOTIFICATION TEMPLATES
# ===============================================================
PENDING_ADMIN_NOTICE = NotificationTemplate(
    "Pending Admin Review",
    "Your application is now pending initial administration approval.",
)
DOCTOR_REJECTED_NOTICE = NotificationTemplate(
    "Application Rejected",
    "You are not eligible for donation - the reviewing doctor rejected your application.",
)
INITIAL_APPROVAL_NOTICE = NotificationTemplate(
    "Initial Admin Approval",
    "You are initially approved by administration. Appointment scheduled by hospital soon stay tuned.",
)
INITIAL_REJECTION_NOTICE = NotificationTemplate(
    "Application Rejected",
    "You are not eligible for donation initially - administration reject you.",
)
EVALUATION_STARTED_NOTICE = NotificationTemplate(
    "Medical Evaluation Started",
    "Your appointment has been scheduled. Medical evaluation is now in progress.",
    APPOINTMENT_UPDATE,
)
EVALUATION_COMPLETED_NOTICE = NotificationTemplate(
    "Medical Evaluation Completed",
    "Your appointment/evaluation process has been completed successfully.",
    APPOINTMENT_UPDATE,
)
FINAL_REVIEW_NOTICE = NotificationTemplate(
    "Final Review Pending",
    "The doctor has submitted the assessment of your medical evaluation. "
    "A final administration decision will follow.",
)
FINAL_APPROVAL_NOTICE = NotificationTemplate(
    "Final Admin Approval",
    "Congratulations! You have been finally approved by the administration after medical evaluation.",
)
FINAL_REJECTION_NOTICE = NotificationTemplate(
    "Final Admin Rejection",
    "Your application has been finally rejected by the administration after medical evaluation.",
)
WAITING_LIST_NOTICE = NotificationTemplate(
    "Added to Waiting List",
    "You have been placed on the donation waiting list.",
)
MATCH_FOUND_NOTICE = NotificationTemplate(
    "Match Found",
    "A recipient match has been found for your donation.",
)


# ===============================================================
# TRANSITION TABLE
# ===============================================================
def _admin_initial_rules(source: ApplicationStatus) -> Tuple[TransitionRule, ...]:
    return (
        TransitionRule(
            source=source,
            role=Role.ADMIN,
            action=Action.APPROVE,
            target=S.INITIALLY_APPROVED,
            notification=INITIAL_APPROVAL_NOTICE,
            annotations=(("comment", "admin_comment"),),
        ),
        TransitionRule(
            source=source,
            role=Role.ADMIN,
            action=Action.REJECT,
            target=S.INITIAL_ADMIN_REJECTED,
            notification=INITIAL_REJECTION_NOTICE,
            required=("reason",),
            annotations=(("reason", "admin_comment"),),
            assignments=(("reason", "rejection_reason"),),
        ),
    )


def _admin_final_rules(source: ApplicationStatus) -> Tuple[TransitionRule, ...]:
    return (
        TransitionRule(
            source=source,
            role=Role.ADMIN,
            action=Action.APPROVE,
            target=S.FINAL_ADMIN_APPROVED,
            notification=FINAL_APPROVAL_NOTICE,
            annotations=(("notes", "final_admin_notes"),),
            defaults=(("notes", "Medically fit - approved after medical evaluation"),),
        ),
        TransitionRule(
            source=source,
            role=Role.ADMIN,
            action=Action.REJECT,
            target=S.FINAL_ADMIN_REJECTED,
            notification=FINAL_REJECTION_NOTICE,
            required=("reason",),
            annotations=(("reason", "final_admin_notes"),),
            assignments=(("reason", "rejection_reason"),),
        ),
    )


TRANSITION_RULES: Tuple[TransitionRule, ...] = (
    # Doctor initial review
    TransitionRule(
        source=S.PENDING,
        role=Role.DOCTOR,
        action=Action.APPROVE,
        target=S.INITIAL_DOCTOR_APPROVED,
        annotations=(("comment", "doctor_comment"),),
        follow_up=Action.FORWARD_TO_ADMIN,
    ),
    TransitionRule(
        source=S.PENDING,
        role=Role.DOCTOR,
        action=Action.REJECT,
        target=S.INITIAL_DOCTOR_REJECTED,
        notification=DOCTOR_REJECTED_NOTICE,
        required=("reason",),
        annotations=(("reason", "doctor_comment"),),
        assignments=(("reason", "rejection_reason"),),
    ),
    # Doctor approval never waits: it is forwarded to the admin queue.
    TransitionRule(
        source=S.INITIAL_DOCTOR_APPROVED,
        role=Role.SYSTEM,
        action=Action.FORWARD_TO_ADMIN,
        target=S.PENDING_INITIAL_ADMIN_APPROVAL,
        notification=PENDING_ADMIN_NOTICE,
    ),
    # Admin initial review (legacy records may still sit in INITIAL_DOCTOR_APPROVED)
    *_admin_initial_rules(S.PENDING_INITIAL_ADMIN_APPROVAL),
    *_admin_initial_rules(S.INITIAL_DOCTOR_APPROVED),
    # Appointment-driven evaluation phase
    TransitionRule(
        source=S.INITIALLY_APPROVED,
        role=Role.SYSTEM,
        action=Action.SCHEDULE_EVALUATION,
        target=S.MEDICAL_EVALUATION_IN_PROGRESS,
        notification=EVALUATION_STARTED_NOTICE,
        required=("appointment_id",),
        assignments=(("appointment_id", "current_appointment_id"),),
        stamps=("evaluation_started_at",),
    ),
    TransitionRule(
        source=S.MEDICAL_EVALUATION_IN_PROGRESS,
        role=Role.SYSTEM,
        action=Action.COMPLETE_EVALUATION,
        target=S.MEDICAL_EVALUATION_COMPLETED,
        notification=EVALUATION_COMPLETED_NOTICE,
        annotations=(("notes", "evaluation_notes"),),
        assignments=(("appointment_id", "completed_appointment_id"),),
        defaults=(("notes", "Medical evaluation completed successfully"),),
        stamps=("evaluation_completed_at",),
    ),
    # Doctor assessment after evaluation
    TransitionRule(
        source=S.MEDICAL_EVALUATION_COMPLETED,
        role=Role.DOCTOR,
        action=Action.SUBMIT_FINAL_REVIEW,
        target=S.PENDING_FINAL_ADMIN_REVIEW,
        notification=FINAL_REVIEW_NOTICE,
        required=("comment",),
        annotations=(("comment", "final_doctor_comment"),),
    ),
    # Admin final decision
    *_admin_final_rules(S.MEDICAL_EVALUATION_COMPLETED),
    *_admin_final_rules(S.PENDING_FINAL_ADMIN_REVIEW),
    # Post-approval
    TransitionRule(
        source=S.FINAL_ADMIN_APPROVED,
        role=Role.ADMIN,
        action=Action.ADD_TO_WAITING_LIST,
        target=S.WAITING_LIST,
        notification=WAITING_LIST_NOTICE,
    ),
    TransitionRule(
        source=S.WAITING_LIST,
        role=Role.ADMIN,
        action=Action.RECORD_MATCH,
        target=S.MATCH_FOUND,
        notification=MATCH_FOUND_NOTICE,
        annotations=(("notes", "final_admin_notes"),),
    ),
    TransitionRule(
        source=S.WAITING_LIST,
        role=Role.SYSTEM,
        action=Action.RECORD_MATCH,
        target=S.MATCH_FOUND,
        notification=MATCH_FOUND_NOTICE,
        annotations=(("notes", "final_admin_notes"),),
    ),
)


def _index_rules() -> Dict[Tuple[ApplicationStatus, str, str], TransitionRule]:
    index: Dict[Tuple[ApplicationStatus, str, str], TransitionRule] = {}
    for rule in TRANSITION_RULES:
        key = (rule.source, rule.role, rule.action)
        if key in index:
            raise RuntimeError(f"Duplicate transition rule: {key}")
        index[key] = rule
    return index


_RULE_INDEX = _index_rules()


# ===============================================================
# LOOKUP
# ===============================================================
def find_rule(status, role: str, action: str) -> Optional[TransitionRule]:
    resolved = resolve(status)
    if isinstance(resolved, UnknownStatus):
        return None
    return _RULE_INDEX.get((resolved, normalize_role(role), normalize_action(action)))


def outgoing_rules(status) -> List[TransitionRule]:
    resolved = resolve(status)
    return [r for r in TRANSITION_RULES if r.source == resolved]


def _payload_text(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    if value is None:
        return ""
    return str(value).strip()


def append_annotation(existing: Optional[str], addition: str) -> str:
    """
    Annotations are additive: a later note is appended, never replaces.
    """
    existing = (existing or "").strip()
    addition = (addition or "").strip()
    if not addition:
        return existing
    if not existing:
        return addition
    return f"{existing}\n{addition}"


# ===============================================================
# APPLY
# ===============================================================
def apply(application, actor_role: str, action: str, payload: Optional[Mapping[str, Any]] = None) -> TransitionOutcome:
    """
    Compute the outcome of ``action`` performed by ``actor_role`` on
    ``application`` (anything with a ``status`` attribute, or a raw status).

    Pure: the application is not modified.

    Raises:
        InvalidTransition: no rule for (status, role, action), terminal
            or unknown status.
        MissingPayload: the rule needs an annotation that was not supplied.
    """
    payload = payload or {}
    raw_status = getattr(application, "status", application)
    current = resolve(raw_status)
    role = normalize_role(actor_role)
    act = normalize_action(action)

    if isinstance(current, UnknownStatus):
        raise InvalidTransition(
            f"Application status '{current.raw}' is not recognized; no action is possible.",
            status_value=current.raw,
            role=role,
            action=act,
        )

    if current in TERMINAL_STATUSES:
        raise InvalidTransition(
            f"Application is in terminal status '{current.value}' and cannot be modified.",
            status_value=current.value,
            role=role,
            action=act,
        )

    rule = _RULE_INDEX.get((current, role, act))
    if rule is None:
        raise InvalidTransition(status_value=current.value, role=role, action=act)

    missing = [key for key in rule.required if not _payload_text(payload, key)]
    if missing:
        raise MissingPayload(missing)

    defaults = dict(rule.defaults)
    updates: Dict[str, Any] = {}

    for key, field_name in rule.annotations:
        text = _payload_text(payload, key) or defaults.get(key, "")
        if not text:
            continue
        base = updates.get(field_name, getattr(application, field_name, ""))
        updates[field_name] = append_annotation(base, text)

    for key, field_name in rule.assignments:
        value = payload.get(key)
        if isinstance(value, str):
            value = value.strip()
        updates[field_name] = value

    side_effects: List[str] = []
    if rule.rejects:
        side_effects.append(STAMP_REJECTION)
    if rule.follow_up:
        side_effects.append(AUTO_FORWARD)

    return TransitionOutcome(
        rule=rule,
        from_status=current,
        next_status=rule.target,
        notification=rule.notification,
        field_updates=updates,
        side_effects=tuple(side_effects),
    )


# ===============================================================
# INTROSPECTION HELPERS
# ===============================================================
def allowed_actions(status, role: str) -> List[str]:
    """
    Actions ``role`` may perform from ``status``. Empty for terminal
    or unknown statuses.
    """
    resolved = resolve(status)
    if isinstance(resolved, UnknownStatus) or resolved in TERMINAL_STATUSES:
        return []
    r = normalize_role(role)
    return sorted({rule.action for rule in TRANSITION_RULES if rule.source == resolved and rule.role == r})


def allowed_next_states(status) -> List[str]:
    return sorted({rule.target.value for rule in outgoing_rules(status)})


def required_roles(status, target) -> List[str]:
    src = resolve(status)
    tgt = resolve(target)
    return sorted({rule.role for rule in TRANSITION_RULES if rule.source == src and rule.target == tgt})


def workflow_definition() -> Dict[str, Any]:
    """
    Stable JSON-serializable definition for UI.
    """
    return {
        "kind": "donor_application",
        "statuses": [s.value for s in ApplicationStatus],
        "initial": ApplicationStatus.PENDING.value,
        "terminal_states": sorted(s.value for s in TERMINAL_STATUSES),
        "rules": [
            {
                "from": rule.source.value,
                "role": rule.role,
                "action": rule.action,
                "to": rule.target.value,
                "requires": list(rule.required),
                "follow_up": rule.follow_up,
                "stamps": list(rule.stamps),
            }
            for rule in TRANSITION_RULES
        ],
    }
