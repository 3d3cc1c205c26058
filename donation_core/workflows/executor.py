# donation_core/workflows/executor.py

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

from django.db import transaction
from django.utils import timezone

from donation_core.models import Application, Notification, WorkflowTransition
from donation_core.services import notifications, store
from donation_core.workflows import rules
from donation_core.workflows.rules import Role, TransitionOutcome

logger = logging.getLogger(__name__)

COMMENT_KEYS = ("reason", "comment", "notes")


@dataclass
class TransitionResult:
    application: Application
    outcomes: List[TransitionOutcome] = field(default_factory=list)
    notifications: List[Notification] = field(default_factory=list)

    @property
    def status(self) -> str:
        return self.application.status

    @property
    def path(self) -> List[str]:
        if not self.outcomes:
            return [self.application.status]
        return [self.outcomes[0].from_status.value] + [o.next_status.value for o in self.outcomes]


def _comment_from(payload: Mapping[str, Any]) -> str:
    for key in COMMENT_KEYS:
        value = payload.get(key)
        if value:
            return str(value).strip()
    return ""


def _persist(application: Application, outcome: TransitionOutcome, *, actor, role: str, payload) -> None:
    updates = dict(outcome.field_updates)
    now = timezone.now()
    if rules.STAMP_REJECTION in outcome.side_effects:
        updates["rejected_at"] = now
    for name in outcome.rule.stamps:
        updates[name] = now

    expected = application.status

    store.write_status(
        application=application,
        expected_status=expected,
        new_status=outcome.next_status.value,
        field_updates=updates,
    )

    WorkflowTransition.objects.create(
        application=application,
        from_status=expected,
        to_status=outcome.next_status.value,
        role=role,
        action=outcome.rule.action,
        comment=_comment_from(payload),
        performed_by=actor if getattr(actor, "is_authenticated", False) else None,
    )

    logger.info(
        "Application %s: %s -> %s (%s %s)",
        application.pk,
        expected,
        outcome.next_status.value,
        role,
        outcome.rule.action,
    )


def apply_action(
    application,
    *,
    actor_role: str,
    action: str,
    payload: Optional[Mapping[str, Any]] = None,
    actor=None,
) -> TransitionResult:
    """
    Apply one action to an application and persist the result.

    ``application`` is an Application or its id. Its status as loaded is
    the compare-and-swap baseline: a stale instance fails with
    ConcurrentModification instead of overwriting a newer status.

    A rule with a follow-up (doctor approval forwarding to the admin queue)
    is applied in the same transaction as the follow-up, so the follow-up
    always sees the status just written. Notifications go out only after
    the transaction commits.
    """
    if not isinstance(application, Application):
        application = store.get_application(application)

    payload = dict(payload or {})
    role = rules.normalize_role(actor_role)
    result = TransitionResult(application=application)

    with transaction.atomic():
        outcome = rules.apply(application, role, action, payload)
        _persist(application, outcome, actor=actor, role=role, payload=payload)
        result.outcomes.append(outcome)

        follow_up = outcome.follow_up
        while follow_up:
            outcome = rules.apply(application, Role.SYSTEM, follow_up)
            _persist(application, outcome, actor=None, role=Role.SYSTEM, payload={})
            result.outcomes.append(outcome)
            follow_up = outcome.follow_up

    for outcome in result.outcomes:
        if outcome.notification is None:
            continue
        sent = notifications.send_template(application.donor_id, outcome.notification)
        if sent is not None:
            result.notifications.append(sent)

    return result


def has_edge(application: Application, role: str, action: str) -> bool:
    return rules.find_rule(application.status, role, action) is not None
