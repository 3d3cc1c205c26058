# donation_core/services/applications.py
"""
Application submission and history.

A donor holds at most one non-terminal application. After a rejection
a new application can be submitted once the cooldown has elapsed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from donation_core.exceptions import ActiveApplicationExists, CooldownActive
from donation_core.models import Application, DonorProfile, Notification
from donation_core.services import notifications, store
from donation_core.workflows.statuses import ApplicationStatus, REJECTED_STATUSES, stored_spellings

logger = logging.getLogger(__name__)

REJECTED_SPELLINGS = stored_spellings(REJECTED_STATUSES)


@dataclass(frozen=True)
class ReapplyStatus:
    allowed: bool
    available_at: Optional[datetime] = None
    active_application_id: Optional[int] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "allowed": self.allowed,
            "available_at": self.available_at.isoformat() if self.available_at else None,
            "active_application_id": self.active_application_id,
        }


def _donor_id(donor):
    return getattr(donor, "pk", donor)


def cooldown() -> timedelta:
    return timedelta(days=int(getattr(settings, "REAPPLY_COOLDOWN_DAYS", 15)))


def reapply_available_at(donor) -> Optional[datetime]:
    """
    When the latest rejection stops blocking a new submission, or None
    if the donor was never rejected.
    """
    rejected = (
        Application.objects.filter(donor_id=_donor_id(donor), status__in=REJECTED_SPELLINGS)
        .order_by(F("rejected_at").desc(nulls_last=True), "-updated_at")
        .values_list("rejected_at", "updated_at")
        .first()
    )
    if rejected is None:
        return None
    rejected_at, updated_at = rejected
    return (rejected_at or updated_at) + cooldown()


def can_reapply(donor, now: Optional[datetime] = None) -> ReapplyStatus:
    now = now or timezone.now()
    donor_id = _donor_id(donor)

    active = store.active_application_for(donor_id)
    if active is not None:
        return ReapplyStatus(allowed=False, active_application_id=active.pk)

    available_at = reapply_available_at(donor_id)
    if available_at is not None and now < available_at:
        return ReapplyStatus(allowed=False, available_at=available_at)

    return ReapplyStatus(allowed=True, available_at=available_at)


def submit_application(donor, details: Optional[Dict[str, Any]] = None, *, now: Optional[datetime] = None) -> Application:
    """
    Create a new PENDING application for ``donor``.

    Raises:
        ActiveApplicationExists: the donor already has a non-terminal application.
        CooldownActive: the latest rejection is more recent than the cooldown.
    """
    now = now or timezone.now()
    donor_id = _donor_id(donor)

    state = can_reapply(donor_id, now)
    if state.active_application_id is not None:
        raise ActiveApplicationExists(state.active_application_id)
    if not state.allowed:
        raise CooldownActive(state.available_at)

    try:
        with transaction.atomic():
            application = Application.objects.create(
                donor_id=donor_id,
                status=ApplicationStatus.PENDING,
                request_status=ApplicationStatus.PENDING,
                details=details or {},
                submitted_at=now,
            )
            DonorProfile.objects.update_or_create(
                user_id=donor_id,
                defaults={"request_status": ApplicationStatus.PENDING.value},
            )
    except IntegrityError:
        # Lost a race against a concurrent submission.
        active = store.active_application_for(donor_id)
        raise ActiveApplicationExists(active.pk if active else None)

    logger.info("Donor %s submitted application %s", donor_id, application.pk)

    notifications.send(
        donor_id,
        "Request Submitted",
        "Your donation request has been submitted and is waiting for doctor review.",
        Notification.Category.APPROVAL_UPDATE,
    )
    return application


def application_history(donor):
    return Application.objects.filter(donor_id=_donor_id(donor)).order_by("-submitted_at", "-id")
