# donation_core/services/store.py
"""
Persistence adapter for the workflow engine.

- Point reads retried on transient database errors.
- Status writes fanned out to every mirror (Application.status,
  Application.request_status, DonorProfile.request_status) in one
  transaction, guarded by a compare-and-swap on the pre-read status.
- Drift detection and repair for the mirrored fields.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, TypeVar

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import OperationalError, transaction
from django.db.models import F
from django.utils import timezone

from donation_core.exceptions import ConcurrentModification, NotFound, PersistenceFailure
from donation_core.models import Application, Appointment, DonorProfile
from donation_core.workflows.statuses import ApplicationStatus, TERMINAL_STATUSES, canonical_value, stored_spellings

logger = logging.getLogger(__name__)

T = TypeVar("T")

TERMINAL_SPELLINGS = stored_spellings(TERMINAL_STATUSES)
CANONICAL_VALUES = sorted(s.value for s in ApplicationStatus)


def _read_attempts() -> int:
    return max(1, int(getattr(settings, "STORE_READ_RETRIES", 3)))


def _write_attempts() -> int:
    return max(1, int(getattr(settings, "STORE_WRITE_RETRIES", 3)))


# ===============================================================
# READS
# ===============================================================
def read_with_retry(fn: Callable[[], T], *, what: str) -> T:
    last_exc: Optional[Exception] = None
    attempts = _read_attempts()
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except OperationalError as exc:
            last_exc = exc
            logger.warning("Read of %s failed (attempt %s/%s): %s", what, attempt, attempts, exc)
    raise PersistenceFailure(f"Could not read {what}: the data store is unavailable.") from last_exc


def get_application(application_id) -> Application:
    try:
        return read_with_retry(
            lambda: Application.objects.select_related("donor").get(pk=application_id),
            what=f"application {application_id}",
        )
    except (Application.DoesNotExist, ValueError, TypeError):
        raise NotFound(f"Application {application_id} was not found.")


def get_appointment(appointment_id) -> Appointment:
    try:
        return read_with_retry(
            lambda: Appointment.objects.get(pk=appointment_id),
            what=f"appointment {appointment_id}",
        )
    except (Appointment.DoesNotExist, ValueError, TypeError):
        raise NotFound(f"Appointment {appointment_id} was not found.")


def get_user(user_id):
    User = get_user_model()
    try:
        return read_with_retry(lambda: User.objects.get(pk=user_id), what=f"user {user_id}")
    except (User.DoesNotExist, ValueError, TypeError):
        raise NotFound(f"User {user_id} was not found.")


def active_application_for(donor_id) -> Optional[Application]:
    """
    The donor's non-terminal application, if any.
    """
    return read_with_retry(
        lambda: Application.objects.filter(donor_id=donor_id)
        .exclude(status__in=TERMINAL_SPELLINGS)
        .order_by("-submitted_at", "-id")
        .first(),
        what=f"active application of donor {donor_id}",
    )


def latest_application_for(donor_id) -> Optional[Application]:
    return read_with_retry(
        lambda: Application.objects.filter(donor_id=donor_id).order_by("-submitted_at", "-id").first(),
        what=f"latest application of donor {donor_id}",
    )


# ===============================================================
# WRITES
# ===============================================================
def write_status(
    *,
    application: Application,
    expected_status: str,
    new_status: str,
    field_updates: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Move ``application`` from ``expected_status`` to ``new_status`` and
    update every mirror in one transaction.

    Raises:
        ConcurrentModification: the stored status is no longer ``expected_status``.
        PersistenceFailure: the store kept failing after the configured retries.
    """
    updates = dict(field_updates or {})
    now = timezone.now()
    attempts = _write_attempts()
    last_exc: Optional[Exception] = None

    for attempt in range(1, attempts + 1):
        try:
            with transaction.atomic():
                changed = Application.objects.filter(pk=application.pk, status=expected_status).update(
                    status=new_status,
                    request_status=new_status,
                    updated_at=now,
                    **updates,
                )
                if changed == 0:
                    raise ConcurrentModification(
                        f"Application {application.pk} is no longer '{expected_status}'. "
                        "This record changed; please retry."
                    )
                DonorProfile.objects.update_or_create(
                    user_id=application.donor_id,
                    defaults={"request_status": new_status},
                )
            break
        except OperationalError as exc:
            last_exc = exc
            logger.warning(
                "Status write for application %s failed (attempt %s/%s): %s",
                application.pk,
                attempt,
                attempts,
                exc,
            )
    else:
        raise PersistenceFailure(
            f"Could not save application {application.pk}: the data store is unavailable."
        ) from last_exc

    application.status = new_status
    application.request_status = new_status
    application.updated_at = now
    for name, value in updates.items():
        setattr(application, name, value)


def save_with_retry(instance, *, update_fields: Optional[List[str]] = None):
    attempts = _write_attempts()
    last_exc: Optional[Exception] = None
    for attempt in range(1, attempts + 1):
        try:
            with transaction.atomic():
                if update_fields:
                    instance.save(update_fields=update_fields)
                else:
                    instance.save()
            return instance
        except OperationalError as exc:
            last_exc = exc
            logger.warning(
                "Write of %s %s failed (attempt %s/%s): %s",
                instance.__class__.__name__,
                instance.pk,
                attempt,
                attempts,
                exc,
            )
    raise PersistenceFailure(
        f"Could not save {instance.__class__.__name__.lower()}: the data store is unavailable."
    ) from last_exc


def append_donor_appointment(donor_id, appointment_id) -> None:
    with transaction.atomic():
        profile, _ = DonorProfile.objects.select_for_update().get_or_create(user_id=donor_id)
        ids = list(profile.appointment_ids or [])
        if appointment_id not in ids:
            ids.append(appointment_id)
            profile.appointment_ids = ids
            profile.save(update_fields=["appointment_ids", "updated_at"])


# ===============================================================
# MIRROR DRIFT
# ===============================================================
def find_mirror_drift() -> List[Dict[str, Any]]:
    """
    Report every place where stored status text disagrees with the
    canonical status of its application:

    - ``status``: Application.status holds a legacy spelling
    - ``application``: Application.request_status differs
    - ``donor_profile``: the donor profile differs from the donor's
      latest application
    """
    drift: List[Dict[str, Any]] = []

    for app in Application.objects.exclude(status__in=CANONICAL_VALUES).only("id", "donor_id", "status"):
        expected = canonical_value(app.status)
        if expected != app.status:
            drift.append(
                {
                    "kind": "status",
                    "application_id": app.pk,
                    "donor_id": app.donor_id,
                    "expected": expected,
                    "found": app.status,
                }
            )

    for app in Application.objects.exclude(request_status=F("status")).only(
        "id", "donor_id", "status", "request_status"
    ):
        expected = canonical_value(app.status)
        if app.request_status == expected:
            continue
        drift.append(
            {
                "kind": "application",
                "application_id": app.pk,
                "donor_id": app.donor_id,
                "expected": expected,
                "found": app.request_status,
            }
        )

    for profile in DonorProfile.objects.all().iterator():
        latest = (
            Application.objects.filter(donor_id=profile.user_id)
            .order_by("-submitted_at", "-id")
            .values_list("id", "status")
            .first()
        )
        if latest is None:
            continue
        app_id, status = latest
        expected = canonical_value(status)
        if profile.request_status != expected:
            drift.append(
                {
                    "kind": "donor_profile",
                    "application_id": app_id,
                    "donor_id": profile.user_id,
                    "expected": expected,
                    "found": profile.request_status,
                }
            )

    return drift


def repair_mirror_drift(*, dry_run: bool = False) -> List[Dict[str, Any]]:
    """
    Write the canonical status onto every drifted field. Returns the drift
    that was found (and fixed unless ``dry_run``).
    """
    drift = find_mirror_drift()
    if dry_run or not drift:
        return drift

    with transaction.atomic():
        for item in drift:
            if item["kind"] == "status":
                Application.objects.filter(pk=item["application_id"]).update(
                    status=item["expected"],
                    request_status=item["expected"],
                )
            elif item["kind"] == "application":
                Application.objects.filter(pk=item["application_id"]).update(request_status=item["expected"])
            else:
                DonorProfile.objects.filter(user_id=item["donor_id"]).update(request_status=item["expected"])
            logger.warning(
                "Repaired %s mirror for application %s: %r -> %r",
                item["kind"],
                item["application_id"],
                item["found"],
                item["expected"],
            )

    return drift
