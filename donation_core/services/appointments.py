# donation_core/services/appointments.py
"""
Appointment lifecycle and its link to the application workflow.

Appointment states: scheduled -> completed | cancelled. Both end states
are final.

Scheduling a donor appointment starts the medical evaluation and
completing it finishes the evaluation. In both cases the appointment
write is the primary effect and is committed first. The application
transition is a second, best-effort phase: its failure is logged and
never undoes the appointment.
"""

from __future__ import annotations

import logging
from datetime import date, time
from typing import Any, Dict, Mapping, Optional, Tuple

from django.contrib.auth import get_user_model
from django.db import DatabaseError, transaction
from django.db.models import Q
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_time

from donation_core.exceptions import (
    ConcurrentModification,
    InvalidTransition,
    MissingPayload,
    NotFound,
    WorkflowError,
)
from donation_core.models import Appointment, Notification, RecipientProfile
from donation_core.services import notifications, store
from donation_core.workflows import executor
from donation_core.workflows.eligibility import can_schedule_appointments
from donation_core.workflows.rules import Action, Role, normalize_role

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("date", "time", "purpose", "doctor")
STAFF_ROLES = (Role.DOCTOR, Role.ADMIN)
CATEGORY = Notification.Category.APPOINTMENT_UPDATE


# ===============================================================
# Helpers
# ===============================================================
def _require_staff(actor_role: str, verb: str) -> str:
    role = normalize_role(actor_role)
    if role not in STAFF_ROLES:
        raise InvalidTransition(
            f"Role {role or 'UNKNOWN'} cannot {verb} appointments.",
            role=role,
            action=verb.upper(),
        )
    return role


def _require(data: Mapping[str, Any], *fields: str) -> None:
    missing = [f for f in fields if data.get(f) in (None, "")]
    if missing:
        raise MissingPayload(missing)


def _as_date(value, field_name: str = "date") -> date:
    if isinstance(value, date):
        return value
    parsed = parse_date(str(value))
    if parsed is None:
        raise MissingPayload([field_name], f"'{value}' is not a valid {field_name}.")
    return parsed


def _as_time(value, field_name: str = "time") -> time:
    if isinstance(value, time):
        return value
    parsed = parse_time(str(value))
    if parsed is None:
        raise MissingPayload([field_name], f"'{value}' is not a valid {field_name}.")
    return parsed


def _subject_user_id(appointment: Appointment) -> Optional[int]:
    if appointment.donor_id:
        return appointment.donor_id
    if appointment.recipient_id:
        return appointment.recipient_id
    if appointment.recipient_profile_id:
        return RecipientProfile.objects.filter(pk=appointment.recipient_profile_id).values_list("user_id", flat=True).first()
    return None


def _notify_subject(appointment: Appointment, title: str, message: str) -> None:
    user_id = _subject_user_id(appointment)
    if user_id is None:
        logger.warning("Appointment %s has no subject account to notify (%s)", appointment.pk, title)
        return
    notifications.send(user_id, title, message, CATEGORY)


def _when(appointment: Appointment) -> str:
    return f"{appointment.date.isoformat()} at {appointment.time.strftime('%H:%M')}"


# ===============================================================
# Subject resolution
# ===============================================================
def resolve_recipient(data: Mapping[str, Any]) -> Tuple[Optional[Any], Optional[RecipientProfile]]:
    """
    Return (account, None) when the recipient has a portal account, or
    (None, profile) for a profile with no linked account yet.

    ``recipient_id`` names an account; ``recipient_profile_id`` names a
    recipient profile. The account is always preferred.
    """
    if data.get("recipient_id") not in (None, ""):
        return store.get_user(data["recipient_id"]), None

    if data.get("recipient_profile_id") in (None, ""):
        raise MissingPayload(["recipient_id"])

    profile = (
        RecipientProfile.objects.select_related("user")
        .filter(pk=data["recipient_profile_id"])
        .first()
    )
    if profile is None:
        raise NotFound(f"Recipient profile {data['recipient_profile_id']} was not found.")

    if profile.user_id:
        return profile.user, None

    logger.warning(
        "Recipient profile %s has no linked account; appointment stored against the profile",
        profile.pk,
    )
    return None, profile


# ===============================================================
# Create
# ===============================================================
def create_donor_appointment(data: Mapping[str, Any], *, actor_role: str, actor=None) -> Appointment:
    """
    Schedule a donor appointment, then start the donor's medical
    evaluation if the application is waiting for one.
    """
    appointment = _schedule_donor_appointment(data, actor_role=actor_role, actor=actor)
    start_medical_evaluation(appointment)
    return appointment


def _schedule_donor_appointment(data: Mapping[str, Any], *, actor_role: str, actor=None) -> Appointment:
    _require_staff(actor_role, "schedule")
    _require(data, "donor_id", "doctor_id", "date", "time")

    donor = store.get_user(data["donor_id"])
    doctor = store.get_user(data["doctor_id"])

    with transaction.atomic():
        appointment = Appointment.objects.create(
            type=Appointment.Type.DONOR,
            donor=donor,
            doctor=doctor,
            date=_as_date(data["date"]),
            time=_as_time(data["time"]),
            purpose=data.get("purpose") or "Medical evaluation",
            created_by=actor if getattr(actor, "is_authenticated", False) else None,
        )
        store.append_donor_appointment(donor.pk, appointment.pk)

    logger.info("Scheduled donor appointment %s for donor %s", appointment.pk, donor.pk)
    _notify_subject(
        appointment,
        "Appointment Scheduled",
        f"An appointment has been scheduled for you on {_when(appointment)}.",
    )
    return appointment


def create_recipient_appointment(data: Mapping[str, Any], *, actor_role: str, actor=None) -> Appointment:
    _require_staff(actor_role, "schedule")
    _require(data, "doctor_id", "date", "time")

    recipient, profile = resolve_recipient(data)
    doctor = store.get_user(data["doctor_id"])

    appointment = Appointment(
        type=Appointment.Type.RECIPIENT,
        recipient=recipient,
        recipient_profile=profile,
        doctor=doctor,
        date=_as_date(data["date"]),
        time=_as_time(data["time"]),
        purpose=data.get("purpose") or "",
        created_by=actor if getattr(actor, "is_authenticated", False) else None,
    )
    store.save_with_retry(appointment)

    logger.info("Scheduled recipient appointment %s", appointment.pk)
    _notify_subject(
        appointment,
        "Appointment Scheduled",
        f"An appointment has been scheduled for you on {_when(appointment)}.",
    )
    return appointment


# ===============================================================
# Evaluation side effects (best-effort)
# ===============================================================
def _advance_evaluation(appointment: Appointment, action: str, payload: Dict[str, Any]):
    if not appointment.donor_id:
        return None
    try:
        application = store.active_application_for(appointment.donor_id)
        if application is None or not executor.has_edge(application, Role.SYSTEM, action):
            logger.info(
                "Appointment %s: no application of donor %s is waiting for %s",
                appointment.pk,
                appointment.donor_id,
                action,
            )
            return None
        return executor.apply_action(
            application,
            actor_role=Role.SYSTEM,
            action=action,
            payload=payload,
        )
    except (WorkflowError, DatabaseError):
        logger.exception(
            "Appointment %s is saved but %s on the donor application failed",
            appointment.pk,
            action,
        )
        return None


def start_medical_evaluation(appointment: Appointment):
    return _advance_evaluation(
        appointment,
        Action.SCHEDULE_EVALUATION,
        {"appointment_id": appointment.pk},
    )


def complete_medical_evaluation(appointment: Appointment, notes: str = ""):
    return _advance_evaluation(
        appointment,
        Action.COMPLETE_EVALUATION,
        {"notes": notes, "appointment_id": appointment.pk},
    )


# ===============================================================
# Complete / cancel / update
# ===============================================================
def complete_appointment_with_evaluation(
    appointment_id,
    appointment_type: Optional[str] = None,
    notes: str = "",
    *,
    actor_role: str,
    actor=None,
) -> Appointment:
    """
    Mark the appointment completed and, for donor appointments, move the
    application to MEDICAL_EVALUATION_COMPLETED.

    Completing an already completed appointment changes nothing.
    """
    _require_staff(actor_role, "complete")
    appointment = store.get_appointment(appointment_id)

    if appointment_type and appointment_type != appointment.type:
        logger.warning(
            "Appointment %s completed as %r but is stored as %r; using the stored type",
            appointment.pk,
            appointment_type,
            appointment.type,
        )

    if appointment.status == Appointment.Status.COMPLETED:
        logger.info("Appointment %s is already completed", appointment.pk)
        return appointment
    if appointment.status == Appointment.Status.CANCELLED:
        raise InvalidTransition(
            "A cancelled appointment cannot be completed.",
            status_value=appointment.status,
            action="COMPLETE",
        )

    now = timezone.now()
    notes = (notes or "").strip()
    changed = Appointment.objects.filter(pk=appointment.pk, status=Appointment.Status.SCHEDULED).update(
        status=Appointment.Status.COMPLETED,
        completed_at=now,
        evaluation_notes=notes,
        updated_at=now,
    )
    appointment.refresh_from_db()
    if not changed:
        if appointment.status == Appointment.Status.COMPLETED:
            return appointment
        raise ConcurrentModification(f"Appointment {appointment.pk} changed while completing it; please retry.")

    logger.info("Completed %s appointment %s", appointment.type, appointment.pk)

    if appointment.type == Appointment.Type.DONOR:
        complete_medical_evaluation(appointment, notes)

    return appointment


def cancel_appointment(appointment_id, *, actor_role: str, reason: str = "", actor=None) -> Appointment:
    _require_staff(actor_role, "cancel")
    appointment = store.get_appointment(appointment_id)

    if appointment.is_terminal:
        raise InvalidTransition(
            f"Appointment {appointment.pk} is already {appointment.status}.",
            status_value=appointment.status,
            action="CANCEL",
        )

    now = timezone.now()
    changed = Appointment.objects.filter(pk=appointment.pk, status=Appointment.Status.SCHEDULED).update(
        status=Appointment.Status.CANCELLED,
        cancelled_at=now,
        cancellation_reason=(reason or "").strip(),
        updated_at=now,
    )
    if not changed:
        raise ConcurrentModification(f"Appointment {appointment.pk} changed while cancelling it; please retry.")
    appointment.refresh_from_db()

    logger.info("Cancelled appointment %s", appointment.pk)
    message = f"Your appointment on {_when(appointment)} has been cancelled."
    if appointment.cancellation_reason:
        message = f"{message} Reason: {appointment.cancellation_reason}"
    _notify_subject(appointment, "Appointment Cancelled", message)
    return appointment


def update_appointment(appointment_id, changes: Mapping[str, Any], *, actor_role: str, actor=None) -> Appointment:
    """
    Reschedule: change date, time, purpose or doctor of a scheduled
    appointment. No effect on the application.
    """
    _require_staff(actor_role, "update")

    changes = dict(changes or {})
    if "doctor_id" in changes and "doctor" not in changes:
        changes["doctor"] = changes.pop("doctor_id")

    unknown = sorted(set(changes) - set(UPDATABLE_FIELDS))
    if unknown:
        raise InvalidTransition(
            f"Appointment field(s) cannot be changed: {', '.join(unknown)}.",
            action="UPDATE",
        )
    if not changes:
        raise MissingPayload(list(UPDATABLE_FIELDS), "Nothing to update.")

    appointment = store.get_appointment(appointment_id)
    if appointment.is_terminal:
        raise InvalidTransition(
            f"Appointment {appointment.pk} is {appointment.status} and can no longer be changed.",
            status_value=appointment.status,
            action="UPDATE",
        )

    if "date" in changes:
        appointment.date = _as_date(changes["date"])
    if "time" in changes:
        appointment.time = _as_time(changes["time"])
    if "purpose" in changes:
        appointment.purpose = changes["purpose"] or ""
    if "doctor" in changes:
        doctor = changes["doctor"]
        appointment.doctor = doctor if isinstance(doctor, get_user_model()) else store.get_user(doctor)

    store.save_with_retry(appointment)

    logger.info("Updated appointment %s (%s)", appointment.pk, ", ".join(sorted(changes)))
    _notify_subject(
        appointment,
        "Appointment Rescheduled",
        f"Your appointment is now on {_when(appointment)}.",
    )
    return appointment


# ===============================================================
# Queries
# ===============================================================
def appointments_for(user, role: str):
    """
    Appointments visible to ``user`` acting as ``role``. A donor sees
    nothing unless currently eligible to schedule.
    """
    r = normalize_role(role)
    qs = Appointment.objects.select_related("doctor", "donor", "recipient", "recipient_profile")

    if r == Role.ADMIN:
        return qs
    if r == Role.DOCTOR:
        return qs.filter(doctor=user)
    if r == Role.RECIPIENT:
        return qs.filter(Q(recipient=user) | Q(recipient_profile__user=user))
    if r == Role.DONOR:
        application = store.latest_application_for(user.pk)
        status = application.status if application else None
        if not can_schedule_appointments(status, Role.DONOR):
            return qs.none()
        return qs.filter(donor=user)
    return qs.none()
