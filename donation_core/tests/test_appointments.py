import datetime
import logging

import pytest

from donation_core.exceptions import InvalidTransition, MissingPayload, NotFound, PersistenceFailure
from donation_core.models import Application, Appointment, DonorProfile, Notification
from donation_core.services import appointments as svc
from donation_core.workflows import executor
from donation_core.workflows.executor import apply_action
from donation_core.workflows.statuses import ApplicationStatus as S, progress_percent_of


@pytest.mark.django_db
def test_donor_appointment_starts_evaluation(approved_application, appointment_data, doctor):
    appt = svc.create_donor_appointment(appointment_data, actor_role="doctor", actor=doctor)

    assert appt.status == Appointment.Status.SCHEDULED
    assert appt.type == Appointment.Type.DONOR

    app = Application.objects.get(pk=approved_application.pk)
    assert app.status == S.MEDICAL_EVALUATION_IN_PROGRESS
    assert app.current_appointment_id == appt.pk

    profile = DonorProfile.objects.get(user=approved_application.donor)
    assert profile.appointment_ids == [appt.pk]

    titles = set(Notification.objects.filter(recipient=approved_application.donor).values_list("title", flat=True))
    assert {"Appointment Scheduled", "Medical Evaluation Started"} <= titles


@pytest.mark.django_db
def test_appointment_survives_failed_evaluation_start(approved_application, appointment_data, monkeypatch, caplog):
    def boom(*args, **kwargs):
        raise PersistenceFailure("store unavailable")

    monkeypatch.setattr(executor, "apply_action", boom)

    with caplog.at_level(logging.ERROR, logger="donation_core.services.appointments"):
        appt = svc.create_donor_appointment(appointment_data, actor_role="admin")

    assert Appointment.objects.filter(pk=appt.pk).exists()
    approved_application.refresh_from_db()
    assert approved_application.status == S.INITIALLY_APPROVED
    assert "evaluation" in caplog.text.lower() or "schedule_evaluation" in caplog.text.lower()


@pytest.mark.django_db
def test_appointment_without_waiting_application_leaves_status(pending_application, appointment_data):
    appt = svc.create_donor_appointment(appointment_data, actor_role="doctor")

    assert appt.pk is not None
    pending_application.refresh_from_db()
    assert pending_application.status == S.PENDING


@pytest.mark.django_db
def test_only_staff_can_create_appointments(approved_application, appointment_data):
    with pytest.raises(InvalidTransition):
        svc.create_donor_appointment(appointment_data, actor_role="donor")
    assert not Appointment.objects.exists()


@pytest.mark.django_db
def test_missing_fields_are_reported(appointment_data):
    appointment_data.pop("time")
    appointment_data["donor_id"] = ""
    with pytest.raises(MissingPayload) as exc:
        svc.create_donor_appointment(appointment_data, actor_role="doctor")
    assert exc.value.fields == ["donor_id", "time"]


@pytest.mark.django_db
def test_completion_advances_and_is_idempotent(approved_application, appointment_data):
    appt = svc.create_donor_appointment(appointment_data, actor_role="doctor")

    svc.complete_appointment_with_evaluation(appt.pk, "donor", "ok", actor_role="doctor")
    app = Application.objects.get(pk=approved_application.pk)
    assert app.status == S.MEDICAL_EVALUATION_COMPLETED
    assert app.evaluation_notes == "ok"
    assert app.completed_appointment_id == appt.pk
    assert app.evaluation_started_at is not None
    assert app.evaluation_completed_at >= app.evaluation_started_at
    completed_at = app.evaluation_completed_at
    transitions = app.transitions.count()

    again = svc.complete_appointment_with_evaluation(appt.pk, "donor", "ok", actor_role="doctor")
    assert again.status == Appointment.Status.COMPLETED

    app.refresh_from_db()
    assert app.status == S.MEDICAL_EVALUATION_COMPLETED
    assert app.transitions.count() == transitions
    assert app.evaluation_completed_at == completed_at


@pytest.mark.django_db
def test_complete_unknown_appointment_is_not_found():
    with pytest.raises(NotFound):
        svc.complete_appointment_with_evaluation(999999, "donor", actor_role="doctor")


@pytest.mark.django_db
def test_cancelled_appointment_is_final(donor, doctor, appointment_factory):
    appt = appointment_factory(donor=donor, doctor=doctor)

    cancelled = svc.cancel_appointment(appt.pk, actor_role="admin", reason="doctor unavailable")
    assert cancelled.status == Appointment.Status.CANCELLED
    assert cancelled.cancellation_reason == "doctor unavailable"

    with pytest.raises(InvalidTransition):
        svc.complete_appointment_with_evaluation(appt.pk, actor_role="doctor")
    with pytest.raises(InvalidTransition):
        svc.cancel_appointment(appt.pk, actor_role="admin")
    with pytest.raises(InvalidTransition):
        svc.update_appointment(appt.pk, {"purpose": "retry"}, actor_role="admin")

    assert Notification.objects.filter(recipient=donor, title="Appointment Cancelled").exists()


@pytest.mark.django_db
def test_reschedule_changes_only_allowed_fields(donor, doctor, user_factory, appointment_factory):
    appt = appointment_factory(donor=donor, doctor=doctor)
    other_doctor = user_factory(role="DOCTOR")

    updated = svc.update_appointment(
        appt.pk,
        {"date": "2026-04-01", "time": "14:00", "doctor_id": other_doctor.pk},
        actor_role="doctor",
    )
    assert updated.date == datetime.date(2026, 4, 1)
    assert updated.time == datetime.time(14, 0)
    assert updated.doctor_id == other_doctor.pk
    assert updated.status == Appointment.Status.SCHEDULED

    with pytest.raises(InvalidTransition):
        svc.update_appointment(appt.pk, {"status": "completed"}, actor_role="doctor")

    assert Notification.objects.filter(recipient=donor, title="Appointment Rescheduled").exists()


@pytest.mark.django_db
def test_recipient_account_is_preferred(recipient_user, doctor, recipient_profile):
    recipient_profile.user = recipient_user
    recipient_profile.save()

    appt = svc.create_recipient_appointment(
        {"recipient_profile_id": recipient_profile.pk, "doctor_id": doctor.pk, "date": "2026-05-01", "time": "10:00"},
        actor_role="doctor",
    )
    assert appt.recipient_id == recipient_user.pk
    assert appt.recipient_profile_id is None
    assert appt.type == Appointment.Type.RECIPIENT


@pytest.mark.django_db
def test_unlinked_recipient_profile_is_stored_with_warning(doctor, recipient_profile, caplog):
    with caplog.at_level(logging.WARNING, logger="donation_core.services.appointments"):
        appt = svc.create_recipient_appointment(
            {"recipient_profile_id": recipient_profile.pk, "doctor_id": doctor.pk, "date": "2026-05-01", "time": "10:00"},
            actor_role="admin",
        )
    assert appt.recipient_id is None
    assert appt.recipient_profile_id == recipient_profile.pk
    assert "no linked account" in caplog.text


@pytest.mark.django_db
def test_recipient_completion_has_no_application_effect(recipient_user, doctor, donor, approved_application):
    appt = svc.create_recipient_appointment(
        {"recipient_id": recipient_user.pk, "doctor_id": doctor.pk, "date": "2026-05-01", "time": "10:00"},
        actor_role="doctor",
    )
    svc.complete_appointment_with_evaluation(appt.pk, "recipient", "fine", actor_role="doctor")

    approved_application.refresh_from_db()
    assert approved_application.status == S.INITIALLY_APPROVED


@pytest.mark.django_db
def test_donor_sees_appointments_only_while_eligible(donor, doctor, application_factory, appointment_factory):
    app = application_factory(donor=donor, status=S.PENDING)
    appointment_factory(donor=donor, doctor=doctor)

    assert list(svc.appointments_for(donor, "donor")) == []

    app.status = S.INITIALLY_APPROVED
    app.save(_workflow_bypass=True)
    assert len(svc.appointments_for(donor, "donor")) == 1
    assert len(svc.appointments_for(doctor, "doctor")) == 1


@pytest.mark.django_db
def test_full_happy_path(pending_application, doctor, admin_user, appointment_data):
    app_id = pending_application.pk
    seen = [progress_percent_of(pending_application.status)]

    def status():
        return Application.objects.get(pk=app_id).status

    apply_action(app_id, actor=doctor, actor_role="doctor", action="approve")
    assert status() == S.PENDING_INITIAL_ADMIN_APPROVAL
    seen.append(progress_percent_of(status()))

    apply_action(app_id, actor=admin_user, actor_role="admin", action="approve")
    assert status() == S.INITIALLY_APPROVED
    seen.append(progress_percent_of(status()))

    appt = svc.create_donor_appointment(appointment_data, actor_role="doctor", actor=doctor)
    assert status() == S.MEDICAL_EVALUATION_IN_PROGRESS
    seen.append(progress_percent_of(status()))

    svc.complete_appointment_with_evaluation(appt.pk, "donor", "ok", actor_role="doctor")
    assert status() == S.MEDICAL_EVALUATION_COMPLETED
    seen.append(progress_percent_of(status()))

    apply_action(app_id, actor=admin_user, actor_role="admin", action="approve")
    assert status() == S.FINAL_ADMIN_APPROVED
    seen.append(progress_percent_of(status()))

    assert seen == sorted(seen)
    assert len(set(seen)) == len(seen)

    apply_action(app_id, actor=admin_user, actor_role="admin", action="addToWaitingList")
    apply_action(app_id, actor=admin_user, actor_role="admin", action="recordMatch", payload={"notes": "matched"})
    assert status() == S.MATCH_FOUND
    assert progress_percent_of(status()) == 100
