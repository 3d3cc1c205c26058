import pytest

from donation_core.models import Application, Appointment, Notification
from donation_core.workflows.statuses import ApplicationStatus as S


@pytest.mark.django_db
def test_endpoints_require_authentication(api_client):
    resp = api_client.get("/donation/applications/")
    assert resp.status_code in (401, 403)


@pytest.mark.django_db
def test_status_registry_endpoint(api_client, donor):
    api_client.force_authenticate(user=donor)

    resp = api_client.get("/donation/statuses/")
    assert resp.status_code == 200
    assert len(resp.json()["statuses"]) == len(S)

    resp = api_client.get("/donation/statuses/", {"value": "INITIAL_ADMIN_APPROVED"})
    body = resp.json()
    assert body["value"] == S.INITIALLY_APPROVED.value
    assert body["progress"] == 40

    resp = api_client.get("/donation/statuses/", {"value": "mystery"})
    assert resp.json()["label"] == "Unknown Status"


@pytest.mark.django_db
def test_workflow_definition_endpoint(api_client, doctor):
    api_client.force_authenticate(user=doctor)
    resp = api_client.get("/donation/workflow/")
    assert resp.status_code == 200
    assert resp.json()["initial"] == S.PENDING.value


@pytest.mark.django_db
def test_donor_submits_once(api_client, donor):
    api_client.force_authenticate(user=donor)

    resp = api_client.post("/donation/applications/", {"details": {"organ": "kidney"}}, format="json")
    assert resp.status_code == 201
    assert resp.json()["status"] == S.PENDING.value
    assert resp.json()["status_meta"]["label"] == "Pending Review"

    resp = api_client.post("/donation/applications/", {}, format="json")
    assert resp.status_code == 409
    assert resp.json()["code"] == "active_application_exists"


@pytest.mark.django_db
def test_staff_cannot_submit(api_client, doctor):
    api_client.force_authenticate(user=doctor)
    resp = api_client.post("/donation/applications/", {}, format="json")
    assert resp.status_code == 403


@pytest.mark.django_db
def test_doctor_action_auto_forwards(api_client, doctor, pending_application):
    api_client.force_authenticate(user=doctor)

    resp = api_client.get(f"/donation/applications/{pending_application.pk}/allowed/")
    assert resp.json()["allowed"] == ["APPROVE", "REJECT"]

    resp = api_client.post(
        f"/donation/applications/{pending_application.pk}/actions/",
        {"action": "approve", "comment": "looks fit"},
        format="json",
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == S.PENDING_INITIAL_ADMIN_APPROVAL.value
    assert body["doctor_comment"] == "looks fit"
    assert body["notifications_sent"] == 1

    resp = api_client.get(f"/donation/applications/{pending_application.pk}/transitions/")
    assert [t["to_status"] for t in resp.json()] == [
        S.INITIAL_DOCTOR_APPROVED.value,
        S.PENDING_INITIAL_ADMIN_APPROVAL.value,
    ]


@pytest.mark.django_db
def test_invalid_action_and_missing_reason(api_client, donor, doctor, pending_application):
    api_client.force_authenticate(user=donor)
    resp = api_client.post(
        f"/donation/applications/{pending_application.pk}/actions/",
        {"action": "approve"},
        format="json",
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "invalid_transition"

    api_client.force_authenticate(user=doctor)
    resp = api_client.post(
        f"/donation/applications/{pending_application.pk}/actions/",
        {"action": "reject"},
        format="json",
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "missing_payload"
    assert resp.json()["fields"] == ["reason"]

    pending_application.refresh_from_db()
    assert pending_application.status == S.PENDING


@pytest.mark.django_db
def test_system_role_cannot_be_claimed(api_client, admin_user, approved_application):
    api_client.force_authenticate(user=admin_user)
    resp = api_client.post(
        f"/donation/applications/{approved_application.pk}/actions/",
        {"action": "scheduleEvaluation", "role": "system"},
        format="json",
    )
    assert resp.status_code == 400
    approved_application.refresh_from_db()
    assert approved_application.status == S.INITIALLY_APPROVED


@pytest.mark.django_db
def test_other_donors_application_is_hidden(api_client, user_factory, pending_application):
    stranger = user_factory(role="DONOR")
    api_client.force_authenticate(user=stranger)

    resp = api_client.get(f"/donation/applications/{pending_application.pk}/")
    assert resp.status_code == 404
    assert resp.json()["code"] == "not_found"


@pytest.mark.django_db
def test_appointment_flow_over_api(api_client, doctor, donor, approved_application):
    api_client.force_authenticate(user=doctor)

    resp = api_client.post(
        "/donation/appointments/",
        {"type": "donor", "donor_id": donor.pk, "doctor_id": doctor.pk, "date": "2026-06-01", "time": "08:15"},
        format="json",
    )
    assert resp.status_code == 201
    appt_id = resp.json()["id"]
    assert Application.objects.get(pk=approved_application.pk).status == S.MEDICAL_EVALUATION_IN_PROGRESS

    resp = api_client.patch(f"/donation/appointments/{appt_id}/", {"time": "09:00"}, format="json")
    assert resp.status_code == 200
    assert resp.json()["time"].startswith("09:00")

    resp = api_client.post(f"/donation/appointments/{appt_id}/complete/", {"notes": "ok"}, format="json")
    assert resp.status_code == 200
    assert resp.json()["status"] == Appointment.Status.COMPLETED
    assert Application.objects.get(pk=approved_application.pk).status == S.MEDICAL_EVALUATION_COMPLETED

    resp = api_client.post(f"/donation/appointments/{appt_id}/cancel/", {}, format="json")
    assert resp.status_code == 400
    assert resp.json()["code"] == "invalid_transition"

    api_client.force_authenticate(user=donor)
    resp = api_client.get("/donation/appointments/")
    assert [a["id"] for a in resp.json()["results"]] == [appt_id]

    resp = api_client.get("/donation/eligibility/")
    assert resp.json()["can_schedule_appointments"] is True


@pytest.mark.django_db
def test_donor_cannot_create_appointment(api_client, donor, doctor, approved_application):
    api_client.force_authenticate(user=donor)
    resp = api_client.post(
        "/donation/appointments/",
        {"type": "donor", "donor_id": donor.pk, "doctor_id": doctor.pk, "date": "2026-06-01", "time": "08:15"},
        format="json",
    )
    assert resp.status_code == 400
    assert not Appointment.objects.exists()


@pytest.mark.django_db
def test_update_rejects_unknown_fields(api_client, doctor, donor, appointment_factory):
    appt = appointment_factory(donor=donor, doctor=doctor)
    api_client.force_authenticate(user=doctor)

    resp = api_client.patch(f"/donation/appointments/{appt.pk}/", {"status": "completed"}, format="json")
    assert resp.status_code == 400
    appt.refresh_from_db()
    assert appt.status == Appointment.Status.SCHEDULED


@pytest.mark.django_db
def test_notifications_endpoints(api_client, donor):
    api_client.force_authenticate(user=donor)
    api_client.post("/donation/applications/", {}, format="json")

    resp = api_client.get("/donation/notifications/")
    results = resp.json()["results"]
    assert [n["title"] for n in results] == ["Request Submitted"]

    resp = api_client.get("/donation/notifications/unread-count/")
    assert resp.json() == {"unread": 1}

    resp = api_client.post(f"/donation/notifications/{results[0]['id']}/read/")
    assert resp.status_code == 200
    assert resp.json()["read"] is True

    resp = api_client.post("/donation/notifications/read-all/")
    assert resp.json() == {"marked": 0}
    assert not Notification.objects.filter(recipient=donor, read=False).exists()


@pytest.mark.django_db
def test_reapply_status_endpoint(api_client, donor, pending_application):
    api_client.force_authenticate(user=donor)
    resp = api_client.get("/donation/applications/reapply-status/")
    assert resp.json()["allowed"] is False
    assert resp.json()["active_application_id"] == pending_application.pk


@pytest.mark.django_db
def test_eligibility_query_parameters(api_client, doctor):
    api_client.force_authenticate(user=doctor)
    resp = api_client.get("/donation/eligibility/", {"status": "pending", "role": "donor"})
    assert resp.json()["can_schedule_appointments"] is False


@pytest.mark.django_db
def test_doctor_list_and_appointment_doctor_name(api_client, user_factory, donor, approved_application):
    doctor = user_factory(role="DOCTOR", username="dr-okello", first_name="Ruth", last_name="Okello")
    user_factory(role="DOCTOR", username="retired", is_active=False)
    api_client.force_authenticate(user=donor)

    resp = api_client.get("/donation/doctors/")
    assert resp.status_code == 200
    rows = resp.json()["results"]
    assert [(r["username"], r["full_name"]) for r in rows] == [("dr-okello", "Ruth Okello")]

    api_client.force_authenticate(user=doctor)
    resp = api_client.post(
        "/donation/appointments/",
        {"type": "donor", "donor_id": donor.pk, "doctor_id": doctor.pk, "date": "2026-06-01", "time": "08:15"},
        format="json",
    )
    assert resp.status_code == 201
    assert resp.json()["doctor_name"] == "Ruth Okello"
