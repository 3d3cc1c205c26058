from datetime import timedelta

import pytest
from django.db import IntegrityError, transaction
from django.utils import timezone

from donation_core.exceptions import ActiveApplicationExists, CooldownActive
from donation_core.models import Application, Notification
from donation_core.services import store
from donation_core.services.applications import (
    application_history,
    can_reapply,
    reapply_available_at,
    submit_application,
)
from donation_core.workflows.executor import apply_action
from donation_core.workflows.statuses import ApplicationStatus as S


@pytest.mark.django_db
def test_submission_creates_pending_application_and_notifies(donor):
    app = submit_application(donor, {"blood_type": "O+"})

    assert app.status == S.PENDING
    assert app.request_status == S.PENDING
    assert app.details == {"blood_type": "O+"}
    assert donor.donor_profile.request_status == S.PENDING

    note = Notification.objects.get(recipient=donor)
    assert note.title == "Request Submitted"
    assert note.category == Notification.Category.APPROVAL_UPDATE


@pytest.mark.django_db
def test_second_active_application_is_refused(donor):
    first = submit_application(donor)

    with pytest.raises(ActiveApplicationExists) as exc:
        submit_application(donor)
    assert exc.value.application_id == first.pk


@pytest.mark.django_db
def test_database_enforces_single_active_application(donor, application_factory):
    application_factory(donor=donor)
    with pytest.raises(IntegrityError):
        with transaction.atomic():
            Application.objects.create(donor=donor)


@pytest.mark.django_db
def test_rejection_cooldown_and_reapplication(donor, doctor):
    old = submit_application(donor)
    apply_action(old.pk, actor=doctor, actor_role="doctor", action="reject", payload={"reason": "low hemoglobin"})
    old.refresh_from_db()
    t0 = old.rejected_at

    with pytest.raises(CooldownActive) as exc:
        submit_application(donor, now=t0 + timedelta(days=14))
    assert exc.value.available_at == t0 + timedelta(days=15)

    state = can_reapply(donor, now=t0 + timedelta(days=14))
    assert state.allowed is False
    assert state.available_at == t0 + timedelta(days=15)

    new = submit_application(donor, now=t0 + timedelta(days=15))
    assert new.pk != old.pk
    assert new.status == S.PENDING

    old.refresh_from_db()
    assert old.status == S.INITIAL_DOCTOR_REJECTED
    assert old.rejection_reason == "low hemoglobin"

    assert [a.pk for a in application_history(donor)] == [new.pk, old.pk]


@pytest.mark.django_db
def test_can_reapply_reports_active_application(donor):
    app = submit_application(donor)
    state = can_reapply(donor)
    assert state.allowed is False
    assert state.active_application_id == app.pk
    assert state.as_dict()["active_application_id"] == app.pk


@pytest.mark.django_db
def test_fresh_donor_can_apply(donor):
    state = can_reapply(donor)
    assert state.allowed is True
    assert state.available_at is None


@pytest.mark.django_db
def test_legacy_terminal_spelling_does_not_count_as_active(donor, application_factory):
    old = application_factory(donor=donor, status=S.FINAL_ADMIN_REJECTED)
    Application.objects.filter(pk=old.pk).update(
        status="final-rejected",
        request_status="final-rejected",
        rejected_at=timezone.now() - timedelta(days=30),
    )

    assert store.active_application_for(donor.pk) is None
    new = submit_application(donor)
    assert new.status == S.PENDING


@pytest.mark.django_db
def test_legacy_rejection_spelling_still_enforces_cooldown(donor, application_factory):
    old = application_factory(donor=donor, status=S.FINAL_ADMIN_REJECTED)
    rejected_at = timezone.now() - timedelta(days=3)
    Application.objects.filter(pk=old.pk).update(status="final-rejected", rejected_at=rejected_at)

    with pytest.raises(CooldownActive) as exc:
        submit_application(donor)
    assert exc.value.available_at == rejected_at + timedelta(days=15)


@pytest.mark.django_db
def test_legacy_spelling_is_stored_canonically(donor):
    app = Application.objects.create(donor=donor, status="initial-admin-approved", request_status="submitted")
    stored = Application.objects.get(pk=app.pk)
    assert stored.status == S.INITIALLY_APPROVED.value
    assert stored.request_status == S.PENDING.value


@pytest.mark.django_db
def test_cooldown_prefers_recorded_rejection_time(donor, application_factory):
    now = timezone.now()
    stamped = application_factory(donor=donor, status=S.INITIAL_DOCTOR_REJECTED, rejected_at=now - timedelta(days=20))
    unstamped = application_factory(donor=donor, status=S.INITIAL_ADMIN_REJECTED)
    Application.objects.filter(pk=unstamped.pk).update(rejected_at=None, updated_at=now - timedelta(days=1))

    assert reapply_available_at(donor) == stamped.rejected_at + timedelta(days=15)
