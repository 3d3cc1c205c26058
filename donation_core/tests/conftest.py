# donation_core/tests/conftest.py

from __future__ import annotations

import datetime
import uuid
from typing import Any, Callable, Optional

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from donation_core.models import Application, Appointment, RecipientProfile, UserRole
from donation_core.workflows.statuses import ApplicationStatus


def _rand(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10]}"


@pytest.fixture
def api_client() -> APIClient:
    return APIClient()


@pytest.fixture
def user_factory(db) -> Callable[..., Any]:
    """
    Create an account, optionally with a portal role row.
    """

    def _factory(*, role: Optional[str] = None, username: Optional[str] = None, **extra: Any):
        User = get_user_model()
        user = User.objects.create_user(
            username=username or _rand(role.lower() if role else "user"),
            password="pass123",
            email=extra.pop("email", f"{_rand('mail')}@example.org"),
            **extra,
        )
        if role:
            UserRole.objects.create(user=user, role=role)
        return user

    return _factory


@pytest.fixture
def donor(user_factory):
    return user_factory(role="DONOR", username="donor")


@pytest.fixture
def doctor(user_factory):
    return user_factory(role="DOCTOR", username="doctor")


@pytest.fixture
def admin_user(user_factory):
    return user_factory(role="ADMIN", username="hospital-admin")


@pytest.fixture
def recipient_user(user_factory):
    return user_factory(role="RECIPIENT", username="recipient")


@pytest.fixture
def application_factory(db) -> Callable[..., Application]:
    """
    Create an application directly in any status (fixtures bypass the executor).
    """

    def _factory(*, donor, status: str = ApplicationStatus.PENDING, **extra: Any) -> Application:
        value = getattr(status, "value", status)
        return Application.objects.create(
            donor=donor,
            status=value,
            request_status=extra.pop("request_status", value),
            **extra,
        )

    return _factory


@pytest.fixture
def pending_application(donor, application_factory) -> Application:
    return application_factory(donor=donor)


@pytest.fixture
def approved_application(donor, application_factory) -> Application:
    return application_factory(donor=donor, status=ApplicationStatus.INITIALLY_APPROVED)


@pytest.fixture
def appointment_data(donor, doctor) -> dict:
    return {
        "donor_id": donor.pk,
        "doctor_id": doctor.pk,
        "date": datetime.date(2026, 3, 2),
        "time": datetime.time(9, 30),
        "purpose": "Medical evaluation",
    }


@pytest.fixture
def appointment_factory(db) -> Callable[..., Appointment]:
    def _factory(*, doctor, donor=None, recipient=None, recipient_profile=None, **extra: Any) -> Appointment:
        kind = Appointment.Type.DONOR if donor is not None else Appointment.Type.RECIPIENT
        return Appointment.objects.create(
            type=kind,
            donor=donor,
            recipient=recipient,
            recipient_profile=recipient_profile,
            doctor=doctor,
            date=extra.pop("date", datetime.date(2026, 3, 2)),
            time=extra.pop("time", datetime.time(9, 30)),
            **extra,
        )

    return _factory


@pytest.fixture
def recipient_profile(db) -> RecipientProfile:
    return RecipientProfile.objects.create(full_name="Unlinked Recipient", organ_needed="kidney")
