import pytest

from donation_core.workflows.eligibility import DONOR_SCHEDULING_STATUSES, can_schedule_appointments
from donation_core.workflows.statuses import ApplicationStatus


@pytest.mark.parametrize("status", list(ApplicationStatus))
def test_donor_eligibility_matches_evaluation_window(status):
    expected = status in {
        ApplicationStatus.INITIALLY_APPROVED,
        ApplicationStatus.MEDICAL_EVALUATION_IN_PROGRESS,
        ApplicationStatus.MEDICAL_EVALUATION_COMPLETED,
    }
    assert can_schedule_appointments(status, "donor") is expected
    assert can_schedule_appointments(status.value, "DONOR") is expected


@pytest.mark.parametrize("role", ["doctor", "admin", "ADMIN", "recipient"])
@pytest.mark.parametrize("status", list(ApplicationStatus) + [None, "garbage"])
def test_non_donor_roles_always_eligible(role, status):
    assert can_schedule_appointments(status, role) is True


def test_donor_without_application_is_not_eligible():
    assert can_schedule_appointments(None, "donor") is False
    assert can_schedule_appointments("garbage", "donor") is False


def test_legacy_spelling_is_resolved():
    assert can_schedule_appointments("initial-admin-approved", "donor") is True
    assert len(DONOR_SCHEDULING_STATUSES) == 3
