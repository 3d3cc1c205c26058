from __future__ import annotations

import pytest
from django.core.exceptions import PermissionDenied

from donation_core.models import Application, Notification
from donation_core.workflows import rules
from donation_core.workflows.statuses import ApplicationStatus as S


def test_workflows_public_api_contract():
    import donation_core.workflows as w

    required = {
        "workflow_definition",
        "allowed_actions",
        "allowed_next_states",
        "normalize_role",
        "required_roles",
        "apply",
        "resolve",
        "can_schedule_appointments",
    }

    missing = sorted(required - set(dir(w)))
    assert not missing, f"Workflows API missing exports: {missing}"
    assert not sorted(set(w.__all__) - set(dir(w)))

    for name in required:
        assert callable(getattr(w, name)), name


def test_rule_notifications_use_stored_categories():
    categories = set(Notification.Category.values)
    bad = [
        (rule.source.value, rule.role, rule.action, rule.notification.category)
        for rule in rules.TRANSITION_RULES
        if rule.notification is not None and rule.notification.category not in categories
    ]
    assert not bad, f"Unknown notification categories: {bad}"


def test_rules_only_write_application_fields():
    fields = {f.attname for f in Application._meta.concrete_fields}
    bad = []
    for rule in rules.TRANSITION_RULES:
        targets = [name for _, name in rule.annotations + rule.assignments] + list(rule.stamps)
        bad += [(rule.source.value, rule.action, name) for name in targets if name not in fields]
    assert not bad, f"Rules write unknown fields: {bad}"


# ---------------------------------------------------------
# Direct status writes
# ---------------------------------------------------------
@pytest.mark.django_db
def test_direct_status_change_with_other_fields_is_blocked(pending_application):
    app = Application.objects.get(pk=pending_application.pk)
    app.status = S.MATCH_FOUND
    app.details = {"note": "sneaky"}

    with pytest.raises(PermissionDenied):
        app.save(update_fields=["status", "details"])

    stored = Application.objects.get(pk=app.pk)
    assert stored.status == S.PENDING
    assert stored.details == {}


@pytest.mark.django_db
def test_other_fields_save_normally(pending_application):
    app = Application.objects.get(pk=pending_application.pk)
    app.details = {"note": "updated"}
    app.save()

    assert Application.objects.get(pk=app.pk).details == {"note": "updated"}


@pytest.mark.django_db
def test_saving_a_legacy_row_canonicalizes_without_tripping_the_guard(pending_application):
    Application.objects.filter(pk=pending_application.pk).update(status="final-rejected")

    app = Application.objects.get(pk=pending_application.pk)
    app.details = {"note": "touched"}
    app.save()

    assert Application.objects.get(pk=app.pk).status == S.FINAL_ADMIN_REJECTED


@pytest.mark.django_db
def test_bypass_attribute_allows_repairs(pending_application):
    app = Application.objects.get(pk=pending_application.pk)
    app.status = S.INITIALLY_APPROVED
    app._workflow_bypass = True
    app.save()

    assert Application.objects.get(pk=app.pk).status == S.INITIALLY_APPROVED
