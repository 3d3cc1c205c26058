import django.db.models.deletion
from django.db import migrations, models

from donation_core.workflows.statuses import canonical_value


TERMINAL_STATUS_SPELLINGS = [
    "Doctor Rejected",
    "FINAL_ADMIN_REJECTED",
    "Final Admin Rejected",
    "INITIAL_ADMIN_REJECTED",
    "INITIAL_DOCTOR_REJECTED",
    "Initial Admin Rejected",
    "MATCH_FOUND",
    "Match Found",
    "final-admin-rejected",
    "final-rejected",
    "initial-admin-rejected",
    "initial-doctor-rejected",
    "match-found",
    "rejected-admin-initial",
]


def canonicalize_statuses(apps, schema_editor):
    Application = apps.get_model("donation_core", "Application")
    DonorProfile = apps.get_model("donation_core", "DonorProfile")

    for app in Application.objects.only("id", "status", "request_status").iterator():
        status = canonical_value(app.status)
        request_status = canonical_value(app.request_status)
        if (status, request_status) != (app.status, app.request_status):
            Application.objects.filter(pk=app.pk).update(status=status, request_status=request_status)

    for profile in DonorProfile.objects.exclude(request_status="").only("id", "request_status").iterator():
        value = canonical_value(profile.request_status)
        if value != profile.request_status:
            DonorProfile.objects.filter(pk=profile.pk).update(request_status=value)


class Migration(migrations.Migration):

    dependencies = [
        ("donation_core", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="application",
            name="evaluation_started_at",
            field=models.DateTimeField(blank=True, null=True),
        ),
        migrations.AddField(
            model_name="application",
            name="evaluation_completed_at",
            field=models.DateTimeField(blank=True, null=True),
        ),
        migrations.AddField(
            model_name="application",
            name="completed_appointment",
            field=models.ForeignKey(
                blank=True,
                null=True,
                on_delete=django.db.models.deletion.SET_NULL,
                related_name="+",
                to="donation_core.appointment",
            ),
        ),
        migrations.RunPython(canonicalize_statuses, migrations.RunPython.noop),
        migrations.RemoveConstraint(
            model_name="application",
            name="one_active_application_per_donor",
        ),
        migrations.AddConstraint(
            model_name="application",
            constraint=models.UniqueConstraint(
                condition=~models.Q(status__in=TERMINAL_STATUS_SPELLINGS),
                fields=("donor",),
                name="one_active_application_per_donor",
            ),
        ),
    ]
