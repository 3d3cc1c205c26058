import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


STATUS_CHOICES = [
    ("pending", "Pending Review"),
    ("initial-doctor-approved", "Doctor Initially Approved"),
    ("pending-initial-admin-approval", "Pending Initial Admin Approval"),
    ("initially-approved", "Initially Approved"),
    ("medical-evaluation-in-progress", "Medical Evaluation In Progress"),
    ("medical-evaluation-completed", "Medical Evaluation Completed"),
    ("pending-final-admin-review", "Pending Final Admin Review"),
    ("final-admin-approved", "Final Admin Approved"),
    ("waiting-list", "On Waiting List"),
    ("match-found", "Match Found"),
    ("initial-doctor-rejected", "Doctor Rejected"),
    ("initial-admin-rejected", "Initial Admin Rejected"),
    ("final-admin-rejected", "Final Admin Rejected"),
]

TERMINAL_STATUS_VALUES = [
    "final-admin-rejected",
    "initial-admin-rejected",
    "initial-doctor-rejected",
    "match-found",
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="UserRole",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("role", models.CharField(max_length=32)),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="donation_roles",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "unique_together": {("user", "role")},
            },
        ),
        migrations.CreateModel(
            name="DonorProfile",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("blood_type", models.CharField(blank=True, max_length=8)),
                ("phone", models.CharField(blank=True, max_length=32)),
                ("request_status", models.CharField(blank=True, default="", max_length=64)),
                ("appointment_ids", models.JSONField(blank=True, default=list)),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="donor_profile",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="RecipientProfile",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("full_name", models.CharField(max_length=255)),
                ("blood_type", models.CharField(blank=True, max_length=8)),
                ("organ_needed", models.CharField(blank=True, max_length=64)),
                ("urgency", models.CharField(blank=True, max_length=32)),
                (
                    "user",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="recipient_profile",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="Appointment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("type", models.CharField(choices=[("donor", "Donor"), ("recipient", "Recipient")], max_length=16)),
                ("date", models.DateField()),
                ("time", models.TimeField()),
                ("purpose", models.CharField(blank=True, max_length=255)),
                (
                    "status",
                    models.CharField(
                        choices=[("scheduled", "Scheduled"), ("completed", "Completed"), ("cancelled", "Cancelled")],
                        db_index=True,
                        default="scheduled",
                        max_length=16,
                    ),
                ),
                ("evaluation_notes", models.TextField(blank=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("cancellation_reason", models.TextField(blank=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "doctor",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="doctor_appointments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "donor",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="donor_appointments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "recipient",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="recipient_appointments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "recipient_profile",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="appointments",
                        to="donation_core.recipientprofile",
                    ),
                ),
            ],
            options={
                "ordering": ["date", "time", "id"],
                "constraints": [
                    models.CheckConstraint(
                        condition=(
                            models.Q(
                                type="donor",
                                donor__isnull=False,
                                recipient__isnull=True,
                                recipient_profile__isnull=True,
                            )
                            | models.Q(
                                type="recipient",
                                donor__isnull=True,
                                recipient__isnull=False,
                                recipient_profile__isnull=True,
                            )
                            | models.Q(
                                type="recipient",
                                donor__isnull=True,
                                recipient__isnull=True,
                                recipient_profile__isnull=False,
                            )
                        ),
                        name="appointment_single_subject",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Application",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "status",
                    models.CharField(choices=STATUS_CHOICES, db_index=True, default="pending", max_length=64),
                ),
                ("request_status", models.CharField(default="pending", max_length=64)),
                ("details", models.JSONField(blank=True, default=dict)),
                ("submitted_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("doctor_comment", models.TextField(blank=True)),
                ("admin_comment", models.TextField(blank=True)),
                ("final_doctor_comment", models.TextField(blank=True)),
                ("final_admin_notes", models.TextField(blank=True)),
                ("evaluation_notes", models.TextField(blank=True)),
                ("rejection_reason", models.TextField(blank=True)),
                ("rejected_at", models.DateTimeField(blank=True, null=True)),
                (
                    "current_appointment",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to="donation_core.appointment",
                    ),
                ),
                (
                    "donor",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="donation_applications",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-submitted_at", "-id"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=~models.Q(status__in=TERMINAL_STATUS_VALUES),
                        fields=("donor",),
                        name="one_active_application_per_donor",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Notification",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=255)),
                ("message", models.TextField()),
                (
                    "category",
                    models.CharField(
                        choices=[
                            ("approval_update", "Approval update"),
                            ("appointment_update", "Appointment update"),
                            ("general", "General"),
                        ],
                        default="general",
                        max_length=32,
                    ),
                ),
                ("read", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "recipient",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="donation_notifications",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "indexes": [models.Index(fields=["recipient", "read"], name="notification_recipient_read")],
            },
        ),
        migrations.CreateModel(
            name="WorkflowTransition",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("from_status", models.CharField(max_length=64)),
                ("to_status", models.CharField(max_length=64)),
                ("role", models.CharField(max_length=32)),
                ("action", models.CharField(max_length=64)),
                ("comment", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "application",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transitions",
                        to="donation_core.application",
                    ),
                ),
                (
                    "performed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="donation_transitions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["created_at", "id"],
                "indexes": [models.Index(fields=["application", "created_at"], name="transition_app_created")],
            },
        ),
    ]
