# donation_core/models.py

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

from donation_core.workflows.guards import WorkflowWriteGuardMixin
from donation_core.workflows.statuses import (
    ApplicationStatus,
    TERMINAL_STATUSES,
    canonical_value,
    resolve,
    stored_spellings,
)


# ============================================================
# Base
# ============================================================
class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


# ============================================================
# Roles
# ============================================================
class UserRole(TimeStampedModel):
    """
    Portal role of an account (DONOR, RECIPIENT, DOCTOR, ADMIN).
    Superusers act as ADMIN without a row.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="donation_roles",
    )
    role = models.CharField(max_length=32)

    class Meta:
        unique_together = ("user", "role")

    def __str__(self):
        return f"{self.user.username} - {self.role}"


# ============================================================
# Profiles
# ============================================================
class DonorProfile(TimeStampedModel):
    """
    Per-donor document. ``request_status`` mirrors the status of the
    donor's latest application; ``appointment_ids`` lists every
    appointment scheduled for the donor.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="donor_profile",
    )
    blood_type = models.CharField(max_length=8, blank=True)
    phone = models.CharField(max_length=32, blank=True)
    request_status = models.CharField(max_length=64, blank=True, default="")
    appointment_ids = models.JSONField(default=list, blank=True)

    def __str__(self):
        return f"Donor {self.user.username}"


class RecipientProfile(TimeStampedModel):
    """
    Recipient record kept by hospital staff. May exist before (or without)
    a linked portal account.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="recipient_profile",
    )
    full_name = models.CharField(max_length=255)
    blood_type = models.CharField(max_length=8, blank=True)
    organ_needed = models.CharField(max_length=64, blank=True)
    urgency = models.CharField(max_length=32, blank=True)

    def __str__(self):
        return self.full_name


# ============================================================
# Application
# ============================================================
class Application(WorkflowWriteGuardMixin, TimeStampedModel):
    """
    A donor's donation application. ``status`` moves only through
    ``donation_core.workflows.executor``.
    """

    donor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="donation_applications",
    )
    status = models.CharField(
        max_length=64,
        choices=ApplicationStatus.choices,
        default=ApplicationStatus.PENDING,
        db_index=True,
    )
    # Legacy field name; always equal to ``status``.
    request_status = models.CharField(max_length=64, default=ApplicationStatus.PENDING)

    details = models.JSONField(default=dict, blank=True)
    submitted_at = models.DateTimeField(default=timezone.now)

    doctor_comment = models.TextField(blank=True)
    admin_comment = models.TextField(blank=True)
    final_doctor_comment = models.TextField(blank=True)
    final_admin_notes = models.TextField(blank=True)
    evaluation_notes = models.TextField(blank=True)

    current_appointment = models.ForeignKey(
        "Appointment",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    evaluation_started_at = models.DateTimeField(null=True, blank=True)
    evaluation_completed_at = models.DateTimeField(null=True, blank=True)
    completed_appointment = models.ForeignKey(
        "Appointment",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    rejection_reason = models.TextField(blank=True)
    rejected_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-submitted_at", "-id"]
        constraints = [
            models.UniqueConstraint(
                fields=["donor"],
                condition=~Q(status__in=stored_spellings(TERMINAL_STATUSES)),
                name="one_active_application_per_donor",
            ),
        ]

    def __str__(self):
        return f"Application {self.pk} ({self.status})"

    def save(self, *args, **kwargs):
        # Legacy spellings are stored in canonical form.
        self.status = canonical_value(self.status)
        self.request_status = canonical_value(self.request_status)
        return super().save(*args, **kwargs)

    def same_workflow_state(self, stored, current) -> bool:
        return resolve(stored) == resolve(current)


# ============================================================
# Appointment
# ============================================================
class Appointment(TimeStampedModel):
    class Status(models.TextChoices):
        SCHEDULED = "scheduled", "Scheduled"
        COMPLETED = "completed", "Completed"
        CANCELLED = "cancelled", "Cancelled"

    class Type(models.TextChoices):
        DONOR = "donor", "Donor"
        RECIPIENT = "recipient", "Recipient"

    TERMINAL = (Status.COMPLETED, Status.CANCELLED)

    type = models.CharField(max_length=16, choices=Type.choices)

    donor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="donor_appointments",
    )
    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="recipient_appointments",
    )
    # Set only when the recipient has no portal account yet.
    recipient_profile = models.ForeignKey(
        RecipientProfile,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="appointments",
    )
    doctor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="doctor_appointments",
    )

    date = models.DateField()
    time = models.TimeField()
    purpose = models.CharField(max_length=255, blank=True)

    status = models.CharField(
        max_length=16,
        choices=Status.choices,
        default=Status.SCHEDULED,
        db_index=True,
    )

    evaluation_notes = models.TextField(blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.TextField(blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    class Meta:
        ordering = ["date", "time", "id"]
        constraints = [
            models.CheckConstraint(
                name="appointment_single_subject",
                condition=(
                    Q(
                        type="donor",
                        donor__isnull=False,
                        recipient__isnull=True,
                        recipient_profile__isnull=True,
                    )
                    | Q(type="recipient", donor__isnull=True, recipient__isnull=False, recipient_profile__isnull=True)
                    | Q(type="recipient", donor__isnull=True, recipient__isnull=True, recipient_profile__isnull=False)
                ),
            ),
        ]

    @property
    def subject_id(self):
        return self.donor_id or self.recipient_id or self.recipient_profile_id

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL

    def __str__(self):
        return f"{self.type} appointment {self.pk} on {self.date} {self.time} ({self.status})"


# ============================================================
# Notifications
# ============================================================
class Notification(models.Model):
    class Category(models.TextChoices):
        APPROVAL_UPDATE = "approval_update", "Approval update"
        APPOINTMENT_UPDATE = "appointment_update", "Appointment update"
        GENERAL = "general", "General"

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="donation_notifications",
    )
    title = models.CharField(max_length=255)
    message = models.TextField()
    category = models.CharField(max_length=32, choices=Category.choices, default=Category.GENERAL)
    read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["recipient", "read"], name="notification_recipient_read"),
        ]

    def __str__(self):
        return f"{self.title} -> {self.recipient_id}"


# ============================================================
# Workflow audit trail
# ============================================================
class WorkflowTransition(models.Model):
    """
    Immutable record of one applied transition rule.
    """

    application = models.ForeignKey(
        Application,
        on_delete=models.PROTECT,
        related_name="transitions",
    )
    from_status = models.CharField(max_length=64)
    to_status = models.CharField(max_length=64)
    role = models.CharField(max_length=32)
    action = models.CharField(max_length=64)
    comment = models.TextField(blank=True)

    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="donation_transitions",
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["application", "created_at"], name="transition_app_created"),
        ]

    def __str__(self):
        return f"Application {self.application_id}: {self.from_status} -> {self.to_status} ({self.role} {self.action})"
