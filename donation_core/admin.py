# donation_core/admin.py

from django.contrib import admin
from django.utils.html import format_html

from .models import (
    Application,
    Appointment,
    DonorProfile,
    Notification,
    RecipientProfile,
    UserRole,
    WorkflowTransition,
)
from .workflows.statuses import label_of, progress_percent_of


# =============================================================
# Workflow transitions (READ-ONLY AUDIT LOG)
# =============================================================

@admin.register(WorkflowTransition)
class WorkflowTransitionAdmin(admin.ModelAdmin):
    list_display = (
        "application",
        "from_status",
        "to_status",
        "role",
        "action",
        "performed_by",
        "created_at",
    )
    list_filter = ("role", "action", "to_status")
    search_fields = ("application__id", "performed_by__username", "comment")
    ordering = ("-created_at",)

    readonly_fields = [f.name for f in WorkflowTransition._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# =============================================================
# Applications (status is read-only here; it moves via actions)
# =============================================================

@admin.register(Application)
class ApplicationAdmin(admin.ModelAdmin):
    list_display = ("id", "donor", "status_label", "progress", "submitted_at", "rejected_at")
    list_filter = ("status",)
    search_fields = ("donor__username", "donor__email")
    ordering = ("-submitted_at",)
    readonly_fields = (
        "status",
        "request_status",
        "rejected_at",
        "current_appointment",
        "evaluation_started_at",
        "evaluation_completed_at",
        "completed_appointment",
        "created_at",
        "updated_at",
    )

    def status_label(self, obj):
        return label_of(obj.status)

    status_label.short_description = "Status"

    def progress(self, obj):
        pct = progress_percent_of(obj.status)
        return format_html("<b>{}%</b>", pct)


# =============================================================
# Appointments
# =============================================================

@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ("id", "type", "donor", "recipient", "recipient_profile", "doctor", "date", "time", "status")
    list_filter = ("type", "status", "date")
    search_fields = ("donor__username", "recipient__username", "recipient_profile__full_name", "doctor__username")
    ordering = ("-date", "-time")
    readonly_fields = ("status", "completed_at", "cancelled_at")


# =============================================================
# Profiles and roles
# =============================================================

@admin.register(DonorProfile)
class DonorProfileAdmin(admin.ModelAdmin):
    list_display = ("user", "blood_type", "request_status")
    search_fields = ("user__username",)
    readonly_fields = ("request_status", "appointment_ids")


@admin.register(RecipientProfile)
class RecipientProfileAdmin(admin.ModelAdmin):
    list_display = ("full_name", "user", "blood_type", "organ_needed", "urgency")
    search_fields = ("full_name", "user__username")


@admin.register(UserRole)
class UserRoleAdmin(admin.ModelAdmin):
    list_display = ("user", "role", "created_at")
    list_filter = ("role",)
    search_fields = ("user__username",)


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("recipient", "title", "category", "read", "created_at")
    list_filter = ("category", "read")
    search_fields = ("recipient__username", "title")
    ordering = ("-created_at",)
