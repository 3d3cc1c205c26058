# donation_core/urls.py

from django.urls import path

from .views import (
    ApplicationActionView,
    ApplicationAllowedActionsView,
    ApplicationDetailView,
    ApplicationListCreateView,
    ApplicationTransitionsView,
    AppointmentCancelView,
    AppointmentCompleteView,
    AppointmentDetailView,
    AppointmentListCreateView,
    DoctorListView,
    EligibilityView,
    NotificationListView,
    NotificationMarkAllReadView,
    NotificationMarkReadView,
    NotificationUnreadCountView,
    ReapplyStatusView,
    StatusRegistryView,
    WorkflowDefinitionView,
)

app_name = "donation_core"

urlpatterns = [
    # -------------------------------------------------
    # Static metadata
    # -------------------------------------------------
    path("statuses/", StatusRegistryView.as_view(), name="statuses"),
    path("workflow/", WorkflowDefinitionView.as_view(), name="workflow-definition"),
    path("eligibility/", EligibilityView.as_view(), name="eligibility"),

    # -------------------------------------------------
    # Applications
    # -------------------------------------------------
    path("applications/", ApplicationListCreateView.as_view(), name="application-list"),
    path("applications/reapply-status/", ReapplyStatusView.as_view(), name="application-reapply-status"),
    path("applications/<int:pk>/", ApplicationDetailView.as_view(), name="application-detail"),
    path("applications/<int:pk>/allowed/", ApplicationAllowedActionsView.as_view(), name="application-allowed"),
    path("applications/<int:pk>/actions/", ApplicationActionView.as_view(), name="application-action"),
    path("applications/<int:pk>/transitions/", ApplicationTransitionsView.as_view(), name="application-transitions"),

    # -------------------------------------------------
    # Appointments
    # -------------------------------------------------
    path("appointments/", AppointmentListCreateView.as_view(), name="appointment-list"),
    path("appointments/<int:pk>/", AppointmentDetailView.as_view(), name="appointment-detail"),
    path("appointments/<int:pk>/cancel/", AppointmentCancelView.as_view(), name="appointment-cancel"),
    path("appointments/<int:pk>/complete/", AppointmentCompleteView.as_view(), name="appointment-complete"),
    path("doctors/", DoctorListView.as_view(), name="doctor-list"),

    # -------------------------------------------------
    # Notifications
    # -------------------------------------------------
    path("notifications/", NotificationListView.as_view(), name="notification-list"),
    path("notifications/unread-count/", NotificationUnreadCountView.as_view(), name="notification-unread-count"),
    path("notifications/read-all/", NotificationMarkAllReadView.as_view(), name="notification-read-all"),
    path("notifications/<int:pk>/read/", NotificationMarkReadView.as_view(), name="notification-read"),
]
