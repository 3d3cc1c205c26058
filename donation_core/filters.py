# donation_core/filters.py
import django_filters as df

from .models import Application, Appointment, Notification
from .workflows.statuses import ApplicationStatus


class ApplicationFilter(df.FilterSet):
    status = df.ChoiceFilter(choices=ApplicationStatus.choices)
    donor = df.NumberFilter(field_name="donor_id")
    submitted_at = df.DateFromToRangeFilter()

    class Meta:
        model = Application
        fields = ["status", "donor", "submitted_at"]


class AppointmentFilter(df.FilterSet):
    type = df.ChoiceFilter(choices=Appointment.Type.choices)
    status = df.ChoiceFilter(choices=Appointment.Status.choices)
    doctor = df.NumberFilter(field_name="doctor_id")
    date = df.DateFromToRangeFilter()

    class Meta:
        model = Appointment
        fields = ["type", "status", "doctor", "date"]


class NotificationFilter(df.FilterSet):
    category = df.ChoiceFilter(choices=Notification.Category.choices)
    read = df.BooleanFilter()

    class Meta:
        model = Notification
        fields = ["category", "read"]
