# donation_core/serializers.py
from __future__ import annotations

from typing import Any, Dict

from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import Application, Appointment, Notification, WorkflowTransition
from .workflows.statuses import status_metadata


# ===============================================================
# Read serializers
# ===============================================================
class ApplicationSerializer(serializers.ModelSerializer):
    status_meta = serializers.SerializerMethodField()

    class Meta:
        model = Application
        fields = [
            "id",
            "donor",
            "status",
            "status_meta",
            "details",
            "submitted_at",
            "updated_at",
            "doctor_comment",
            "admin_comment",
            "final_doctor_comment",
            "final_admin_notes",
            "evaluation_notes",
            "current_appointment",
            "evaluation_started_at",
            "evaluation_completed_at",
            "completed_appointment",
            "rejection_reason",
            "rejected_at",
        ]
        read_only_fields = fields

    def get_status_meta(self, obj) -> Dict[str, Any]:
        return status_metadata(obj.status)


class AppointmentSerializer(serializers.ModelSerializer):
    subject_id = serializers.IntegerField(read_only=True)
    doctor_name = serializers.SerializerMethodField()

    class Meta:
        model = Appointment
        fields = [
            "id",
            "type",
            "donor",
            "recipient",
            "recipient_profile",
            "subject_id",
            "doctor",
            "doctor_name",
            "date",
            "time",
            "purpose",
            "status",
            "evaluation_notes",
            "completed_at",
            "cancelled_at",
            "cancellation_reason",
            "created_at",
        ]
        read_only_fields = fields

    def get_doctor_name(self, obj) -> str:
        return display_name(obj.doctor)


def display_name(user) -> str:
    if user is None:
        return ""
    return user.get_full_name() or user.get_username()


class DoctorSerializer(serializers.ModelSerializer):
    full_name = serializers.SerializerMethodField()

    class Meta:
        model = get_user_model()
        fields = ["id", "username", "full_name", "email"]
        read_only_fields = fields

    def get_full_name(self, obj) -> str:
        return display_name(obj)


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = ["id", "title", "message", "category", "read", "created_at"]
        read_only_fields = fields


class WorkflowTransitionSerializer(serializers.ModelSerializer):
    performed_by = serializers.SerializerMethodField()

    class Meta:
        model = WorkflowTransition
        fields = ["id", "from_status", "to_status", "role", "action", "comment", "performed_by", "created_at"]
        read_only_fields = fields

    def get_performed_by(self, obj):
        return obj.performed_by.username if obj.performed_by else None


# ===============================================================
# Input serializers
# ===============================================================
class ApplicationSubmitSerializer(serializers.Serializer):
    details = serializers.JSONField(required=False, default=dict)

    def validate_details(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError("details must be an object.")
        return value


class WorkflowActionSerializer(serializers.Serializer):
    action = serializers.CharField()
    role = serializers.CharField(required=False, allow_blank=True)
    comment = serializers.CharField(required=False, allow_blank=True)
    reason = serializers.CharField(required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)

    def payload(self) -> Dict[str, Any]:
        data = self.validated_data
        return {k: data[k] for k in ("comment", "reason", "notes") if data.get(k)}


class AppointmentCreateSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=Appointment.Type.choices)
    donor_id = serializers.IntegerField(required=False)
    recipient_id = serializers.IntegerField(required=False)
    recipient_profile_id = serializers.IntegerField(required=False)
    doctor_id = serializers.IntegerField()
    date = serializers.DateField()
    time = serializers.TimeField()
    purpose = serializers.CharField(required=False, allow_blank=True, max_length=255)

    def validate(self, attrs: Dict[str, Any]) -> Dict[str, Any]:
        if attrs["type"] == Appointment.Type.DONOR:
            if not attrs.get("donor_id"):
                raise serializers.ValidationError({"donor_id": "Required for donor appointments."})
        elif not (attrs.get("recipient_id") or attrs.get("recipient_profile_id")):
            raise serializers.ValidationError(
                {"recipient_id": "recipient_id or recipient_profile_id is required for recipient appointments."}
            )
        return attrs


class AppointmentUpdateSerializer(serializers.Serializer):
    date = serializers.DateField(required=False)
    time = serializers.TimeField(required=False)
    purpose = serializers.CharField(required=False, allow_blank=True, max_length=255)
    doctor_id = serializers.IntegerField(required=False)

    def validate(self, attrs: Dict[str, Any]) -> Dict[str, Any]:
        unknown = set(self.initial_data) - set(self.fields)
        if unknown:
            raise serializers.ValidationError({f: "This field cannot be changed." for f in sorted(unknown)})
        if not attrs:
            raise serializers.ValidationError("Provide at least one of date, time, purpose, doctor_id.")
        return attrs


class AppointmentCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True)


class AppointmentCompleteSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True)
    type = serializers.ChoiceField(choices=Appointment.Type.choices, required=False)
