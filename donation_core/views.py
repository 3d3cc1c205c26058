# donation_core/views.py
from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import generics, status
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .exceptions import NotFound
from .filters import ApplicationFilter, AppointmentFilter, NotificationFilter
from .models import Application, Appointment
from .permissions import STAFF_ROLES, acting_role, user_roles, users_with_role
from .serializers import (
    ApplicationSerializer,
    ApplicationSubmitSerializer,
    AppointmentCancelSerializer,
    AppointmentCompleteSerializer,
    AppointmentCreateSerializer,
    AppointmentSerializer,
    AppointmentUpdateSerializer,
    DoctorSerializer,
    NotificationSerializer,
    WorkflowActionSerializer,
    WorkflowTransitionSerializer,
)
from .services import appointments as appointment_service
from .services import notifications as notification_service
from .services import store
from .services.applications import application_history, can_reapply, submit_application
from .workflows import executor
from .workflows.eligibility import can_schedule_appointments
from .workflows.rules import Role, allowed_actions, workflow_definition
from .workflows.statuses import registry_definition, status_metadata


# =============================================================
# Helpers
# =============================================================

def _visible_application(request, pk) -> Application:
    """
    Donors see only their own applications; doctors and admins see all.
    Anything else is reported as not found.
    """
    application = store.get_application(pk)
    if application.donor_id == request.user.pk:
        return application
    if user_roles(request.user) & STAFF_ROLES:
        return application
    raise NotFound(f"Application {pk} was not found.")


def _visible_appointment(request, pk) -> Appointment:
    role = acting_role(request.user, request.query_params.get("role"))
    qs = appointment_service.appointments_for(request.user, role)
    appointment = qs.filter(pk=pk).first()
    if appointment is None:
        raise NotFound(f"Appointment {pk} was not found.")
    return appointment


# =============================================================
# Status registry and workflow definition
# =============================================================

class StatusRegistryView(APIView):
    """
    GET /donation/statuses/            every canonical status with metadata
    GET /donation/statuses/?value=...  metadata for any (possibly legacy) spelling
    """

    permission_classes = [IsAuthenticated]

    def get(self, request):
        value = request.query_params.get("value")
        if value is not None:
            return Response(status_metadata(value))
        return Response({"statuses": registry_definition()})


class WorkflowDefinitionView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response(workflow_definition())


class EligibilityView(APIView):
    """
    Whether the caller may schedule appointments. With both ``status`` and
    ``role`` query parameters the predicate is evaluated for those instead.
    """

    permission_classes = [IsAuthenticated]

    def get(self, request):
        qs_status = request.query_params.get("status")
        qs_role = request.query_params.get("role")
        if qs_status and qs_role:
            return Response(
                {
                    "status": qs_status,
                    "role": qs_role,
                    "can_schedule_appointments": can_schedule_appointments(qs_status, qs_role),
                }
            )

        role = acting_role(request.user)
        latest = store.latest_application_for(request.user.pk)
        current = latest.status if latest else None
        return Response(
            {
                "status": current,
                "role": role,
                "can_schedule_appointments": can_schedule_appointments(current, role),
            }
        )


# =============================================================
# Applications
# =============================================================

class ApplicationListCreateView(generics.ListAPIView):
    serializer_class = ApplicationSerializer
    permission_classes = [IsAuthenticated]
    filterset_class = ApplicationFilter

    def get_queryset(self):
        if user_roles(self.request.user) & STAFF_ROLES:
            return Application.objects.select_related("donor").all()
        return application_history(self.request.user)

    @extend_schema(
        request=ApplicationSubmitSerializer,
        responses={
            201: ApplicationSerializer,
            409: OpenApiResponse(description="Active application exists or cooldown running"),
        },
    )
    def post(self, request):
        if acting_role(request.user) != Role.DONOR:
            raise PermissionDenied("Only donors can submit applications.")

        ser = ApplicationSubmitSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        application = submit_application(request.user, ser.validated_data.get("details") or {})
        return Response(ApplicationSerializer(application).data, status=status.HTTP_201_CREATED)


class ApplicationDetailView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, pk: int):
        application = _visible_application(request, pk)
        role = acting_role(request.user, request.query_params.get("role"))
        data = ApplicationSerializer(application).data
        data["role"] = role
        data["allowed_actions"] = allowed_actions(application.status, role)
        return Response(data)


class ApplicationAllowedActionsView(APIView):
    """
    GET /donation/applications/<pk>/allowed/

    Actions the caller may perform right now, for UIs that render buttons.
    """

    permission_classes = [IsAuthenticated]

    def get(self, request, pk: int):
        application = _visible_application(request, pk)
        role = acting_role(request.user, request.query_params.get("role"))
        return Response(
            {
                "application_id": application.pk,
                "current": application.status,
                "role": role,
                "allowed": allowed_actions(application.status, role),
            }
        )


class ApplicationActionView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        request=WorkflowActionSerializer,
        responses={
            200: ApplicationSerializer,
            400: OpenApiResponse(description="Invalid transition or missing payload"),
            409: OpenApiResponse(description="Application changed concurrently"),
        },
    )
    def post(self, request, pk: int):
        ser = WorkflowActionSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        application = _visible_application(request, pk)
        role = acting_role(request.user, ser.validated_data.get("role"))

        result = executor.apply_action(
            application,
            actor=request.user,
            actor_role=role,
            action=ser.validated_data["action"],
            payload=ser.payload(),
        )

        data = ApplicationSerializer(result.application).data
        data["path"] = result.path
        data["notifications_sent"] = len(result.notifications)
        return Response(data)


class ApplicationTransitionsView(generics.ListAPIView):
    serializer_class = WorkflowTransitionSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = None

    def get_queryset(self):
        application = _visible_application(self.request, self.kwargs["pk"])
        return application.transitions.select_related("performed_by").order_by("created_at", "id")


class ReapplyStatusView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response(can_reapply(request.user).as_dict())


# =============================================================
# Appointments
# =============================================================

class AppointmentListCreateView(generics.ListAPIView):
    serializer_class = AppointmentSerializer
    permission_classes = [IsAuthenticated]
    filterset_class = AppointmentFilter

    def get_queryset(self):
        role = acting_role(self.request.user, self.request.query_params.get("role"))
        return appointment_service.appointments_for(self.request.user, role)

    @extend_schema(request=AppointmentCreateSerializer, responses={201: AppointmentSerializer})
    def post(self, request):
        ser = AppointmentCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data
        role = acting_role(request.user)

        if data["type"] == Appointment.Type.DONOR:
            appointment = appointment_service.create_donor_appointment(data, actor_role=role, actor=request.user)
        else:
            appointment = appointment_service.create_recipient_appointment(data, actor_role=role, actor=request.user)

        return Response(AppointmentSerializer(appointment).data, status=status.HTTP_201_CREATED)


class AppointmentDetailView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, pk: int):
        return Response(AppointmentSerializer(_visible_appointment(request, pk)).data)

    @extend_schema(request=AppointmentUpdateSerializer, responses={200: AppointmentSerializer})
    def patch(self, request, pk: int):
        ser = AppointmentUpdateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        appointment = appointment_service.update_appointment(
            pk,
            ser.validated_data,
            actor_role=acting_role(request.user),
            actor=request.user,
        )
        return Response(AppointmentSerializer(appointment).data)


class AppointmentCancelView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(request=AppointmentCancelSerializer, responses={200: AppointmentSerializer})
    def post(self, request, pk: int):
        ser = AppointmentCancelSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        appointment = appointment_service.cancel_appointment(
            pk,
            actor_role=acting_role(request.user),
            reason=ser.validated_data.get("reason", ""),
            actor=request.user,
        )
        return Response(AppointmentSerializer(appointment).data)


class AppointmentCompleteView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(request=AppointmentCompleteSerializer, responses={200: AppointmentSerializer})
    def post(self, request, pk: int):
        ser = AppointmentCompleteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        appointment = appointment_service.complete_appointment_with_evaluation(
            pk,
            ser.validated_data.get("type"),
            ser.validated_data.get("notes", ""),
            actor_role=acting_role(request.user),
            actor=request.user,
        )
        return Response(AppointmentSerializer(appointment).data)


class DoctorListView(generics.ListAPIView):
    """
    GET /donation/doctors/

    Doctors an appointment can be booked with.
    """

    serializer_class = DoctorSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        return users_with_role(Role.DOCTOR)


# =============================================================
# Notifications
# =============================================================

class NotificationListView(generics.ListAPIView):
    serializer_class = NotificationSerializer
    permission_classes = [IsAuthenticated]
    filterset_class = NotificationFilter

    def get_queryset(self):
        return notification_service.list_for_user(self.request.user.pk)


class NotificationUnreadCountView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response({"unread": notification_service.unread_count(request.user.pk)})


class NotificationMarkReadView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, pk: int):
        notification = notification_service.mark_read(pk, request.user.pk)
        return Response(NotificationSerializer(notification).data)


class NotificationMarkAllReadView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        return Response({"marked": notification_service.mark_all_read(request.user.pk)})
