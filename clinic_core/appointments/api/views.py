# clinic_core/appointments/api/views.py
from __future__ import annotations

from django.core.exceptions import ValidationError as DjangoValidationError
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from clinic_core.appointments.api.serializers import (
    AppointmentCancelSerializer,
    AppointmentCompleteSerializer,
    AppointmentCreateSerializer,
    AppointmentListQuerySerializer,
    AppointmentReportQuerySerializer,
    AppointmentSerializer,
    AppointmentUpdateSerializer,
)
from clinic_core.appointments.models import Appointment
from clinic_core.appointments.selectors import appointment_report, get_appointment, list_appointments
from clinic_core.audit.codes import AuditAction, ResourceType
from clinic_core.common.api.pagination import page_of
from clinic_core.common.wiring import services
from clinic_core.iam.evaluator import ResourceOwner
from clinic_core.iam.permissions import AccessControlledMixin, ActionPermission
from clinic_core.iam.policy import Action
from clinic_core.iam.roles import Role


class AppointmentViewSet(AccessControlledMixin, viewsets.ViewSet):
    permission_classes = [IsAuthenticated, ActionPermission]
    serializer_class = AppointmentSerializer
    queryset = Appointment.objects.none()

    access_actions = {
        "list": Action.APPOINTMENT_LIST,
        "create": Action.APPOINTMENT_CREATE,
        "retrieve": Action.APPOINTMENT_RETRIEVE,
        "update": Action.APPOINTMENT_UPDATE,
        "partial_update": Action.APPOINTMENT_UPDATE,
        "cancel": Action.APPOINTMENT_CANCEL,
        "checkin": Action.APPOINTMENT_CHECKIN,
        "complete": Action.APPOINTMENT_COMPLETE,
        "report": Action.APPOINTMENT_REPORT,
    }

    def get_appointment(self, pk) -> Appointment:
        try:
            return get_appointment(pk)
        except (Appointment.DoesNotExist, DjangoValidationError, ValueError):
            raise NotFound("Appointment not found.")

    def _authorize(self, appointment: Appointment):
        owner = ResourceOwner(patient_id=appointment.patient_id, professional_id=appointment.professional_id)
        return self.authorize_object(owner, resource_id=appointment.id)

    def _render(self, appointment: Appointment, visibility, *, code=status.HTTP_200_OK):
        context = {"visibility": visibility, "envelope": services().envelope}
        return Response(AppointmentSerializer(appointment, context=context).data, status=code)

    def _scope(self, params: dict) -> tuple[dict, bool]:
        """
        Patients see their own appointments, physicians and nurses their own
        agenda; admins and receptionists may filter freely.
        Returns (filters, visible); visible is False when a restricted caller
        has no linked record.
        """
        principal = self.principal
        scope = {
            "patient_id": params.get("patient_id"),
            "professional_id": params.get("professional_id"),
        }
        if principal.role == Role.PATIENT:
            scope["patient_id"] = principal.patient_id
            return scope, principal.patient_id is not None
        if principal.role in (Role.PHYSICIAN, Role.NURSE):
            scope["professional_id"] = principal.professional_id
            return scope, principal.professional_id is not None
        return scope, True

    @extend_schema(tags=["Appointments"], parameters=[AppointmentListQuerySerializer], responses={200: AppointmentSerializer(many=True)})
    def list(self, request):
        q = AppointmentListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        params = q.validated_data

        scope, visible = self._scope(params)
        principal = self.principal
        if not visible:
            qs = Appointment.objects.none()
        else:
            qs = list_appointments(
                status=params.get("status"),
                date_from=params.get("date_from"),
                date_to=params.get("date_to"),
                **scope,
            )
        page = page_of(qs, page=params["page"], limit=params["limit"])

        visibility = services().access.visibility(principal, Action.APPOINTMENT_LIST)
        context = {"visibility": visibility, "envelope": services().envelope}

        services().audit.record(
            principal.account_id,
            AuditAction.APPOINTMENTS_LISTED,
            ResourceType.APPOINTMENT,
            request_context=self.request_context,
            context={
                "patient_id": str(scope["patient_id"]) if scope["patient_id"] else None,
                "professional_id": str(scope["professional_id"]) if scope["professional_id"] else None,
                "status": params.get("status"),
                "page": page.page,
                "total": page.total,
            },
        )
        return Response(
            {"appointments": AppointmentSerializer(page.items, many=True, context=context).data, "pagination": page.meta()}
        )

    @extend_schema(tags=["Appointments"], request=AppointmentCreateSerializer, responses={201: AppointmentSerializer})
    def create(self, request):
        ser = AppointmentCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        appointment = services().appointments.create(
            dict(ser.validated_data),
            actor_id=request.user.id,
            request_context=self.request_context,
        )
        appointment = get_appointment(appointment.id)
        visibility = services().access.visibility(self.principal, Action.APPOINTMENT_CREATE)
        return self._render(appointment, visibility, code=status.HTTP_201_CREATED)

    @extend_schema(tags=["Appointments"], responses={200: AppointmentSerializer})
    def retrieve(self, request, pk=None):
        appointment = self.get_appointment(pk)
        decision = self._authorize(appointment)

        services().audit.record(
            request.user.id,
            AuditAction.APPOINTMENT_VIEWED,
            ResourceType.APPOINTMENT,
            appointment.id,
            request_context=self.request_context,
        )
        return self._render(appointment, decision.visibility)

    @extend_schema(tags=["Appointments"], request=AppointmentUpdateSerializer, responses={200: AppointmentSerializer})
    def update(self, request, pk=None):
        appointment = self.get_appointment(pk)
        decision = self._authorize(appointment)

        ser = AppointmentUpdateSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)

        appointment = services().appointments.update(
            appointment,
            dict(ser.validated_data),
            actor_id=request.user.id,
            request_context=self.request_context,
        )
        return self._render(appointment, decision.visibility)

    def partial_update(self, request, pk=None):
        return self.update(request, pk=pk)

    @extend_schema(tags=["Appointments"], request=AppointmentCancelSerializer, responses={200: AppointmentSerializer})
    @action(detail=True, methods=["post"], url_path="cancel")
    def cancel(self, request, pk=None):
        appointment = self.get_appointment(pk)
        decision = self._authorize(appointment)

        ser = AppointmentCancelSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        appointment = services().appointments.cancel(
            appointment,
            reason=ser.validated_data["reason"],
            actor_id=request.user.id,
            request_context=self.request_context,
        )
        return self._render(appointment, decision.visibility)

    @extend_schema(tags=["Appointments"], request=None, responses={200: AppointmentSerializer})
    @action(detail=True, methods=["post"], url_path="checkin")
    def checkin(self, request, pk=None):
        appointment = self.get_appointment(pk)
        decision = self._authorize(appointment)
        appointment = services().appointments.checkin(
            appointment,
            actor_id=request.user.id,
            request_context=self.request_context,
        )
        return self._render(appointment, decision.visibility)

    @extend_schema(tags=["Appointments"], request=AppointmentCompleteSerializer, responses={200: AppointmentSerializer})
    @action(detail=True, methods=["post"], url_path="complete")
    def complete(self, request, pk=None):
        appointment = self.get_appointment(pk)
        decision = self._authorize(appointment)

        ser = AppointmentCompleteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        appointment = services().appointments.complete(
            appointment,
            dict(ser.validated_data),
            actor_id=request.user.id,
            request_context=self.request_context,
        )
        return self._render(appointment, decision.visibility)

    @extend_schema(tags=["Appointments"], parameters=[AppointmentReportQuerySerializer], responses={200: OpenApiTypes.OBJECT})
    @action(detail=False, methods=["get"], url_path="report")
    def report(self, request):
        q = AppointmentReportQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        params = q.validated_data

        report = appointment_report(**params)
        services().audit.record(
            request.user.id,
            AuditAction.APPOINTMENTS_REPORT_GENERATED,
            ResourceType.APPOINTMENT,
            request_context=self.request_context,
            context={k: str(v) for k, v in params.items()},
        )
        return Response({"filters": {k: str(v) for k, v in params.items()}, **report})
