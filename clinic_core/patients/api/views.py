# clinic_core/patients/api/views.py
from __future__ import annotations

from django.core.exceptions import ValidationError as DjangoValidationError
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from clinic_core.audit.codes import AuditAction, ResourceType
from clinic_core.common.api.pagination import page_of
from clinic_core.common.throttling import ActionScopedThrottleMixin
from clinic_core.common.wiring import services
from clinic_core.iam.evaluator import ResourceOwner
from clinic_core.iam.permissions import AccessControlledMixin, ActionPermission
from clinic_core.iam.policy import Action
from clinic_core.iam.roles import Role
from clinic_core.patients.api.serializers import (
    PatientCreateSerializer,
    PatientListItemSerializer,
    PatientListQuerySerializer,
    PatientSerializer,
    PatientUpdateSerializer,
)
from clinic_core.patients.models import Patient
from clinic_core.patients.selectors import get_patient, patient_statistics, search_patients


class PatientViewSet(ActionScopedThrottleMixin, AccessControlledMixin, viewsets.ViewSet):
    """
    Every endpoint: role check (ActionPermission) -> load -> ownership check -> work -> audit.
    """
    permission_classes = [IsAuthenticated, ActionPermission]
    serializer_class = PatientSerializer
    queryset = Patient.objects.none()

    access_actions = {
        "list": Action.PATIENT_LIST,
        "create": Action.PATIENT_CREATE,
        "retrieve": Action.PATIENT_RETRIEVE,
        "update": Action.PATIENT_UPDATE,
        "partial_update": Action.PATIENT_UPDATE,
        "deactivate": Action.PATIENT_DEACTIVATE,
        "anonymize": Action.PATIENT_ANONYMIZE,
        "statistics": Action.PATIENT_STATISTICS,
    }
    action_throttle_scopes = {"anonymize": "sensitive"}

    def get_patient(self, pk) -> Patient:
        try:
            return get_patient(pk)
        except (Patient.DoesNotExist, DjangoValidationError, ValueError):
            raise NotFound("Patient not found.")

    def _authorize(self, patient: Patient):
        return self.authorize_object(ResourceOwner(patient_id=patient.id), resource_id=patient.id)

    @extend_schema(tags=["Patients"], parameters=[PatientListQuerySerializer], responses={200: PatientListItemSerializer(many=True)})
    def list(self, request):
        q = PatientListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        params = q.validated_data

        principal = self.principal
        qs = search_patients(
            search=params.get("search"),
            only_id=principal.patient_id,
            restrict=principal.role == Role.PATIENT,
        )
        page = page_of(qs, page=params["page"], limit=params["limit"])
        svc = services().patients
        records = [svc.read(p) for p in page.items]

        services().audit.record(
            principal.account_id,
            AuditAction.PATIENTS_LISTED,
            ResourceType.PATIENT,
            request_context=self.request_context,
            context={"search": params.get("search") or None, "page": page.page, "limit": page.limit, "total": page.total},
        )
        return Response(
            {"patients": PatientListItemSerializer(records, many=True).data, "pagination": page.meta()},
            status=status.HTTP_200_OK,
        )

    @extend_schema(tags=["Patients"], request=PatientCreateSerializer, responses={201: PatientSerializer})
    def create(self, request):
        ser = PatientCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        values = dict(ser.validated_data)
        email = values.pop("email")
        password = values.pop("password")

        record = services().patients.create(
            email=email,
            password=password,
            values=values,
            actor_id=request.user.id,
            request_context=self.request_context,
        )
        visibility = services().access.visibility(self.principal, Action.PATIENT_CREATE)
        return Response(PatientSerializer(record, context={"visibility": visibility}).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Patients"], responses={200: PatientSerializer})
    def retrieve(self, request, pk=None):
        patient = self.get_patient(pk)
        decision = self._authorize(patient)
        record = services().patients.read(patient)

        services().audit.record(
            request.user.id,
            AuditAction.PATIENT_VIEWED,
            ResourceType.PATIENT,
            patient.id,
            request_context=self.request_context,
            context={"plaintext": decision.visibility.plaintext},
        )
        return Response(PatientSerializer(record, context={"visibility": decision.visibility}).data)

    @extend_schema(tags=["Patients"], request=PatientUpdateSerializer, responses={200: PatientSerializer})
    def update(self, request, pk=None):
        patient = self.get_patient(pk)
        decision = self._authorize(patient)

        ser = PatientUpdateSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)

        record = services().patients.update(
            patient,
            dict(ser.validated_data),
            actor_id=request.user.id,
            actor_role=self.principal.role,
            request_context=self.request_context,
        )
        return Response(PatientSerializer(record, context={"visibility": decision.visibility}).data)

    def partial_update(self, request, pk=None):
        return self.update(request, pk=pk)

    @extend_schema(tags=["Patients"], request=None, responses={200: PatientSerializer})
    @action(detail=True, methods=["post"], url_path="deactivate")
    def deactivate(self, request, pk=None):
        patient = self.get_patient(pk)
        decision = self._authorize(patient)
        patient = services().patients.deactivate(patient, actor_id=request.user.id, request_context=self.request_context)
        record = services().patients.read(patient)
        return Response(PatientSerializer(record, context={"visibility": decision.visibility}).data)

    @extend_schema(tags=["Patients"], request=None, responses={200: PatientSerializer})
    @action(detail=True, methods=["post"], url_path="anonymize")
    def anonymize(self, request, pk=None):
        patient = self.get_patient(pk)
        decision = self._authorize(patient)
        patient = services().patients.anonymize(patient, actor_id=request.user.id, request_context=self.request_context)
        record = services().patients.read(patient)
        return Response(PatientSerializer(record, context={"visibility": decision.visibility}).data)

    @extend_schema(tags=["Patients"], responses={200: OpenApiTypes.OBJECT})
    @action(detail=False, methods=["get"], url_path="statistics")
    def statistics(self, request):
        stats = patient_statistics()
        services().audit.record(
            request.user.id,
            AuditAction.PATIENTS_STATISTICS_VIEWED,
            ResourceType.PATIENT,
            request_context=self.request_context,
        )
        return Response(stats)
