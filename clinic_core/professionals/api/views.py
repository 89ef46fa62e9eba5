# clinic_core/professionals/api/views.py
from __future__ import annotations

from django.core.exceptions import ValidationError as DjangoValidationError
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from clinic_core.appointments.selectors import schedule_for
from clinic_core.audit.codes import AuditAction, ResourceType
from clinic_core.common.api.pagination import page_of
from clinic_core.common.wiring import services
from clinic_core.iam.evaluator import ResourceOwner
from clinic_core.iam.permissions import AccessControlledMixin, ActionPermission
from clinic_core.iam.policy import Action
from clinic_core.iam.roles import Role
from clinic_core.professionals.api.serializers import (
    ProfessionalCreateSerializer,
    ProfessionalListQuerySerializer,
    ProfessionalSerializer,
    ProfessionalSummarySerializer,
    ProfessionalUpdateSerializer,
    ScheduleQuerySerializer,
)
from clinic_core.professionals.models import Professional
from clinic_core.professionals.selectors import (
    get_professional,
    professional_statistics,
    professionals_by_specialty,
    search_professionals,
)


class ProfessionalViewSet(AccessControlledMixin, viewsets.ViewSet):
    permission_classes = [IsAuthenticated, ActionPermission]
    serializer_class = ProfessionalSerializer
    queryset = Professional.objects.none()

    access_actions = {
        "list": Action.PROFESSIONAL_LIST,
        "create": Action.PROFESSIONAL_CREATE,
        "retrieve": Action.PROFESSIONAL_RETRIEVE,
        "update": Action.PROFESSIONAL_UPDATE,
        "partial_update": Action.PROFESSIONAL_UPDATE,
        "deactivate": Action.PROFESSIONAL_DEACTIVATE,
        "by_specialty": Action.PROFESSIONAL_BY_SPECIALTY,
        "schedule": Action.PROFESSIONAL_SCHEDULE,
        "statistics": Action.PROFESSIONAL_STATISTICS,
    }

    def get_professional(self, pk) -> Professional:
        try:
            return get_professional(pk)
        except (Professional.DoesNotExist, DjangoValidationError, ValueError):
            raise NotFound("Professional not found.")

    def _authorize(self, professional: Professional):
        return self.authorize_object(ResourceOwner(professional_id=professional.id), resource_id=professional.id)

    def _render(self, record, visibility, *, code=status.HTTP_200_OK):
        return Response(ProfessionalSerializer(record, context={"visibility": visibility}).data, status=code)

    @extend_schema(tags=["Professionals"], parameters=[ProfessionalListQuerySerializer], responses={200: ProfessionalSummarySerializer(many=True)})
    def list(self, request):
        q = ProfessionalListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        params = q.validated_data

        principal = self.principal
        qs = search_professionals(
            search=params.get("search"),
            specialty=params.get("specialty"),
            position=params.get("position"),
            only_id=principal.professional_id,
            restrict=principal.role in (Role.PHYSICIAN, Role.NURSE),
        )
        page = page_of(qs, page=params["page"], limit=params["limit"])

        services().audit.record(
            principal.account_id,
            AuditAction.PROFESSIONALS_LISTED,
            ResourceType.PROFESSIONAL,
            request_context=self.request_context,
            context={
                "search": params.get("search") or None,
                "specialty": params.get("specialty") or None,
                "page": page.page,
                "total": page.total,
            },
        )
        return Response(
            {"professionals": ProfessionalSummarySerializer(page.items, many=True).data, "pagination": page.meta()}
        )

    @extend_schema(tags=["Professionals"], request=ProfessionalCreateSerializer, responses={201: ProfessionalSerializer})
    def create(self, request):
        ser = ProfessionalCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        values = dict(ser.validated_data)
        email = values.pop("email")
        password = values.pop("password")

        record = services().professionals.create(
            email=email,
            password=password,
            values=values,
            actor_id=request.user.id,
            request_context=self.request_context,
        )
        visibility = services().access.visibility(self.principal, Action.PROFESSIONAL_CREATE)
        return self._render(record, visibility, code=status.HTTP_201_CREATED)

    @extend_schema(tags=["Professionals"], responses={200: ProfessionalSerializer})
    def retrieve(self, request, pk=None):
        professional = self.get_professional(pk)
        decision = self._authorize(professional)
        record = services().professionals.read(professional)

        services().audit.record(
            request.user.id,
            AuditAction.PROFESSIONAL_VIEWED,
            ResourceType.PROFESSIONAL,
            professional.id,
            request_context=self.request_context,
            context={"plaintext": decision.visibility.plaintext},
        )
        return self._render(record, decision.visibility)

    @extend_schema(tags=["Professionals"], request=ProfessionalUpdateSerializer, responses={200: ProfessionalSerializer})
    def update(self, request, pk=None):
        professional = self.get_professional(pk)
        decision = self._authorize(professional)

        ser = ProfessionalUpdateSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)

        record = services().professionals.update(
            professional,
            dict(ser.validated_data),
            actor_id=request.user.id,
            actor_role=self.principal.role,
            request_context=self.request_context,
        )
        return self._render(record, decision.visibility)

    def partial_update(self, request, pk=None):
        return self.update(request, pk=pk)

    @extend_schema(tags=["Professionals"], request=None, responses={200: ProfessionalSerializer})
    @action(detail=True, methods=["post"], url_path="deactivate")
    def deactivate(self, request, pk=None):
        professional = self.get_professional(pk)
        decision = self._authorize(professional)
        professional = services().professionals.deactivate(
            professional,
            actor_id=request.user.id,
            request_context=self.request_context,
        )
        return self._render(services().professionals.read(professional), decision.visibility)

    @extend_schema(tags=["Professionals"], responses={200: ProfessionalSummarySerializer(many=True)})
    @action(detail=False, methods=["get"], url_path=r"by-specialty/(?P<specialty>[^/.]+)")
    def by_specialty(self, request, specialty=None):
        qs = professionals_by_specialty(specialty)
        rows = ProfessionalSummarySerializer(qs, many=True).data

        services().audit.record(
            request.user.id,
            AuditAction.PROFESSIONALS_BY_SPECIALTY_LISTED,
            ResourceType.PROFESSIONAL,
            request_context=self.request_context,
            context={"specialty": specialty, "total": len(rows)},
        )
        return Response({"specialty": specialty, "professionals": rows})

    @extend_schema(tags=["Professionals"], parameters=[ScheduleQuerySerializer], responses={200: OpenApiTypes.OBJECT})
    @action(detail=True, methods=["get"], url_path="schedule")
    def schedule(self, request, pk=None):
        professional = self.get_professional(pk)
        self._authorize(professional)

        q = ScheduleQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        day = q.validated_data.get("date")

        appointments = [
            {
                "id": str(a.id),
                "scheduled_at": a.scheduled_at.isoformat(),
                "status": a.status,
                "kind": a.kind,
                "urgent": a.urgent,
                "patient": {"id": str(a.patient_id), "full_name": a.patient.full_name},
            }
            for a in schedule_for(professional_id=professional.id, day=day)
        ]

        services().audit.record(
            request.user.id,
            AuditAction.PROFESSIONAL_SCHEDULE_VIEWED,
            ResourceType.PROFESSIONAL,
            professional.id,
            request_context=self.request_context,
            context={"date": day.isoformat() if day else None, "total": len(appointments)},
        )
        return Response(
            {
                "professional": {"id": str(professional.id), "full_name": professional.full_name},
                "working_hours": professional.working_hours,
                "date": day.isoformat() if day else None,
                "appointments": appointments,
            }
        )

    @extend_schema(tags=["Professionals"], responses={200: OpenApiTypes.OBJECT})
    @action(detail=False, methods=["get"], url_path="statistics")
    def statistics(self, request):
        stats = professional_statistics()
        services().audit.record(
            request.user.id,
            AuditAction.PROFESSIONALS_STATISTICS_VIEWED,
            ResourceType.PROFESSIONAL,
            request_context=self.request_context,
        )
        return Response(stats)
