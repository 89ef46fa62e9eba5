# clinic_core/audit/api/views.py
from __future__ import annotations

from django.core.exceptions import ValidationError as DjangoValidationError
from django.http import HttpResponse
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from clinic_core.audit import selectors
from clinic_core.audit.api.serializers import (
    AuditEntryDetailSerializer,
    AuditEntrySerializer,
    AuditListQuerySerializer,
    ExportQuerySerializer,
    PeriodQuerySerializer,
    SecurityReportQuerySerializer,
    UserActivityQuerySerializer,
)
from clinic_core.audit.codes import AuditAction, ResourceType
from clinic_core.audit.exporters import export_filename, to_csv, to_json_payload
from clinic_core.audit.models import AuditEntry
from clinic_core.common.api.pagination import page_of
from clinic_core.common.throttling import ActionScopedThrottleMixin
from clinic_core.common.wiring import services
from clinic_core.iam.permissions import AccessControlledMixin, ActionPermission
from clinic_core.iam.policy import Action


def _filters(params: dict) -> dict:
    return {k: str(v) for k, v in params.items() if k not in ("page", "limit") and v not in (None, "")}


class AuditViewSet(ActionScopedThrottleMixin, AccessControlledMixin, viewsets.ViewSet):
    """
    Read-only window on the audit trail. Every read is itself audited.
    """
    permission_classes = [IsAuthenticated, ActionPermission]
    serializer_class = AuditEntrySerializer
    queryset = AuditEntry.objects.none()

    access_actions = {
        "list": Action.AUDIT_LIST,
        "retrieve": Action.AUDIT_RETRIEVE,
        "statistics": Action.AUDIT_STATISTICS,
        "user_activity": Action.AUDIT_USER_ACTIVITY,
        "security_report": Action.AUDIT_SECURITY_REPORT,
        "export": Action.AUDIT_EXPORT,
    }
    action_throttle_scopes = {"export": "sensitive"}

    def _record(self, action, resource_id=None, **context):
        services().audit.record(
            self.request.user.id,
            action,
            ResourceType.AUDIT,
            resource_id,
            request_context=self.request_context,
            context=context,
        )

    @extend_schema(tags=["Audit"], parameters=[AuditListQuerySerializer], responses={200: AuditEntrySerializer(many=True)})
    def list(self, request):
        q = AuditListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        params = q.validated_data

        qs = selectors.list_entries(
            actor_id=params.get("actor"),
            action=params.get("action"),
            resource_type=params.get("resource_type"),
            date_from=params.get("date_from"),
            date_to=params.get("date_to"),
            ip_address=params.get("ip"),
        )
        page = page_of(qs, page=params["page"], limit=params["limit"])

        self._record(AuditAction.AUDIT_LOGS_VIEWED, filters=_filters(params), total=page.total)
        return Response({"entries": AuditEntrySerializer(page.items, many=True).data, "pagination": page.meta()})

    @extend_schema(tags=["Audit"], responses={200: AuditEntryDetailSerializer})
    def retrieve(self, request, pk=None):
        try:
            entry = selectors.get_entry(pk)
        except (AuditEntry.DoesNotExist, DjangoValidationError, ValueError):
            raise NotFound("Audit entry not found.")

        self._record(AuditAction.AUDIT_LOG_DETAILED_VIEW, entry.id, viewed_action=entry.action)
        return Response(AuditEntryDetailSerializer(entry).data)

    @extend_schema(tags=["Audit"], parameters=[PeriodQuerySerializer], responses={200: OpenApiTypes.OBJECT})
    @action(detail=False, methods=["get"], url_path="statistics")
    def statistics(self, request):
        q = PeriodQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        params = q.validated_data

        stats = selectors.statistics(**params)
        self._record(AuditAction.AUDIT_STATISTICS_VIEWED, filters=_filters(params))
        return Response({"period": _filters(params), **stats})

    @extend_schema(tags=["Audit"], parameters=[UserActivityQuerySerializer], responses={200: OpenApiTypes.OBJECT})
    @action(detail=False, methods=["get"], url_path="user-activity")
    def user_activity(self, request):
        q = UserActivityQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        params = q.validated_data

        report = selectors.user_activity(
            actor_id=params["actor"],
            date_from=params.get("date_from"),
            date_to=params.get("date_to"),
        )
        report["recent"] = AuditEntrySerializer(report["recent"], many=True).data

        self._record(AuditAction.USER_ACTIVITY_REPORT_GENERATED, params["actor"], filters=_filters(params))
        return Response({"actor": str(params["actor"]), **report})

    @extend_schema(tags=["Audit"], parameters=[SecurityReportQuerySerializer], responses={200: OpenApiTypes.OBJECT})
    @action(detail=False, methods=["get"], url_path="security-report")
    def security_report(self, request):
        q = SecurityReportQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        params = q.validated_data

        report = selectors.security_report(
            date_from=params.get("date_from"),
            date_to=params.get("date_to"),
            ip_address=params.get("ip"),
        )
        report["recent_lockouts"] = AuditEntrySerializer(report["recent_lockouts"], many=True).data

        self._record(AuditAction.SECURITY_REPORT_GENERATED, filters=_filters(params))
        return Response(report)

    @extend_schema(tags=["Audit"], parameters=[ExportQuerySerializer], responses={200: OpenApiTypes.BINARY})
    @action(detail=False, methods=["get"], url_path="export")
    def export(self, request):
        q = ExportQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        params = q.validated_data
        date_from, date_to, fmt = params["date_from"], params["date_to"], params["format"]

        entries = list(selectors.export_entries(date_from=date_from, date_to=date_to))
        self._record(AuditAction.AUDIT_LOGS_EXPORTED, format=fmt, filters=_filters(params), total=len(entries))

        filename = export_filename(date_from, date_to, fmt)
        if fmt == "csv":
            response = HttpResponse(to_csv(entries), content_type="text/csv; charset=utf-8")
        else:
            payload = to_json_payload(
                entries,
                date_from=date_from,
                date_to=date_to,
                exported_by=request.user.email,
                serializer_class=AuditEntrySerializer,
            )
            response = Response(payload)
        response["Content-Disposition"] = f'attachment; filename="{filename}"'
        return response
