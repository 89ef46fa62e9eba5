# clinic_core/audit/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from clinic_core.audit.codes import AuditAction, ResourceType
from clinic_core.common.api.pagination import PageQuerySerializer


class AuditActorSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    email = serializers.EmailField()
    role = serializers.CharField()


class AuditEntrySerializer(serializers.Serializer):
    id = serializers.UUIDField()
    actor = AuditActorSerializer(allow_null=True)
    action = serializers.CharField()
    resource_type = serializers.CharField()
    resource_id = serializers.CharField(allow_null=True)
    ip_address = serializers.IPAddressField(allow_null=True)
    user_agent = serializers.CharField(allow_null=True)
    success = serializers.BooleanField()
    error_message = serializers.CharField(allow_null=True)
    context = serializers.JSONField()
    created_at = serializers.DateTimeField()


class AuditEntryDetailSerializer(AuditEntrySerializer):
    previous_data = serializers.JSONField(allow_null=True)
    new_data = serializers.JSONField(allow_null=True)


class PeriodQuerySerializer(serializers.Serializer):
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)

    def validate(self, attrs):
        start, end = attrs.get("date_from"), attrs.get("date_to")
        if start and end and start > end:
            raise serializers.ValidationError({"date_to": ["Must not be before date_from."]})
        return attrs


class AuditListQuerySerializer(PageQuerySerializer, PeriodQuerySerializer):
    actor = serializers.UUIDField(required=False)
    action = serializers.ChoiceField(choices=AuditAction.choices, required=False)
    resource_type = serializers.ChoiceField(choices=ResourceType.choices, required=False)
    ip = serializers.IPAddressField(required=False)


class UserActivityQuerySerializer(PeriodQuerySerializer):
    actor = serializers.UUIDField()


class SecurityReportQuerySerializer(PeriodQuerySerializer):
    ip = serializers.IPAddressField(required=False)


class ExportQuerySerializer(PeriodQuerySerializer):
    date_from = serializers.DateField()
    date_to = serializers.DateField()
    format = serializers.ChoiceField(choices=["json", "csv"], required=False, default="json")
