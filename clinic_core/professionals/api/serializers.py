# clinic_core/professionals/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from clinic_core.common.api.pagination import PageQuerySerializer
from clinic_core.iam.evaluator import MASKED
from clinic_core.patients.api.serializers import validate_national_id
from clinic_core.professionals.models import Position
from clinic_core.professionals.repository import SENSITIVE_FIELDS


class ProfessionalFieldsSerializer(serializers.Serializer):
    full_name = serializers.CharField(max_length=255)
    national_id = serializers.CharField(max_length=14)
    license_number = serializers.CharField(max_length=32, required=False, allow_blank=True, allow_null=True)
    specialty = serializers.CharField(max_length=120, required=False, allow_blank=True)
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True, allow_null=True)
    position = serializers.ChoiceField(choices=Position.choices)
    department = serializers.CharField(max_length=120, required=False, allow_blank=True)
    hired_on = serializers.DateField(required=False, allow_null=True)
    working_hours = serializers.DictField(required=False)
    can_prescribe = serializers.BooleanField(required=False, default=False)
    can_telemedicine = serializers.BooleanField(required=False, default=False)

    def validate_national_id(self, value):
        return validate_national_id(value)


class ProfessionalCreateSerializer(ProfessionalFieldsSerializer):
    email = serializers.EmailField()
    password = serializers.CharField(min_length=8, write_only=True)


class ProfessionalUpdateSerializer(ProfessionalFieldsSerializer):
    is_active = serializers.BooleanField(required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("At least one field is required.")
        return attrs


class ProfessionalSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    account_id = serializers.UUIDField()
    full_name = serializers.CharField()
    national_id = serializers.CharField(allow_null=True)
    license_number = serializers.CharField(allow_null=True)
    specialty = serializers.CharField()
    phone = serializers.CharField(allow_null=True)
    position = serializers.CharField()
    department = serializers.CharField()
    hired_on = serializers.DateField(allow_null=True)
    working_hours = serializers.DictField()
    can_prescribe = serializers.BooleanField()
    can_telemedicine = serializers.BooleanField()
    is_active = serializers.BooleanField()
    created_at = serializers.DateTimeField()
    updated_at = serializers.DateTimeField()

    def to_representation(self, instance):
        data = super().to_representation(instance)
        visibility = self.context.get("visibility", MASKED)
        for name, kind in SENSITIVE_FIELDS.items():
            data[name] = visibility.render(data.get(name), kind)
        return data


class ProfessionalSummarySerializer(serializers.Serializer):
    """Public directory entry; no sensitive fields."""
    id = serializers.UUIDField()
    full_name = serializers.CharField()
    specialty = serializers.CharField()
    position = serializers.CharField()
    license_number = serializers.CharField(allow_null=True)
    working_hours = serializers.DictField()
    can_telemedicine = serializers.BooleanField()


class ProfessionalListQuerySerializer(PageQuerySerializer):
    search = serializers.CharField(required=False, allow_blank=True)
    specialty = serializers.CharField(required=False, allow_blank=True)
    position = serializers.ChoiceField(choices=Position.choices, required=False)


class ScheduleQuerySerializer(serializers.Serializer):
    date = serializers.DateField(required=False)
