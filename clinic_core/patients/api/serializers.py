# clinic_core/patients/api/serializers.py
from __future__ import annotations

import re

from rest_framework import serializers

from clinic_core.common.api.pagination import PageQuerySerializer
from clinic_core.iam.evaluator import MASKED
from clinic_core.patients.repository import SENSITIVE_FIELDS

_NON_DIGITS = re.compile(r"\D")


def validate_national_id(value: str) -> str:
    digits = _NON_DIGITS.sub("", value or "")
    if len(digits) != 11:
        raise serializers.ValidationError("National ID must have 11 digits.")
    return digits


class PatientFieldsSerializer(serializers.Serializer):
    full_name = serializers.CharField(max_length=255)
    national_id = serializers.CharField(max_length=14)
    identity_document = serializers.CharField(max_length=20, required=False, allow_blank=True, allow_null=True)
    birth_date = serializers.DateField(required=False, allow_null=True)
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True, allow_null=True)
    address = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    city = serializers.CharField(max_length=120, required=False, allow_blank=True)
    state = serializers.CharField(max_length=2, required=False, allow_blank=True)
    postal_code = serializers.CharField(max_length=10, required=False, allow_blank=True)
    health_plan = serializers.CharField(max_length=120, required=False, allow_blank=True)
    insurance_card_number = serializers.CharField(max_length=50, required=False, allow_blank=True, allow_null=True)
    emergency_contact_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    emergency_contact_phone = serializers.CharField(max_length=20, required=False, allow_blank=True, allow_null=True)
    medical_notes = serializers.CharField(required=False, allow_blank=True)
    lgpd_consent = serializers.BooleanField(required=False, default=False)

    def validate_national_id(self, value):
        return validate_national_id(value)


class PatientCreateSerializer(PatientFieldsSerializer):
    email = serializers.EmailField()
    password = serializers.CharField(min_length=8, write_only=True)


class PatientUpdateSerializer(PatientFieldsSerializer):
    """
    Partial update contract; use with partial=True.
    """
    is_active = serializers.BooleanField(required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("At least one field is required.")
        return attrs


class PatientSerializer(serializers.Serializer):
    """
    Renders a PatientRecord. Sensitive fields pass through the caller's
    FieldVisibility (context["visibility"], masked when absent).
    """
    id = serializers.UUIDField()
    account_id = serializers.UUIDField()
    full_name = serializers.CharField()
    national_id = serializers.CharField(allow_null=True)
    identity_document = serializers.CharField(allow_null=True)
    birth_date = serializers.DateField(allow_null=True)
    phone = serializers.CharField(allow_null=True)
    address = serializers.CharField(allow_null=True)
    city = serializers.CharField()
    state = serializers.CharField()
    postal_code = serializers.CharField()
    health_plan = serializers.CharField()
    insurance_card_number = serializers.CharField(allow_null=True)
    emergency_contact_name = serializers.CharField()
    emergency_contact_phone = serializers.CharField(allow_null=True)
    medical_notes = serializers.CharField()
    lgpd_consent = serializers.BooleanField()
    lgpd_consent_at = serializers.DateTimeField(allow_null=True)
    is_active = serializers.BooleanField()
    anonymized_at = serializers.DateTimeField(allow_null=True)
    created_at = serializers.DateTimeField()
    updated_at = serializers.DateTimeField()

    def to_representation(self, instance):
        data = super().to_representation(instance)
        visibility = self.context.get("visibility", MASKED)
        for name, kind in SENSITIVE_FIELDS.items():
            data[name] = visibility.render(data.get(name), kind)
        return data


class PatientListItemSerializer(PatientSerializer):
    class Meta:
        fields = ["id", "full_name", "national_id", "phone", "birth_date", "city", "state", "health_plan", "is_active"]

    def to_representation(self, instance):
        data = super().to_representation(instance)
        return {k: data[k] for k in self.Meta.fields}


class PatientListQuerySerializer(PageQuerySerializer):
    search = serializers.CharField(required=False, allow_blank=True)
