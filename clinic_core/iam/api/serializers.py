# clinic_core/iam/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from clinic_core.iam.roles import Role
from clinic_core.patients.api.serializers import PatientFieldsSerializer


class LoginRequestSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(trim_whitespace=False)


class PatientSummarySerializer(serializers.Serializer):
    id = serializers.UUIDField()
    full_name = serializers.CharField()
    is_active = serializers.BooleanField()


class ProfessionalProfileSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    full_name = serializers.CharField()
    specialty = serializers.CharField()
    position = serializers.CharField()
    is_active = serializers.BooleanField()


class ProfileSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    email = serializers.EmailField()
    role = serializers.CharField()
    is_active = serializers.BooleanField()
    last_login = serializers.DateTimeField(allow_null=True)
    patient = PatientSummarySerializer(allow_null=True)
    professional = ProfessionalProfileSerializer(allow_null=True)


class LoginResponseSerializer(serializers.Serializer):
    token = serializers.CharField()
    refresh = serializers.CharField()
    profile = ProfileSerializer()


class RegisterRequestSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(min_length=8, write_only=True, trim_whitespace=False)
    role = serializers.ChoiceField(choices=Role.choices, required=False, default=Role.PATIENT)
    # optional patient record created in the same transaction
    patient = PatientFieldsSerializer(required=False)

    def validate(self, attrs):
        if attrs.get("patient") and attrs.get("role", Role.PATIENT) != Role.PATIENT:
            raise serializers.ValidationError({"patient": ["Only patient accounts carry a patient record."]})
        return attrs


class RefreshRequestSerializer(serializers.Serializer):
    # falls back to the refresh cookie when omitted
    refresh = serializers.CharField(required=False)


class TokenResponseSerializer(serializers.Serializer):
    token = serializers.CharField()
    refresh = serializers.CharField()


class ChangePasswordSerializer(serializers.Serializer):
    current_password = serializers.CharField(trim_whitespace=False)
    new_password = serializers.CharField(min_length=8, trim_whitespace=False)

    def validate(self, attrs):
        if attrs["current_password"] == attrs["new_password"]:
            raise serializers.ValidationError({"new_password": ["Must differ from the current password."]})
        return attrs


class ProfileUpdateSerializer(serializers.Serializer):
    email = serializers.EmailField()


class VerifyResponseSerializer(serializers.Serializer):
    valid = serializers.BooleanField()
    user = ProfileSerializer()


class DetailSerializer(serializers.Serializer):
    detail = serializers.CharField()
