# clinic_core/appointments/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from clinic_core.appointments.models import AppointmentKind, AppointmentStatus
from clinic_core.common.api.pagination import PageQuerySerializer
from clinic_core.iam.evaluator import MASKED
from clinic_core.security.anonymize import NATIONAL_ID


class AppointmentCreateSerializer(serializers.Serializer):
    patient_id = serializers.UUIDField()
    professional_id = serializers.UUIDField()
    scheduled_at = serializers.DateTimeField()
    kind = serializers.ChoiceField(choices=AppointmentKind.choices, required=False, default=AppointmentKind.IN_PERSON)
    reason = serializers.CharField(required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    urgent = serializers.BooleanField(required=False, default=False)


class AppointmentUpdateSerializer(serializers.Serializer):
    scheduled_at = serializers.DateTimeField(required=False)
    kind = serializers.ChoiceField(choices=AppointmentKind.choices, required=False)
    reason = serializers.CharField(required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)
    urgent = serializers.BooleanField(required=False)
    # check-in, cancel and complete have their own actions
    status = serializers.ChoiceField(choices=[AppointmentStatus.SCHEDULED, AppointmentStatus.NO_SHOW], required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("At least one field is required.")
        return attrs


class AppointmentCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class AppointmentCompleteSerializer(serializers.Serializer):
    diagnosis = serializers.CharField(required=False, allow_blank=True)
    prescription = serializers.CharField(required=False, allow_blank=True)
    clinical_notes = serializers.CharField(required=False, allow_blank=True)
    requested_exams = serializers.CharField(required=False, allow_blank=True)
    follow_up_required = serializers.BooleanField(required=False, default=False)
    follow_up_on = serializers.DateField(required=False, allow_null=True)

    def validate(self, attrs):
        if attrs.get("follow_up_required") and not attrs.get("follow_up_on"):
            raise serializers.ValidationError({"follow_up_on": ["Required when a follow-up is requested."]})
        return attrs


class AppointmentSerializer(serializers.Serializer):
    """
    Embedded patient national ID goes through context["visibility"]
    (masked when absent) after being opened with context["envelope"].
    """
    id = serializers.UUIDField()
    scheduled_at = serializers.DateTimeField()
    kind = serializers.CharField()
    status = serializers.CharField()
    reason = serializers.CharField()
    notes = serializers.CharField()
    urgent = serializers.BooleanField()
    diagnosis = serializers.CharField()
    prescription = serializers.CharField()
    clinical_notes = serializers.CharField()
    requested_exams = serializers.CharField()
    follow_up_required = serializers.BooleanField()
    follow_up_on = serializers.DateField(allow_null=True)
    checked_in_at = serializers.DateTimeField(allow_null=True)
    completed_at = serializers.DateTimeField(allow_null=True)
    cancelled_at = serializers.DateTimeField(allow_null=True)
    cancellation_reason = serializers.CharField()
    created_at = serializers.DateTimeField()
    updated_at = serializers.DateTimeField()
    patient = serializers.SerializerMethodField()
    professional = serializers.SerializerMethodField()

    def get_patient(self, obj) -> dict:
        patient = obj.patient
        envelope = self.context.get("envelope")
        national_id = envelope.decode(patient.national_id_enc) if envelope else None
        visibility = self.context.get("visibility", MASKED)
        return {
            "id": str(patient.id),
            "full_name": patient.full_name,
            "national_id": visibility.render(national_id, NATIONAL_ID),
        }

    def get_professional(self, obj) -> dict:
        professional = obj.professional
        return {
            "id": str(professional.id),
            "full_name": professional.full_name,
            "specialty": professional.specialty,
        }


class AppointmentListQuerySerializer(PageQuerySerializer):
    patient_id = serializers.UUIDField(required=False)
    professional_id = serializers.UUIDField(required=False)
    status = serializers.ChoiceField(choices=AppointmentStatus.choices, required=False)
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)


class AppointmentReportQuerySerializer(serializers.Serializer):
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)
    status = serializers.ChoiceField(choices=AppointmentStatus.choices, required=False)
    professional_id = serializers.UUIDField(required=False)
