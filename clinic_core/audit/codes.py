# clinic_core/audit/codes.py
from django.db import models


class ResourceType(models.TextChoices):
    AUTH = "AUTH", "Authentication"
    PATIENT = "PATIENT", "Patient"
    PROFESSIONAL = "PROFESSIONAL", "Professional"
    APPOINTMENT = "APPOINTMENT", "Appointment"
    AUDIT = "AUDIT", "Audit"
    API = "API", "API"


class AuditAction(models.TextChoices):
    """
    Closed vocabulary of audit action codes.
    Stored values are part of the compliance record and must never be renamed.
    """

    # authentication / accounts
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILED = "LOGIN_FAILED"
    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"
    LOGOUT = "LOGOUT"
    REGISTER_SUCCESS = "REGISTER_SUCCESS"
    REGISTER_FAILED = "REGISTER_FAILED"
    PASSWORD_CHANGE_SUCCESS = "PASSWORD_CHANGE_SUCCESS"
    PASSWORD_CHANGE_FAILED = "PASSWORD_CHANGE_FAILED"
    PROFILE_UPDATED = "PROFILE_UPDATED"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    ACCOUNT_DEACTIVATED = "ACCOUNT_DEACTIVATED"
    ACCOUNT_REACTIVATED = "ACCOUNT_REACTIVATED"

    # access control / errors
    UNAUTHORIZED_ACCESS = "UNAUTHORIZED_ACCESS"
    ERROR = "ERROR"

    # patients
    PATIENT_CREATED = "PACIENTE_CREATED"
    PATIENTS_LISTED = "PACIENTES_LISTED"
    PATIENT_VIEWED = "PACIENTE_VIEWED"
    PATIENT_UPDATED = "PACIENTE_UPDATED"
    PATIENT_DEACTIVATED = "PACIENTE_DEACTIVATED"
    PATIENT_ANONYMIZED = "PACIENTE_ANONYMIZED"
    PATIENTS_STATISTICS_VIEWED = "PACIENTES_STATISTICS_VIEWED"

    # professionals
    PROFESSIONAL_CREATED = "PROFISSIONAL_CREATED"
    PROFESSIONALS_LISTED = "PROFISSIONAIS_LISTED"
    PROFESSIONAL_VIEWED = "PROFISSIONAL_VIEWED"
    PROFESSIONAL_UPDATED = "PROFISSIONAL_UPDATED"
    PROFESSIONAL_DEACTIVATED = "PROFISSIONAL_DEACTIVATED"
    PROFESSIONALS_BY_SPECIALTY_LISTED = "PROFISSIONAIS_BY_SPECIALTY_LISTED"
    PROFESSIONAL_SCHEDULE_VIEWED = "PROFISSIONAL_SCHEDULE_VIEWED"
    PROFESSIONALS_STATISTICS_VIEWED = "PROFISSIONAIS_STATISTICS_VIEWED"

    # appointments
    APPOINTMENT_CREATED = "CONSULTA_CREATED"
    APPOINTMENTS_LISTED = "CONSULTAS_LISTED"
    APPOINTMENT_VIEWED = "CONSULTA_VIEWED"
    APPOINTMENT_UPDATED = "CONSULTA_UPDATED"
    APPOINTMENT_CANCELLED = "CONSULTA_CANCELLED"
    APPOINTMENT_CHECKIN = "CONSULTA_CHECKIN"
    APPOINTMENT_COMPLETED = "CONSULTA_COMPLETED"
    APPOINTMENTS_REPORT_GENERATED = "CONSULTAS_REPORT_GENERATED"

    # audit read side
    AUDIT_LOGS_VIEWED = "AUDIT_LOGS_VIEWED"
    AUDIT_LOG_DETAILED_VIEW = "AUDIT_LOG_DETAILED_VIEW"
    AUDIT_STATISTICS_VIEWED = "AUDIT_STATISTICS_VIEWED"
    USER_ACTIVITY_REPORT_GENERATED = "USER_ACTIVITY_REPORT_GENERATED"
    SECURITY_REPORT_GENERATED = "SECURITY_REPORT_GENERATED"
    AUDIT_LOGS_EXPORTED = "AUDIT_LOGS_EXPORTED"


SECURITY_ACTIONS = (
    AuditAction.LOGIN_SUCCESS,
    AuditAction.LOGIN_FAILED,
    AuditAction.ACCOUNT_LOCKED,
    AuditAction.PASSWORD_CHANGE_SUCCESS,
)
