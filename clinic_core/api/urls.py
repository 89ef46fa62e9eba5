# clinic_core/api/urls.py
from __future__ import annotations

from django.urls import path
from rest_framework.routers import DefaultRouter

from clinic_core.appointments.api.views import AppointmentViewSet
from clinic_core.audit.api.views import AuditViewSet
from clinic_core.iam.api.accounts import AccountViewSet
from clinic_core.iam.api.auth import (
    ChangePasswordView,
    LoginView,
    LogoutView,
    ProfileView,
    RefreshView,
    RegisterView,
    VerifyView,
)
from clinic_core.patients.api.views import PatientViewSet
from clinic_core.professionals.api.views import ProfessionalViewSet

router = DefaultRouter()

router.register(r"patients", PatientViewSet, basename="patients")
router.register(r"professionals", ProfessionalViewSet, basename="professionals")
router.register(r"appointments", AppointmentViewSet, basename="appointments")
router.register(r"audit", AuditViewSet, basename="audit")
router.register(r"accounts", AccountViewSet, basename="accounts")

urlpatterns = [
    path("auth/login/", LoginView.as_view(), name="login"),
    path("auth/register/", RegisterView.as_view(), name="register"),
    path("auth/logout/", LogoutView.as_view(), name="logout"),
    path("auth/refresh/", RefreshView.as_view(), name="refresh"),
    path("auth/change-password/", ChangePasswordView.as_view(), name="change-password"),
    path("auth/profile/", ProfileView.as_view(), name="profile"),
    path("auth/verify/", VerifyView.as_view(), name="verify"),

    # Router URLs last (so explicit paths win if ever overlapping)
    *router.urls,
]
