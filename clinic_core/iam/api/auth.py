# clinic_core/iam/api/auth.py

from __future__ import annotations

from datetime import timedelta
from typing import Any

from django.conf import settings
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.exceptions import AuthenticationFailed, NotAuthenticated
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError
from rest_framework_simplejwt.settings import api_settings as jwt_settings
from rest_framework_simplejwt.tokens import RefreshToken

from clinic_core.audit.codes import AuditAction, ResourceType
from clinic_core.common.api.exceptions import Forbidden
from clinic_core.common.request_context import RequestContext
from clinic_core.common.wiring import services
from clinic_core.iam.api.serializers import (
    ChangePasswordSerializer,
    DetailSerializer,
    LoginRequestSerializer,
    LoginResponseSerializer,
    ProfileSerializer,
    ProfileUpdateSerializer,
    RefreshRequestSerializer,
    RegisterRequestSerializer,
    TokenResponseSerializer,
    VerifyResponseSerializer,
)
from clinic_core.iam.auth import issued_before_password_change
from clinic_core.iam.evaluator import FORBIDDEN_ROLE
from clinic_core.iam.models import Account
from clinic_core.iam.permissions import principal_for
from clinic_core.iam.policy import Action
from clinic_core.iam.roles import Role
from clinic_core.iam.services.authentication import public_profile


def _jwt_cfg() -> dict:
    return getattr(settings, "SIMPLE_JWT", {}) or {}


def _seconds(value: Any) -> int:
    """
    Convert a JWT lifetime setting into seconds.
    Supports timedelta or int/float (already seconds).
    """
    if isinstance(value, timedelta):
        return int(value.total_seconds())
    try:
        return int(value)
    except (TypeError, ValueError):
        # 0 means "session cookie"
        return 0


def _set_auth_cookies(response: Response, *, access: str, refresh: str) -> None:
    jwt_cfg = _jwt_cfg()

    secure = bool(jwt_cfg.get("AUTH_COOKIE_SECURE", False))
    samesite = jwt_cfg.get("AUTH_COOKIE_SAMESITE", "Lax")

    response.set_cookie(
        jwt_cfg.get("AUTH_COOKIE", "cc_access"),
        access,
        max_age=_seconds(jwt_cfg.get("ACCESS_TOKEN_LIFETIME", timedelta(minutes=60))),
        httponly=True,
        secure=secure,
        samesite=samesite,
        path="/",
    )
    response.set_cookie(
        jwt_cfg.get("AUTH_COOKIE_REFRESH", "cc_refresh"),
        refresh,
        max_age=_seconds(jwt_cfg.get("REFRESH_TOKEN_LIFETIME", timedelta(days=1))),
        httponly=True,
        secure=secure,
        samesite=samesite,
        path="/",
    )


def _clear_auth_cookies(response: Response) -> None:
    jwt_cfg = _jwt_cfg()
    response.delete_cookie(jwt_cfg.get("AUTH_COOKIE", "cc_access"), path="/")
    response.delete_cookie(jwt_cfg.get("AUTH_COOKIE_REFRESH", "cc_refresh"), path="/")


class LoginView(APIView):
    permission_classes = [AllowAny]
    # a stale cookie must not block a fresh login
    authentication_classes: list = []
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "login"

    @extend_schema(request=LoginRequestSerializer, responses={200: LoginResponseSerializer}, tags=["Auth"])
    def post(self, request):
        ser = LoginRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        result = services().auth.login(
            ser.validated_data["email"],
            ser.validated_data["password"],
            request_context=RequestContext.from_request(request),
        )

        res = Response(
            {"token": result.tokens.access, "refresh": result.tokens.refresh, "profile": result.profile},
            status=status.HTTP_200_OK,
        )
        _set_auth_cookies(res, access=result.tokens.access, refresh=result.tokens.refresh)
        return res


class RegisterView(APIView):
    """
    Public sign-up creates patient accounts (optionally with their patient
    record). Any other role needs an authenticated administrator.
    """
    permission_classes = [AllowAny]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "register"

    def _authorize_role(self, request, role: Role, rc: RequestContext):
        if role == Role.PATIENT:
            return
        user = request.user
        if not user or not user.is_authenticated:
            services().audit.record(
                None,
                AuditAction.UNAUTHORIZED_ACCESS,
                ResourceType.API,
                request_context=rc,
                success=False,
                error_message=FORBIDDEN_ROLE,
                context={"action": Action.ACCOUNT_REGISTER_STAFF.value, "reason": FORBIDDEN_ROLE, "requested_role": role},
            )
            raise Forbidden(reason=FORBIDDEN_ROLE)
        services().access.authorize(principal_for(request), Action.ACCOUNT_REGISTER_STAFF, request_context=rc)

    @extend_schema(request=RegisterRequestSerializer, responses={201: ProfileSerializer}, tags=["Auth"])
    def post(self, request):
        ser = RegisterRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        rc = RequestContext.from_request(request)
        role = Role(data.get("role", Role.PATIENT))
        self._authorize_role(request, role, rc)

        patient_values = data.get("patient")
        attach = None
        if patient_values:
            def attach(account):
                return services().patients.create_record(account, dict(patient_values))

        actor_id = request.user.id if request.user and request.user.is_authenticated else None
        account = services().accounts.register(
            email=data["email"],
            password=data["password"],
            role=role,
            actor_id=actor_id,
            request_context=rc,
            attach=attach,
        )
        return Response(public_profile(account), status=status.HTTP_201_CREATED)


class LogoutView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(request=None, responses={200: DetailSerializer}, tags=["Auth"])
    def post(self, request):
        services().auth.logout(request.user, request_context=RequestContext.from_request(request))
        res = Response({"detail": "logged out"}, status=status.HTTP_200_OK)
        _clear_auth_cookies(res)
        return res


class RefreshView(APIView):
    permission_classes = [AllowAny]
    # an expired access cookie must not block the refresh itself
    authentication_classes: list = []

    def get_authenticate_header(self, request):
        # keeps token failures at 401 without authenticators
        return 'Bearer realm="api"'

    @extend_schema(request=RefreshRequestSerializer, responses={200: TokenResponseSerializer}, tags=["Auth"])
    def post(self, request):
        ser = RefreshRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        raw = ser.validated_data.get("refresh") or request.COOKIES.get(_jwt_cfg().get("AUTH_COOKIE_REFRESH", "cc_refresh"))
        if not raw:
            raise NotAuthenticated("Refresh token missing.")

        try:
            token = RefreshToken(raw)
        except TokenError as exc:
            raise InvalidToken(str(exc))

        account = Account.objects.filter(id=token.get(jwt_settings.USER_ID_CLAIM)).first()
        if account is None:
            raise AuthenticationFailed("Account not found.")
        if issued_before_password_change(account, token):
            raise InvalidToken("Token predates the last password change.")

        tokens = services().auth.refresh(account, request_context=RequestContext.from_request(request))

        res = Response({"token": tokens.access, "refresh": tokens.refresh}, status=status.HTTP_200_OK)
        _set_auth_cookies(res, access=tokens.access, refresh=tokens.refresh)
        return res


class ChangePasswordView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "sensitive"

    @extend_schema(request=ChangePasswordSerializer, responses={200: DetailSerializer}, tags=["Auth"])
    def post(self, request):
        ser = ChangePasswordSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        services().auth.change_password(
            request.user,
            ser.validated_data["current_password"],
            ser.validated_data["new_password"],
            request_context=RequestContext.from_request(request),
        )
        return Response({"detail": "password changed"}, status=status.HTTP_200_OK)


class ProfileView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(responses={200: ProfileSerializer}, tags=["Auth"])
    def get(self, request):
        return Response(services().auth.profile(request.user))

    @extend_schema(request=ProfileUpdateSerializer, responses={200: ProfileSerializer}, tags=["Auth"])
    def put(self, request):
        ser = ProfileUpdateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        profile = services().auth.update_profile(
            request.user,
            email=ser.validated_data["email"],
            request_context=RequestContext.from_request(request),
        )
        return Response(profile)


class VerifyView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(responses={200: VerifyResponseSerializer}, tags=["Auth"])
    def get(self, request):
        return Response({"valid": True, "user": public_profile(request.user)})
