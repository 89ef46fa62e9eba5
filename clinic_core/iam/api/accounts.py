# clinic_core/iam/api/accounts.py
from __future__ import annotations

from django.core.exceptions import ValidationError as DjangoValidationError
from drf_spectacular.utils import extend_schema
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from clinic_core.common.api.exceptions import ConflictError
from clinic_core.common.wiring import services
from clinic_core.iam.api.serializers import ProfileSerializer
from clinic_core.iam.models import Account
from clinic_core.iam.permissions import AccessControlledMixin, ActionPermission
from clinic_core.iam.policy import Action
from clinic_core.iam.services.authentication import public_profile


class AccountViewSet(AccessControlledMixin, viewsets.ViewSet):
    """Administrative account switches; records are never deleted."""
    permission_classes = [IsAuthenticated, ActionPermission]
    queryset = Account.objects.none()

    access_actions = {
        "deactivate": Action.ACCOUNT_DEACTIVATE,
        "reactivate": Action.ACCOUNT_REACTIVATE,
    }

    def get_account(self, pk) -> Account:
        try:
            return Account.objects.get(id=pk)
        except (Account.DoesNotExist, DjangoValidationError, ValueError):
            raise NotFound("Account not found.")

    @extend_schema(tags=["Accounts"], request=None, responses={200: ProfileSerializer})
    @action(detail=True, methods=["post"], url_path="deactivate")
    def deactivate(self, request, pk=None):
        account = self.get_account(pk)
        if account.id == request.user.id:
            raise ConflictError("You cannot deactivate your own account.")
        account = services().accounts.deactivate(account, actor_id=request.user.id, request_context=self.request_context)
        return Response(public_profile(account))

    @extend_schema(tags=["Accounts"], request=None, responses={200: ProfileSerializer})
    @action(detail=True, methods=["post"], url_path="reactivate")
    def reactivate(self, request, pk=None):
        account = self.get_account(pk)
        account = services().accounts.reactivate(account, actor_id=request.user.id, request_context=self.request_context)
        return Response(public_profile(account))
