# clinic_core/iam/admin.py
from __future__ import annotations

from django.contrib import admin

from clinic_core.iam.models import Account


@admin.register(Account)
class AccountAdmin(admin.ModelAdmin):
    list_display = ("email", "role", "is_active", "failed_login_attempts", "locked_until", "last_login", "created_at")
    list_filter = ("role", "is_active")
    search_fields = ("email",)
    ordering = ("-created_at",)
    readonly_fields = ("password", "last_login", "failed_login_attempts", "locked_until", "password_changed_at")
    exclude = ("groups", "user_permissions")

    def has_delete_permission(self, request, obj=None):
        return False
