# clinic_core/iam/management/commands/ensure_admin.py

import os

from django.core.management.base import BaseCommand, CommandError

from clinic_core.iam.models import Account
from clinic_core.iam.roles import Role


class Command(BaseCommand):
    help = "Ensure an administrator account exists (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument("--email", default=os.getenv("ADMIN_EMAIL", ""))
        parser.add_argument("--password", default=os.getenv("ADMIN_PASSWORD", ""))

    def handle(self, *args, **options):
        email = (options["email"] or "").strip()
        password = options["password"] or ""
        if not email or not password:
            raise CommandError("Provide --email and --password (or ADMIN_EMAIL / ADMIN_PASSWORD).")

        existing = Account.objects.filter(email__iexact=email).first()
        if existing is not None:
            if existing.role != Role.ADMIN:
                raise CommandError(f"{email} exists with role {existing.role}.")
            self.stdout.write(self.style.SUCCESS(f"Administrator {existing.email} already present."))
            return

        account = Account.objects.create_superuser(email=email, password=password)
        self.stdout.write(self.style.SUCCESS(f"Administrator {account.email} created."))
