from django.apps import AppConfig


class CommonConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "clinic_core.common"
    label = "common"

    def ready(self):
        from clinic_core.common import wiring

        wiring.configure()
