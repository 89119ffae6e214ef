from django.apps import AppConfig


class OkrGuardConfig(AppConfig):
    name = "okr_guard"
    verbose_name = "OKR Guard"
    default_auto_field = "django.db.models.BigAutoField"

    def ready(self):
        # Import to register signal handlers
        from . import signals  # noqa
