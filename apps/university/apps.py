from django.apps import AppConfig


class UniversityConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.university'
    verbose_name = 'University'

    def ready(self):
        """Import signals when app is ready."""
        import apps.university.signals  # noqa
