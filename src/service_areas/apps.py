from django.apps import AppConfig


class ServiceAreasConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "service_areas"
    verbose_name = "Service areas"
