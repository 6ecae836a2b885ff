from django.apps import AppConfig


class RindwaConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'rindwa'
    verbose_name = 'Rindwa Incident Reporting'
