from django.apps import AppConfig


class FaresConfig(AppConfig):
    default_auto_field = 'django.db.models.AutoField'
    name = 'fares'
    verbose_name = 'Fares'
