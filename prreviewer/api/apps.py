from django.apps import AppConfig


class ApiConfig(AppConfig):
    name = 'prreviewer.api'
    label = 'api'
    verbose_name = 'Pull request reviews'
