"""Django app configuration for filebrowser app."""

from django.apps import AppConfig


class FilebrowserConfig(AppConfig):
    """Configuration for filebrowser app."""

    name = 'server.apps.filebrowser'
    verbose_name = 'File browser'
