"""
Main URL mapping configuration file.

Include other URLConfs from external apps using method `include()`.

It is also a good practice to keep a single URL to the root index page.
"""

from django.urls import include, path

urlpatterns = [
    # Apps:
    path('api/s3-files/', include('server.apps.filebrowser.urls')),
]
