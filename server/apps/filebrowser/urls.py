"""URL routes of the file browser API."""

from django.urls import path

from server.apps.filebrowser import views

app_name = 'filebrowser'

urlpatterns = [
    path('folder-contents', views.folder_contents, name='folder-contents'),
    path('preview-url', views.preview_url, name='preview-url'),
    path('upload', views.upload, name='upload'),
    path('file', views.delete_file, name='delete-file'),
    path('folder', views.delete_folder, name='delete-folder'),
    path('rename-file', views.rename_file, name='rename-file'),
    path('rename-folder', views.rename_folder, name='rename-folder'),
    path('move-file', views.move_file, name='move-file'),
    path('move-folder', views.move_folder, name='move-folder'),
    path('copy-file', views.copy_file, name='copy-file'),
    path('copy-folder', views.copy_folder, name='copy-folder'),
    path('create-folder', views.create_folder, name='create-folder'),
]
