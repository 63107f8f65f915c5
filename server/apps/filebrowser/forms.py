"""Request validation for file browser endpoints."""

from typing import Final

from django import forms
from django.conf import settings
from django.core.exceptions import ValidationError

from server.apps.filebrowser.infrastructure.disks import is_configured
from server.apps.filebrowser.infrastructure.metadata import validate_upload

PATH_MAX_LENGTH: Final = 500
NAME_MAX_LENGTH: Final = 255
MAX_PAGE: Final = 1000
MAX_PER_PAGE: Final = 100
DEFAULT_PER_PAGE: Final = 50

_DEFAULT_ALLOWED_EXTENSIONS: Final = (
    'mp4', 'webm', 'ogg', 'mov', 'avi', 'quicktime', 'pdf', 'doc', 'docx',
    'txt', 'jpg', 'jpeg', 'png', 'gif', 'webp', 'svg', 'ppt', 'pptx',
    'mp3', 'wav', 'm4a',
)
_DEFAULT_MAX_FILE_SIZE_KB: Final = 2048000

# Form fields holding store paths or names, checked for traversal attempts
PATH_FIELDS: Final = (
    'folder_path',
    'file_path',
    'source_path',
    'destination_path',
    'new_name',
)


def get_default_disk() -> str:
    """Get the disk used when a request names none."""
    return getattr(settings, 'FILEBROWSER_DEFAULT_DISK', 's3')


def _path_field(*, required: bool = True) -> forms.CharField:
    return forms.CharField(max_length=PATH_MAX_LENGTH, required=required)


class DiskForm(forms.Form):
    """Base form: every request targets a configured disk."""

    disk = forms.CharField(max_length=NAME_MAX_LENGTH)

    def clean_disk(self) -> str:
        """Reject disks missing from the STORAGES setting."""
        disk = self.cleaned_data['disk']
        if not is_configured(disk):
            raise ValidationError('Invalid storage disk specified.')
        return disk


class FolderContentsForm(DiskForm):
    """Paginated folder listing request."""

    folder_path = _path_field(required=False)
    page = forms.IntegerField(min_value=1, max_value=MAX_PAGE, required=False)
    per_page = forms.IntegerField(
        min_value=1,
        max_value=MAX_PER_PAGE,
        required=False,
    )

    def clean_page(self) -> int:
        """Default to the first page."""
        return self.cleaned_data['page'] or 1

    def clean_per_page(self) -> int:
        """Default to 50 items per page."""
        return self.cleaned_data['per_page'] or DEFAULT_PER_PAGE


class FilePathForm(DiskForm):
    """Request naming a single file."""

    file_path = _path_field()


class FolderPathForm(DiskForm):
    """Request naming a single folder."""

    folder_path = _path_field()


class _RenameMixin(forms.Form):
    new_name = forms.CharField(max_length=NAME_MAX_LENGTH)

    def clean_new_name(self) -> str:
        """Reject names that would escape the current folder."""
        new_name = self.cleaned_data['new_name']
        if '/' in new_name or '\\' in new_name:
            raise ValidationError('New name cannot contain path separators.')
        return new_name


class RenameFileForm(_RenameMixin, FilePathForm):
    """Rename a file in place."""


class RenameFolderForm(_RenameMixin, FolderPathForm):
    """Rename a folder in place."""


class TransferForm(DiskForm):
    """Move or copy request; an empty destination means the root."""

    source_path = _path_field()
    destination_path = _path_field(required=False)


class UploadForm(forms.Form):
    """Multipart upload request, checked against the upload policy."""

    file = forms.FileField()
    folder_path = _path_field(required=False)
    disk = forms.CharField(max_length=NAME_MAX_LENGTH, required=False)

    def clean_disk(self) -> str:
        """Fall back to the default disk and reject unknown ones."""
        disk = self.cleaned_data['disk'] or get_default_disk()
        if not is_configured(disk):
            raise ValidationError('Invalid storage disk specified.')
        return disk

    def clean_file(self):
        """Enforce allowed extensions and the maximum size."""
        uploaded_file = self.cleaned_data['file']
        validate_upload(
            uploaded_file.name,
            uploaded_file.size,
            getattr(
                settings,
                'FILEBROWSER_ALLOWED_EXTENSIONS',
                _DEFAULT_ALLOWED_EXTENSIONS,
            ),
            getattr(
                settings,
                'FILEBROWSER_MAX_FILE_SIZE',
                _DEFAULT_MAX_FILE_SIZE_KB,
            ),
        )
        return uploaded_file
