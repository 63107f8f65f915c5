"""JSON endpoints of the file browser.

Views stay thin: validate the request with a form, reject traversal
attempts, delegate to the catalog service and map its outcome to a JSON
response. Store errors are mapped to status codes in one place,
``api_view``.
"""

import functools
import json
import logging
from collections.abc import Callable, Mapping
from typing import Any, Final

from django import forms
from django.core.exceptions import ValidationError
from django.http import HttpRequest, HttpResponse, JsonResponse, QueryDict
from django.views.decorators.http import require_http_methods

from server.apps.filebrowser.exceptions import (
    StorageConfigurationError,
    StorageConnectionError,
    StorageOperationError,
)
from server.apps.filebrowser.forms import (
    PATH_FIELDS,
    FilePathForm,
    FolderContentsForm,
    FolderPathForm,
    RenameFileForm,
    RenameFolderForm,
    TransferForm,
    UploadForm,
)
from server.apps.filebrowser.infrastructure.metadata import (
    extract_filename,
    get_file_type,
)
from server.apps.filebrowser.logic.catalog import (
    FileCatalogService,
    get_url_expiration,
)
from server.apps.filebrowser.logic.path_sanitizer import is_malicious
from server.apps.filebrowser.throttling import (
    UPLOAD_SCOPE,
    get_client_ip,
    throttle,
)

logger = logging.getLogger(__name__)

_BAD_REQUEST: Final = 400
_SERVER_ERROR: Final = 500
_SERVICE_UNAVAILABLE: Final = 503

_JSON_CONTENT_TYPE: Final = 'application/json'

_INVALID_PATH_MESSAGES: Final = {
    'file_path': 'Invalid file path provided.',
    'folder_path': 'Invalid folder path provided.',
    'new_name': 'Invalid new name provided.',
}
_INVALID_PATH_DEFAULT: Final = 'Invalid path provided.'

_View = Callable[..., HttpResponse]


def get_catalog_service() -> FileCatalogService:
    """Build the catalog service used by the views."""
    return FileCatalogService()


def error_response(
    message: str,
    error_type: str,
    status: int,
    retryable: bool | None = None,
) -> JsonResponse:
    """Build a failure response.

    Args:
        message: Human readable message.
        error_type: Machine readable error category.
        status: HTTP status code.
        retryable: Whether the client may retry, omitted if None.

    Returns:
        JSON response with success set to False.
    """
    payload: dict[str, Any] = {
        'success': False,
        'message': message,
        'error_type': error_type,
    }
    if retryable is not None:
        payload['retryable'] = retryable
    return JsonResponse(payload, status=status)


def api_view(operation: str, action: str) -> Callable[[_View], _View]:
    """Map validation and storage errors of a view to JSON responses.

    Args:
        operation: Operation identifier, used in '<operation>_failed'.
        action: Phrase for the unexpected-error message
            (e.g., 'deleting the file').

    Returns:
        View decorator.
    """

    def decorator(view_func: _View) -> _View:
        @functools.wraps(view_func)
        def wrapped_view(request: HttpRequest, *args, **kwargs) -> HttpResponse:
            try:
                return view_func(request, *args, **kwargs)
            except ValidationError as error:
                return error_response(error.messages[0], 'validation', _BAD_REQUEST)
            except StorageConnectionError as error:
                logger.error(
                    'Storage unreachable during %s on disk %s: %s',
                    operation,
                    error.disk,
                    error.__cause__,
                )
                return error_response(
                    str(error),
                    's3_connection',
                    _SERVICE_UNAVAILABLE,
                    retryable=True,
                )
            except StorageConfigurationError as error:
                logger.error(
                    'Storage misconfigured during %s on disk %s: %s',
                    operation,
                    error.disk,
                    error,
                )
                return error_response(
                    str(error),
                    'configuration',
                    _SERVER_ERROR,
                    retryable=False,
                )
            except StorageOperationError as error:
                logger.error(
                    'Storage refused %s on disk %s: %s',
                    operation,
                    error.disk,
                    error.__cause__,
                )
                return error_response(
                    str(error),
                    f'{operation}_failed',
                    _SERVER_ERROR,
                    retryable=False,
                )
            except Exception:
                logger.exception('Unexpected error during %s', operation)
                return error_response(
                    f'An unexpected error occurred while {action}. '
                    'Please try again.',
                    'unexpected',
                    _SERVER_ERROR,
                    retryable=True,
                )

        return wrapped_view

    return decorator


def _request_data(request: HttpRequest) -> Mapping[str, Any]:
    """Read request parameters from a JSON or form-encoded body."""
    if request.content_type == _JSON_CONTENT_TYPE:
        try:
            payload = json.loads(request.body or b'{}')
        except json.JSONDecodeError as error:
            raise ValidationError('Malformed JSON body.') from error
        if not isinstance(payload, dict):
            raise ValidationError('Request body must be a JSON object.')
        return payload
    if request.method == 'POST':
        return request.POST
    return QueryDict(request.body)


def _reject_malicious_paths(
    request: HttpRequest,
    cleaned_data: Mapping[str, Any],
) -> None:
    user = getattr(request, 'user', None)
    user_id = user.pk if user is not None and user.is_authenticated else None

    for field in PATH_FIELDS:
        raw_path = cleaned_data.get(field)
        if raw_path and is_malicious(raw_path):
            logger.warning(
                'Malicious %s detected: %r (user: %s, ip: %s)',
                field,
                raw_path,
                user_id,
                get_client_ip(request),
            )
            raise ValidationError(
                _INVALID_PATH_MESSAGES.get(field, _INVALID_PATH_DEFAULT),
            )


def validate_request(
    request: HttpRequest,
    form_class: type[forms.Form],
) -> dict[str, Any]:
    """Validate request parameters with a form.

    Args:
        request: Incoming request.
        form_class: Form describing the parameters.

    Returns:
        Cleaned parameters.

    Raises:
        ValidationError: With the first form error, or for traversal
            attempts in any path parameter.
    """
    form = form_class(_request_data(request), request.FILES or None)
    if not form.is_valid():
        first_errors = next(iter(form.errors.values()))
        raise ValidationError(first_errors[0])

    _reject_malicious_paths(request, form.cleaned_data)
    return form.cleaned_data


def _mutation_response(
    succeeded: bool,
    operation: str,
    success_message: str,
    failure_message: str,
) -> JsonResponse:
    if succeeded:
        return JsonResponse({'success': True, 'message': success_message})
    return error_response(
        failure_message,
        f'{operation}_failed',
        _SERVER_ERROR,
        retryable=False,
    )


@require_http_methods(['POST'])
@throttle()
@api_view('folder_contents', 'loading folder contents')
def folder_contents(request: HttpRequest) -> HttpResponse:
    """List one page of a folder."""
    params = validate_request(request, FolderContentsForm)
    contents = get_catalog_service().list_files_in_folder(
        params['folder_path'],
        params['disk'],
        page=params['page'],
        per_page=params['per_page'],
    )
    return JsonResponse({'success': True, **contents.as_dict()})


@require_http_methods(['POST'])
@throttle()
@api_view('preview_url', 'generating the preview URL')
def preview_url(request: HttpRequest) -> HttpResponse:
    """Generate a presigned URL and metadata for previewing a file."""
    params = validate_request(request, FilePathForm)
    service = get_catalog_service()
    expiration = get_url_expiration()
    url = service.generate_presigned_url(
        params['file_path'],
        params['disk'],
        expiration,
    )
    metadata = service.get_file_metadata(params['file_path'], params['disk'])
    return JsonResponse({
        'success': True,
        'url': url,
        'type': get_file_type(params['file_path']),
        'metadata': metadata.as_dict(),
        'expires_in': expiration,
    })


@require_http_methods(['POST'])
@throttle(UPLOAD_SCOPE)
@api_view('upload', 'uploading the file')
def upload(request: HttpRequest) -> HttpResponse:
    """Upload a file under a unique name."""
    params = validate_request(request, UploadForm)
    uploaded = get_catalog_service().upload_file(
        params['file'],
        params['disk'],
        params['folder_path'],
    )
    return JsonResponse({
        'success': True,
        'file': {
            'path': uploaded.key,
            'name': extract_filename(uploaded.key),
            'size': uploaded.size,
            'type': get_file_type(uploaded.key),
        },
        'message': 'File uploaded successfully',
    })


@require_http_methods(['DELETE'])
@throttle()
@api_view('delete_file', 'deleting the file')
def delete_file(request: HttpRequest) -> HttpResponse:
    """Delete a file."""
    params = validate_request(request, FilePathForm)
    deleted = get_catalog_service().delete_file(
        params['file_path'],
        params['disk'],
    )
    return _mutation_response(
        deleted,
        'delete_file',
        'File deleted successfully',
        'Failed to delete file.',
    )


@require_http_methods(['DELETE'])
@throttle()
@api_view('delete_folder', 'deleting the folder')
def delete_folder(request: HttpRequest) -> HttpResponse:
    """Delete a folder and everything in it."""
    params = validate_request(request, FolderPathForm)
    deleted = get_catalog_service().delete_folder(
        params['folder_path'],
        params['disk'],
    )
    return _mutation_response(
        deleted,
        'delete_folder',
        'Folder deleted successfully',
        'Failed to delete folder.',
    )


@require_http_methods(['POST'])
@throttle()
@api_view('rename_file', 'renaming the file')
def rename_file(request: HttpRequest) -> HttpResponse:
    """Rename a file within its folder."""
    params = validate_request(request, RenameFileForm)
    renamed = get_catalog_service().rename_file(
        params['file_path'],
        params['new_name'],
        params['disk'],
    )
    return _mutation_response(
        renamed,
        'rename_file',
        'File renamed successfully',
        'Failed to rename file.',
    )


@require_http_methods(['POST'])
@throttle()
@api_view('rename_folder', 'renaming the folder')
def rename_folder(request: HttpRequest) -> HttpResponse:
    """Rename a folder within its parent."""
    params = validate_request(request, RenameFolderForm)
    renamed = get_catalog_service().rename_folder(
        params['folder_path'],
        params['new_name'],
        params['disk'],
    )
    return _mutation_response(
        renamed,
        'rename_folder',
        'Folder renamed successfully',
        'Failed to rename folder.',
    )


@require_http_methods(['POST'])
@throttle()
@api_view('move_file', 'moving the file')
def move_file(request: HttpRequest) -> HttpResponse:
    """Move a file into another folder."""
    params = validate_request(request, TransferForm)
    moved = get_catalog_service().move_file(
        params['source_path'],
        params['destination_path'],
        params['disk'],
    )
    return _mutation_response(
        moved,
        'move_file',
        'File moved successfully',
        'Failed to move file.',
    )


@require_http_methods(['POST'])
@throttle()
@api_view('move_folder', 'moving the folder')
def move_folder(request: HttpRequest) -> HttpResponse:
    """Move a folder into another folder."""
    params = validate_request(request, TransferForm)
    moved = get_catalog_service().move_folder(
        params['source_path'],
        params['destination_path'],
        params['disk'],
    )
    return _mutation_response(
        moved,
        'move_folder',
        'Folder moved successfully',
        'Failed to move folder.',
    )


@require_http_methods(['POST'])
@throttle()
@api_view('copy_file', 'copying the file')
def copy_file(request: HttpRequest) -> HttpResponse:
    """Copy a file into another folder."""
    params = validate_request(request, TransferForm)
    copied = get_catalog_service().copy_file(
        params['source_path'],
        params['destination_path'],
        params['disk'],
    )
    return _mutation_response(
        copied,
        'copy_file',
        'File copied successfully',
        'Failed to copy file.',
    )


@require_http_methods(['POST'])
@throttle()
@api_view('copy_folder', 'copying the folder')
def copy_folder(request: HttpRequest) -> HttpResponse:
    """Copy a folder into another folder."""
    params = validate_request(request, TransferForm)
    copied = get_catalog_service().copy_folder(
        params['source_path'],
        params['destination_path'],
        params['disk'],
    )
    return _mutation_response(
        copied,
        'copy_folder',
        'Folder copied successfully',
        'Failed to copy folder.',
    )


@require_http_methods(['POST'])
@throttle()
@api_view('create_folder', 'creating the folder')
def create_folder(request: HttpRequest) -> HttpResponse:
    """Create an empty folder."""
    params = validate_request(request, FolderPathForm)
    created = get_catalog_service().create_folder(
        params['folder_path'],
        params['disk'],
    )
    return _mutation_response(
        created,
        'create_folder',
        'Folder created successfully',
        'Failed to create folder.',
    )
