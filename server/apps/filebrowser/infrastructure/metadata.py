"""Metadata helpers for stored objects and uploads."""

import mimetypes
import re
import threading
import time
from collections.abc import Collection
from datetime import datetime
from pathlib import PurePosixPath
from typing import Final

from django.core.exceptions import ValidationError

_PATH_SEPARATOR: Final = '/'
_DEFAULT_MIME_TYPE: Final = 'application/octet-stream'
_TIMESTAMP_FORMAT: Final = '%Y-%m-%d %H:%M:%S'
_BYTES_PER_KB: Final = 1024

# Marker object that keeps an otherwise empty folder visible
FOLDER_MARKER_NAME: Final = '.folder'

# Extension to file category, first match wins ('ogg' is a video)
_FILE_TYPES: Final = (
    ('image', frozenset(('jpg', 'jpeg', 'png', 'gif', 'webp', 'svg'))),
    ('pdf', frozenset(('pdf',))),
    ('video', frozenset(('mp4', 'webm', 'ogg', 'mov', 'avi'))),
    ('audio', frozenset(('mp3', 'wav', 'ogg', 'm4a'))),
    ('document', frozenset(('doc', 'docx', 'txt'))),
    ('presentation', frozenset(('ppt', 'pptx'))),
)
DEFAULT_FILE_TYPE: Final = 'file'

_UNSAFE_STEM_CHARS_RE: Final = re.compile(r'[^a-zA-Z0-9._-]')
_DOT_RUN_RE: Final = re.compile(r'\.{2,}')
_SAFE_STEM_START_RE: Final = re.compile(r'[a-zA-Z0-9]')
# Keys must start with a letter or digit to pass path sanitization
_STEM_PREFIX: Final = 'file_'

_timestamp_lock = threading.Lock()
_last_timestamp = 0


def detect_mime_type(filename: str) -> str:
    """Detect MIME type from filename extension.

    Args:
        filename: Filename or key with extension.

    Returns:
        MIME type string, 'application/octet-stream' if unknown.
    """
    mime_type, _ = mimetypes.guess_type(filename)
    if mime_type is None:
        return _DEFAULT_MIME_TYPE
    return mime_type


def extract_filename(storage_path: str) -> str:
    """Extract filename from storage path.

    Args:
        storage_path: Full key (e.g., 'docs/reports/file.pdf').

    Returns:
        Filename (e.g., 'file.pdf').
    """
    return storage_path.rsplit(_PATH_SEPARATOR, 1)[-1]


def extract_folder_path(storage_path: str) -> str:
    """Extract folder path from storage path.

    Args:
        storage_path: Full key (e.g., 'docs/reports/file.pdf').

    Returns:
        Folder path (e.g., 'docs/reports'), '' for root-level keys.
    """
    if _PATH_SEPARATOR not in storage_path:
        return ''
    return storage_path.rsplit(_PATH_SEPARATOR, 1)[0]


def join_path(folder_path: str, name: str) -> str:
    """Join a folder path and a name into a key, '' meaning the root."""
    if not folder_path:
        return name
    return f'{folder_path}{_PATH_SEPARATOR}{name}'


def get_file_extension(filename: str) -> str:
    """Get file extension from filename.

    Args:
        filename: Filename (e.g., 'document.PDF').

    Returns:
        Extension without dot, lowercase (e.g., 'pdf').
        Returns empty string if no extension.
    """
    return PurePosixPath(filename).suffix.lstrip('.').lower()


def get_file_type(filename: str) -> str:
    """Map a filename to its display category.

    Args:
        filename: Filename or key.

    Returns:
        One of image, pdf, video, audio, document, presentation, file.
    """
    extension = get_file_extension(filename)
    for file_type, extensions in _FILE_TYPES:
        if extension in extensions:
            return file_type
    return DEFAULT_FILE_TYPE


def is_hidden_file(name: str) -> bool:
    """Check if an object should be hidden from folder listings.

    Args:
        name: Filename (last key component).

    Returns:
        True for folder markers.
    """
    return name == FOLDER_MARKER_NAME


def format_timestamp(moment: datetime | None) -> str | None:
    """Format a modification time for API responses."""
    if moment is None:
        return None
    return moment.strftime(_TIMESTAMP_FORMAT)


def _next_timestamp() -> int:
    """Get a strictly increasing millisecond timestamp for this process."""
    global _last_timestamp  # noqa: WPS420
    with _timestamp_lock:
        _last_timestamp = max(time.time_ns() // 1_000_000, _last_timestamp + 1)
        return _last_timestamp


def generate_unique_filename(original_name: str) -> str:
    """Generate a collision-resistant object name for an upload.

    Example: 'Q3 report.pdf' -> 'Q3_report-1718000000123.pdf'

    Stems not starting with a letter or digit get a 'file_' prefix and
    runs of dots collapse to '_', so the key stays addressable.

    Args:
        original_name: Client-side filename.

    Returns:
        Sanitized stem, a monotonic timestamp and the original extension.
    """
    path = PurePosixPath(original_name.replace('\\', _PATH_SEPARATOR))
    stem = _DOT_RUN_RE.sub('_', _UNSAFE_STEM_CHARS_RE.sub('_', path.stem))
    if not _SAFE_STEM_START_RE.match(stem):
        stem = _STEM_PREFIX + stem
    timestamp = _next_timestamp()
    if path.suffix:
        return f'{stem}-{timestamp}{path.suffix}'
    return f'{stem}-{timestamp}'


def validate_upload(
    filename: str,
    size_bytes: int,
    allowed_extensions: Collection[str],
    max_size_kb: int,
) -> None:
    """Validate an upload's extension and size.

    Args:
        filename: Client-side filename.
        size_bytes: Upload size in bytes.
        allowed_extensions: Lowercase extensions without dot.
        max_size_kb: Maximum size in kilobytes.

    Raises:
        ValidationError: If the type is not allowed or the file is too big.
    """
    extension = get_file_extension(filename)
    if extension not in allowed_extensions:
        raise ValidationError(
            'File type not allowed. Allowed types: {0}'.format(
                ', '.join(allowed_extensions),
            ),
        )

    max_size_bytes = max_size_kb * _BYTES_PER_KB
    if size_bytes > max_size_bytes:
        max_size_mb = round(max_size_bytes / _BYTES_PER_KB / _BYTES_PER_KB, 2)
        raise ValidationError(
            f'File size exceeds maximum allowed size of {max_size_mb}MB.',
        )
