"""Sanitization of user-supplied object store paths.

Two independent layers guard every path:

- ``is_malicious`` runs at the HTTP boundary and rejects hostile input
  with a validation error before anything touches the store.
- ``sanitize`` runs again inside the catalog service on every path, even
  ones that already passed the boundary check, so no code path can hand
  an unsafe key to the store.

The layers overlap on purpose and must stay separate functions.
"""

import re
from typing import Final

_PATH_SEPARATOR: Final = '/'
_NULL_BYTE: Final = '\x00'

_DRIVE_LETTER_RE: Final = re.compile(r'^[A-Za-z]:\\')
_REPEATED_SLASHES_RE: Final = re.compile(r'/+')

# Checked after URL decoding upstream, catches double-encoded payloads
_SUSPICIOUS_SEQUENCES: Final = (
    '../',
    '..\\',
    _NULL_BYTE,
    '%00',
    '%2e%2e',
)


def _has_traversal_shape(path: str) -> bool:
    if '..' in path or '\\' in path:
        return True
    return path.startswith(_PATH_SEPARATOR) or bool(_DRIVE_LETTER_RE.match(path))


def is_malicious(raw_path: str) -> bool:
    """Check a raw path for traversal and injection patterns.

    Args:
        raw_path: Path exactly as received from the client.

    Returns:
        True if the path must be rejected outright.
    """
    if _NULL_BYTE in raw_path or '%00' in raw_path:
        return True

    return _has_traversal_shape(raw_path)


def sanitize(raw_path: str) -> str:
    """Normalize a path into a safe object key prefix.

    Never raises. An empty string is both the root folder and the
    rejection value, callers that need a concrete object must treat
    it as invalid.

    Args:
        raw_path: Path from the client or from another service call.

    Returns:
        Normalized path (e.g., 'invoices/2024'), or '' if rejected.
    """
    path = raw_path.replace(_NULL_BYTE, '')
    if _has_traversal_shape(path):
        return ''

    path = _REPEATED_SLASHES_RE.sub(_PATH_SEPARATOR, path)
    path = path.strip()

    if not path:
        return ''

    if not path[0].isascii() or not path[0].isalnum():
        return ''

    lowered = path.lower()
    if any(sequence in lowered for sequence in _SUSPICIOUS_SEQUENCES):
        return ''

    return path


def sanitize_name(raw_name: str) -> str:
    """Sanitize a single path component such as a rename target.

    Args:
        raw_name: New file or folder name.

    Returns:
        Sanitized name, or '' if invalid or containing a separator.
    """
    name = sanitize(raw_name)
    if _PATH_SEPARATOR in name:
        return ''
    return name
