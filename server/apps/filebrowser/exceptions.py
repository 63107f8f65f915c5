"""Exceptions for filebrowser app.

Path, disk and upload validation problems are reported with Django's
``ValidationError``. The classes below cover failures of the object store
itself, split by whether retrying can help.
"""


class StorageError(Exception):
    """Base class for object store failures surfaced by the catalog."""

    def __init__(self, message: str, disk: str, operation: str = '') -> None:
        """Initialize StorageError.

        Args:
            message: Human-readable message, safe to return to clients.
            disk: Name of the storage disk involved.
            operation: Name of the failed operation, for logs.
        """
        self.disk = disk
        self.operation = operation
        super().__init__(message)


class StorageConfigurationError(StorageError):
    """Raised when a disk can never work without a configuration change.

    Covers unconfigured disks, non-S3 backends, malformed endpoints,
    provider-specific addressing mistakes, DNS failures and missing
    credentials. Never retried.
    """


class StorageConnectionError(StorageError):
    """Raised when transient store failures outlast the local retries."""


class StorageOperationError(StorageError):
    """Raised when the store answered but refused the request.

    Typical causes are a missing source object or denied access.
    """
