"""Resolution and validation of named storage disks.

A disk is an entry of Django's ``STORAGES`` setting whose backend is an
S3-compatible storage. Misconfiguration is reported before any network
call and is never retried.
"""

import ipaddress
import logging
from typing import Any, Final
from urllib.parse import urlsplit

from django.conf import settings
from django.core.files.storage import storages
from django.utils.module_loading import import_string
from storages.backends.s3 import S3Storage

from server.apps.filebrowser.exceptions import StorageConfigurationError
from server.apps.filebrowser.infrastructure.storage import ObjectStoreGateway

logger = logging.getLogger(__name__)

_PATH_STYLE: Final = 'path'
_LOCAL_HOSTNAMES: Final = frozenset(('localhost', 'host.docker.internal'))

# Providers whose endpoints only work with path-style addressing
_PATH_STYLE_HOST_MARKERS: Final = ('minio',)
_PATH_STYLE_HOST_SUFFIXES: Final = ('.supabase.co', '.supabase.in')

_ENDPOINT_SCHEMES: Final = frozenset(('http', 'https'))


def is_configured(disk: str) -> bool:
    """Check whether a disk name appears in the STORAGES setting."""
    return disk in settings.STORAGES


def get_disk_config(disk: str) -> dict[str, Any]:
    """Get the STORAGES entry for a disk.

    Args:
        disk: Disk name.

    Returns:
        Storage configuration with BACKEND and OPTIONS keys.

    Raises:
        StorageConfigurationError: If the disk is not configured.
    """
    disk_config = settings.STORAGES.get(disk)
    if not disk_config:
        raise StorageConfigurationError(
            f'Storage disk "{disk}" is not configured.',
            disk=disk,
        )
    return disk_config


def _is_well_formed_url(url: str) -> bool:
    if any(char.isspace() for char in url):
        return False

    parts = urlsplit(url)
    try:
        parts.port  # noqa: B018
    except ValueError:
        return False
    return parts.scheme in _ENDPOINT_SCHEMES and bool(parts.hostname)


def _requires_path_style(hostname: str) -> bool:
    if hostname in _LOCAL_HOSTNAMES:
        return True

    try:
        ipaddress.ip_address(hostname)
    except ValueError:
        pass
    else:
        return True

    if any(marker in hostname for marker in _PATH_STYLE_HOST_MARKERS):
        return True
    return hostname.endswith(_PATH_STYLE_HOST_SUFFIXES)


def _validate_endpoint(disk: str, options: dict[str, Any]) -> None:
    endpoint_url = options.get('endpoint_url')
    if not endpoint_url:
        return

    if not _is_well_formed_url(endpoint_url):
        raise StorageConfigurationError(
            f'Storage disk "{disk}" has a malformed endpoint URL.',
            disk=disk,
        )

    hostname = (urlsplit(endpoint_url).hostname or '').lower()
    addressing_style = options.get('addressing_style')
    if _requires_path_style(hostname) and addressing_style != _PATH_STYLE:
        raise StorageConfigurationError(
            f'Storage disk "{disk}" points at {hostname}, which requires '
            "path-style addressing (set addressing_style to 'path').",
            disk=disk,
        )


def validate_disk(disk: str) -> dict[str, Any]:
    """Validate a disk's configuration without touching the network.

    Args:
        disk: Disk name.

    Returns:
        The validated STORAGES entry.

    Raises:
        StorageConfigurationError: If the disk is missing, not S3-backed,
            or its endpoint is malformed or misconfigured.
    """
    disk_config = get_disk_config(disk)

    backend_path = disk_config.get('BACKEND', '')
    try:
        backend = import_string(backend_path)
    except ImportError as error:
        raise StorageConfigurationError(
            f'Storage disk "{disk}" uses an unknown backend: {backend_path}',
            disk=disk,
        ) from error

    if not (isinstance(backend, type) and issubclass(backend, S3Storage)):
        raise StorageConfigurationError(
            f'Storage disk "{disk}" is not an S3-compatible storage.',
            disk=disk,
        )

    _validate_endpoint(disk, disk_config.get('OPTIONS', {}))
    return disk_config


def resolve_gateway(disk: str) -> ObjectStoreGateway:
    """Validate a disk and build a fresh storage instance for it.

    Args:
        disk: Disk name.

    Returns:
        Object store gateway bound to the disk's bucket.

    Raises:
        StorageConfigurationError: If the disk configuration is invalid.
    """
    disk_config = validate_disk(disk)
    logger.debug('Resolved storage disk: %s', disk)
    return storages.create_storage(disk_config)
