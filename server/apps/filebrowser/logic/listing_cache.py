"""Per-disk cache of whole-disk listings and folder trees.

Backed by Django's cache framework. Entries are keyed by disk and
operation and dropped by every successful mutation on the disk.
"""

import hashlib
import logging
from typing import Any, Final

from django.conf import settings
from django.core.cache import cache

logger = logging.getLogger(__name__)

LISTING_OPERATION: Final = 'listing'
TREE_OPERATION: Final = 'tree'

_CACHED_OPERATIONS: Final = (LISTING_OPERATION, TREE_OPERATION)
_DEFAULT_TTL: Final = 300  # 5 minutes


def get_cache_ttl() -> int:
    """Get listing cache lifetime in seconds.

    Returns:
        TTL from settings or default of 300.
    """
    return getattr(settings, 'FILEBROWSER_CACHE_TTL', _DEFAULT_TTL)


def is_cache_enabled() -> bool:
    """Check whether listing caching is switched on."""
    return getattr(settings, 'FILEBROWSER_CACHE_ENABLED', True)


def make_cache_key(disk: str, operation: str) -> str:
    """Build the cache key for a disk and operation.

    Args:
        disk: Disk name.
        operation: 'listing' or 'tree'.

    Returns:
        Cache key safe for any cache backend.
    """
    digest = hashlib.md5(disk.encode(), usedforsecurity=False).hexdigest()
    return f'filebrowser:{operation}:{digest}'


def get_cached(disk: str, operation: str) -> Any | None:
    """Get a cached result, None on a miss or when caching is off."""
    if not is_cache_enabled():
        return None
    return cache.get(make_cache_key(disk, operation))


def store(disk: str, operation: str, listing_result: Any) -> None:
    """Cache a freshly computed result for the configured TTL."""
    if not is_cache_enabled():
        return
    cache.set(make_cache_key(disk, operation), listing_result, get_cache_ttl())


def invalidate(disk: str) -> None:
    """Drop the listing and tree entries of a disk.

    Args:
        disk: Disk name.
    """
    cache.delete_many([
        make_cache_key(disk, operation)
        for operation in _CACHED_OPERATIONS
    ])
    logger.debug('Cleared listing cache for disk: %s', disk)
