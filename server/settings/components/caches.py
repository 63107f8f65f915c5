"""Cache configuration.

Listing results and request throttle counters live here.
"""

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'filebrowser',
    },
}
