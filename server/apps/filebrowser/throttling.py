"""Per-client request throttling for file browser endpoints.

Fixed one-minute windows counted in Django's cache. Clients are
identified by user id when authenticated, by IP address otherwise.
"""

import functools
import logging
import time
from collections.abc import Callable
from typing import Final

from django.conf import settings
from django.core.cache import cache
from django.http import HttpRequest, HttpResponse, JsonResponse

logger = logging.getLogger(__name__)

DEFAULT_SCOPE: Final = 'default'
UPLOAD_SCOPE: Final = 'upload'

_WINDOW_SECONDS: Final = 60
_TOO_MANY_REQUESTS: Final = 429
_DEFAULT_RATES: Final = {DEFAULT_SCOPE: 60, UPLOAD_SCOPE: 10}

_View = Callable[..., HttpResponse]


def get_rate(scope: str) -> int:
    """Get allowed requests per minute for a throttle scope.

    Args:
        scope: Throttle scope name.

    Returns:
        Rate from settings, falling back to the built-in rates.
    """
    rates = getattr(settings, 'FILEBROWSER_THROTTLE_RATES', _DEFAULT_RATES)
    return rates.get(scope, _DEFAULT_RATES[DEFAULT_SCOPE])


def get_client_ip(request: HttpRequest) -> str:
    """Get the client address as seen by Django."""
    return request.META.get('REMOTE_ADDR', '')


def get_client_ident(request: HttpRequest) -> str:
    """Identify the throttled client: user id or IP address."""
    user = getattr(request, 'user', None)
    if user is not None and user.is_authenticated:
        return f'user:{user.pk}'
    return f'ip:{get_client_ip(request)}'


def _register_hit(scope: str, ident: str) -> tuple[int, int]:
    """Count a request in the current window.

    Returns:
        Tuple of (requests in window, seconds until the window resets).
    """
    now = int(time.time())
    window = now // _WINDOW_SECONDS
    cache_key = f'filebrowser:throttle:{scope}:{ident}:{window}'

    cache.add(cache_key, 0, _WINDOW_SECONDS)
    try:
        hits = cache.incr(cache_key)
    except ValueError:
        # Window expired between add() and incr()
        cache.set(cache_key, 1, _WINDOW_SECONDS)
        hits = 1

    retry_after = (window + 1) * _WINDOW_SECONDS - now
    return hits, retry_after


def throttle(scope: str = DEFAULT_SCOPE) -> Callable[[_View], _View]:
    """Limit a view to the scope's rate per client per minute.

    Args:
        scope: Throttle scope name in FILEBROWSER_THROTTLE_RATES.

    Returns:
        View decorator answering 429 once the rate is exceeded.
    """

    def decorator(view_func: _View) -> _View:
        @functools.wraps(view_func)
        def wrapped_view(request: HttpRequest, *args, **kwargs) -> HttpResponse:
            rate = get_rate(scope)
            ident = get_client_ident(request)
            hits, retry_after = _register_hit(scope, ident)
            if hits <= rate:
                return view_func(request, *args, **kwargs)

            logger.info(
                'Rate limit exceeded: client=%s scope=%s limit=%d retry_after=%d',
                ident,
                scope,
                rate,
                retry_after,
            )
            response = JsonResponse(
                {
                    'success': False,
                    'message': 'Too many requests. Please slow down.',
                    'error_type': 'rate_limited',
                    'retryable': True,
                },
                status=_TOO_MANY_REQUESTS,
            )
            response.headers['Retry-After'] = str(retry_after)
            return response

        return wrapped_view

    return decorator
