"""Bounded retries with exponential backoff for object store calls.

Classification relies on botocore's exception classes and on the
structured error codes of S3 responses, not on message text, except for
name-resolution failures which urllib3 only reports through the wrapped
socket error.
"""

import logging
import socket
import time
from collections.abc import Callable
from typing import Final, TypeVar, final

from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    InvalidEndpointConfigurationError,
    InvalidRegionError,
    InvalidS3AddressingStyleError,
    NoCredentialsError,
    PartialCredentialsError,
    ReadTimeoutError,
    SSLError,
)
from urllib3.exceptions import NameResolutionError

logger = logging.getLogger(__name__)

_ResultT = TypeVar('_ResultT')

DEFAULT_BASE_DELAY_MS: Final = 100

# Attempt ceilings used by the catalog service
UPLOAD_ATTEMPTS: Final = 3
DEFAULT_ATTEMPTS: Final = 2

STORE_ERRORS: Final = (BotoCoreError, ClientError)

_CONFIGURATION_ERRORS: Final = (
    InvalidEndpointConfigurationError,
    InvalidRegionError,
    InvalidS3AddressingStyleError,
    NoCredentialsError,
    PartialCredentialsError,
)

_TRANSPORT_ERRORS: Final = (
    EndpointConnectionError,
    ConnectTimeoutError,
    ReadTimeoutError,
    ConnectionClosedError,
    SSLError,
)

# S3 error codes that describe a temporary condition on the server side
_TRANSIENT_ERROR_CODES: Final = frozenset((
    'InternalError',
    'RequestTimeout',
    'RequestTimeTooSkewed',
    'ServiceUnavailable',
    'SlowDown',
    'Throttling',
    'ThrottlingException',
))

_TRANSIENT_CLIENT_STATUSES: Final = frozenset((408, 429))
_CLIENT_ERROR_STATUS: Final = 400
_SERVER_ERROR_STATUS: Final = 500

_DNS_FAILURE_MARKERS: Final = (
    'name or service not known',
    'nodename nor servname',
    'getaddrinfo failed',
    'temporary failure in name resolution',
    'failed to resolve',
)


def _is_dns_failure(error: EndpointConnectionError) -> bool:
    cause = error.kwargs.get('error')
    if isinstance(cause, (NameResolutionError, socket.gaierror)):
        return True
    message = str(cause or error).lower()
    return any(marker in message for marker in _DNS_FAILURE_MARKERS)


def is_configuration_error(error: BaseException) -> bool:
    """Check whether an error can only be fixed by changing configuration.

    Args:
        error: Exception raised by a storage call.

    Returns:
        True for DNS failures, malformed endpoints and credential problems.
    """
    if isinstance(error, _CONFIGURATION_ERRORS):
        return True

    if isinstance(error, EndpointConnectionError):
        return _is_dns_failure(error)

    # botocore rejects a malformed endpoint_url with a bare ValueError
    return isinstance(error, ValueError) and str(error).startswith(
        'Invalid endpoint',
    )


def is_refusal(error: BaseException) -> bool:
    """Check whether the store answered a request with a definitive no.

    Refusals are 4xx answers other than timeouts and throttling, e.g.
    ``NoSuchKey`` or ``AccessDenied``. They are still retried, but once
    attempts run out they describe the request, not the connection.

    Args:
        error: Exception raised by a storage call.

    Returns:
        True for a ClientError carrying a non-transient 4xx status.
    """
    if not isinstance(error, ClientError):
        return False

    error_code = error.response.get('Error', {}).get('Code', '')
    status = error.response.get('ResponseMetadata', {}).get('HTTPStatusCode', 0)

    if error_code in _TRANSIENT_ERROR_CODES:
        return False
    if status >= _SERVER_ERROR_STATUS or status in _TRANSIENT_CLIENT_STATUSES:
        return False
    return status >= _CLIENT_ERROR_STATUS


def is_retryable(error: BaseException) -> bool:
    """Check whether retrying a failed storage call may succeed.

    Args:
        error: Exception raised by a storage call.

    Returns:
        False for configuration errors and anything not raised by the
        store. Every other store error, including error responses and
        transport failures, is retried.
    """
    if is_configuration_error(error):
        return False

    if isinstance(error, (ClientError, *_TRANSPORT_ERRORS)):
        return True

    # Unclassified botocore errors are treated as transient
    return isinstance(error, BotoCoreError)


@final
class RetryPolicy:
    """Runs a storage operation with bounded retries and backoff.

    The delay before retry ``n`` is ``base_delay_ms * 2 ** (n - 1)``
    milliseconds (100, 200, 400, ... by default). The sleep blocks the
    calling thread.
    """

    def __init__(
        self,
        base_delay_ms: int = DEFAULT_BASE_DELAY_MS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize retry policy.

        Args:
            base_delay_ms: Delay before the first retry, in milliseconds.
            sleep: Function used to wait, takes seconds.
        """
        self._base_delay_ms = base_delay_ms
        self._sleep = sleep

    def backoff_delay(self, attempt: int) -> float:
        """Get the delay after a failed attempt, in seconds.

        Args:
            attempt: Number of the attempt that just failed (1-based).

        Returns:
            Seconds to wait before the next attempt.
        """
        return self._base_delay_ms * 2 ** (attempt - 1) / 1000

    def execute(
        self,
        operation: Callable[[], _ResultT],
        max_attempts: int,
        operation_name: str,
    ) -> _ResultT:
        """Run operation, retrying transient store failures.

        Args:
            operation: Zero-argument callable performing the store call.
            max_attempts: Total number of attempts allowed.
            operation_name: Name used in log messages.

        Returns:
            Whatever the operation returns.

        Raises:
            Exception: The last error, once it is not retryable or the
                attempts are exhausted.
        """
        attempt = 1
        while True:
            try:
                return operation()
            except STORE_ERRORS as error:
                if not is_retryable(error) or attempt >= max_attempts:
                    raise

                delay = self.backoff_delay(attempt)
                logger.warning(
                    'Storage operation %s failed, retrying (%d/%d) in %d ms: %s',
                    operation_name,
                    attempt,
                    max_attempts,
                    delay * 1000,
                    error,
                )
                self._sleep(delay)
                attempt += 1
