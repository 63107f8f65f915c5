"""Shared fixtures for filebrowser app tests."""

from datetime import UTC, datetime
from typing import Final

import boto3
import pytest
from botocore.exceptions import ClientError
from django.core.cache import cache
from moto import mock_aws

from server.apps.filebrowser.infrastructure.metadata import detect_mime_type
from server.apps.filebrowser.infrastructure.retry import RetryPolicy
from server.apps.filebrowser.logic.catalog import FileCatalogService

TEST_BUCKET: Final = 'filebrowser-test'
TEST_DISK: Final = 's3'

_FIXED_MTIME: Final = datetime(2024, 5, 1, 12, 30, tzinfo=UTC)


def client_error(code: str, status: int, operation: str = 'CopyObject'):
    """Build a botocore ClientError like S3 returns it.

    Returns:
        ClientError with error code and HTTP status.
    """
    return ClientError(
        {
            'Error': {'Code': code, 'Message': code},
            'ResponseMetadata': {'HTTPStatusCode': status},
        },
        operation,
    )


class FakeGateway:
    """In-memory object store with injectable failures.

    ``failures`` maps (method, key) to an exception raised on every call,
    ``calls`` records (method, key) of every call in order.
    """

    bucket_name = 'fake-bucket'
    region_name = 'us-east-1'

    def __init__(self, keys=()):
        self.objects: dict[str, bytes] = {key: b'x' for key in keys}
        self.failures: dict[tuple[str, str], Exception] = {}
        self.calls: list[tuple[str, str]] = []

    def _record(self, method: str, key: str) -> None:
        self.calls.append((method, key))
        error = self.failures.get((method, key))
        if error is not None:
            raise error

    def _sorted_keys(self) -> list[str]:
        return sorted(self.objects)

    def mutations(self) -> list[tuple[str, str]]:
        """Calls that change the store."""
        mutating = {'put_object', 'delete_object', 'copy_object', 'move_object'}
        return [call for call in self.calls if call[0] in mutating]

    def put_object(self, key, content, visibility='private'):
        self._record('put_object', key)
        self.objects[key] = content
        return True

    def delete_object(self, key):
        self._record('delete_object', key)
        self.objects.pop(key, None)
        return True

    def exists(self, name):
        self._record('exists', name)
        return name in self.objects

    def size(self, name):
        self._record('size', name)
        return len(self.objects[name])

    def last_modified(self, key):
        self._record('last_modified', key)
        return _FIXED_MTIME

    def mime_type(self, key):
        self._record('mime_type', key)
        return detect_mime_type(key)

    def list_all_keys(self, prefix=''):
        self._record('list_all_keys', prefix)
        folder_prefix = f'{prefix}/' if prefix else ''
        return [
            key for key in self._sorted_keys() if key.startswith(folder_prefix)
        ]

    def _level(self, prefix):
        folder_prefix = f'{prefix}/' if prefix else ''
        folders: list[str] = []
        files: list[str] = []
        for key in self._sorted_keys():
            if not key.startswith(folder_prefix):
                continue
            rest = key[len(folder_prefix):]
            if '/' in rest:
                folder = folder_prefix + rest.split('/', 1)[0]
                if folder not in folders:
                    folders.append(folder)
            elif rest:
                files.append(key)
        return folders, files

    def list_immediate_files(self, prefix):
        self._record('list_immediate_files', prefix)
        return self._level(prefix)[1]

    def list_immediate_subfolders(self, prefix):
        self._record('list_immediate_subfolders', prefix)
        return self._level(prefix)[0]

    def copy_object(self, source, destination):
        self._record('copy_object', source)
        if source not in self.objects:
            raise client_error('NoSuchKey', 404)
        self.objects[destination] = self.objects[source]
        return True

    def move_object(self, source, destination):
        self._record('move_object', source)
        if source not in self.objects:
            raise client_error('NoSuchKey', 404)
        self.objects[destination] = self.objects.pop(source)
        return True

    def signed_url(self, key, ttl_seconds):
        self._record('signed_url', key)
        return f'https://fake-bucket.example.com/{key}?expires={ttl_seconds}'


@pytest.fixture(autouse=True)
def _filebrowser_settings(settings):
    """Point the s3 disk at the moto bucket and use default limits."""
    settings.STORAGES = {
        TEST_DISK: {
            'BACKEND': (
                'server.apps.filebrowser.infrastructure.storage.FileStorage'
            ),
            'OPTIONS': {
                'bucket_name': TEST_BUCKET,
                'access_key': 'testing',
                'secret_key': 'testing',
                'region_name': 'us-east-1',
                'signature_version': 's3v4',
                'file_overwrite': False,
                'default_acl': None,
            },
        },
        'staticfiles': {
            'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
        },
    }
    settings.FILEBROWSER_DEFAULT_DISK = TEST_DISK
    settings.FILEBROWSER_CACHE_ENABLED = True
    settings.FILEBROWSER_CACHE_TTL = 300
    settings.FILEBROWSER_THROTTLE_RATES = {'default': 60, 'upload': 10}
    return settings


@pytest.fixture(autouse=True)
def _clear_cache():
    """Start and end every test with an empty cache."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def mock_s3():
    """Mock S3 service with filebrowser-test bucket.

    Yields:
        boto3 S3 resource with filebrowser-test bucket created.
    """
    with mock_aws():
        conn = boto3.resource('s3', region_name='us-east-1')
        conn.create_bucket(Bucket=TEST_BUCKET)
        yield conn


@pytest.fixture
def put_keys(mock_s3):
    """Write objects straight into the mocked bucket.

    Returns:
        Function taking keys (and optional body) to create.
    """

    def factory(*keys: str, body: bytes = b'content') -> None:
        for key in keys:
            mock_s3.Object(TEST_BUCKET, key).put(Body=body)

    return factory


@pytest.fixture
def sleeps():
    """Delays requested by the retry policy, in seconds."""
    return []


@pytest.fixture
def retry_policy(sleeps):
    """Retry policy that records delays instead of sleeping."""
    return RetryPolicy(sleep=sleeps.append)


@pytest.fixture
def s3_service(mock_s3, retry_policy):
    """Catalog service backed by the moto bucket."""
    return FileCatalogService(retry_policy=retry_policy)


@pytest.fixture
def fake_gateway():
    """Empty in-memory gateway; tests fill ``objects`` as needed."""
    return FakeGateway()


@pytest.fixture
def fake_service(fake_gateway, retry_policy):
    """Catalog service wired to the in-memory gateway."""
    return FileCatalogService(
        gateway_resolver=lambda disk: fake_gateway,
        retry_policy=retry_policy,
    )


@pytest.fixture
def make_client_error():
    """Factory for S3-style ClientError instances."""
    return client_error
