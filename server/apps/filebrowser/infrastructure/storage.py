"""Object store gateway and its S3-compatible implementation."""

import logging
from datetime import datetime
from typing import Final, Protocol, final, override

from botocore.exceptions import ClientError
from storages.backends.s3 import S3Storage

from server.apps.filebrowser.infrastructure.metadata import detect_mime_type

logger = logging.getLogger(__name__)

_PATH_SEPARATOR: Final = '/'
_PUBLIC_ACL: Final = 'public-read'
_NOT_FOUND_STATUS: Final = 404


class ObjectStoreGateway(Protocol):
    """Capabilities the catalog service needs from an object store.

    Keys are flat strings. Listing methods return full keys, folder
    names in the subfolder listing are returned as full prefixes without
    the trailing separator.
    """

    bucket_name: str
    region_name: str | None

    def put_object(
        self,
        key: str,
        content: bytes,
        visibility: str = 'private',
    ) -> bool:
        """Write an object."""

    def delete_object(self, key: str) -> bool:
        """Delete an object."""

    def exists(self, name: str) -> bool:
        """Check if an object exists."""

    def size(self, name: str) -> int:
        """Get object size in bytes."""

    def last_modified(self, key: str) -> datetime:
        """Get object modification time."""

    def mime_type(self, key: str) -> str:
        """Get object content type."""

    def list_all_keys(self, prefix: str = '') -> list[str]:
        """List every key under a prefix, recursively."""

    def list_immediate_files(self, prefix: str) -> list[str]:
        """List keys directly inside a folder."""

    def list_immediate_subfolders(self, prefix: str) -> list[str]:
        """List folders directly inside a folder."""

    def copy_object(self, source: str, destination: str) -> bool:
        """Copy an object server-side."""

    def move_object(self, source: str, destination: str) -> bool:
        """Move an object (copy, then delete the source)."""

    def signed_url(self, key: str, ttl_seconds: int) -> str:
        """Generate a time-limited read URL."""


def _folder_prefix(prefix: str) -> str:
    stripped = prefix.strip(_PATH_SEPARATOR)
    if not stripped:
        return ''
    return stripped + _PATH_SEPARATOR


@final
class FileStorage(S3Storage):
    """S3 storage backend exposing the gateway capabilities.

    Extends django-storages S3Storage with:
    - Key-level reads, writes and signed URLs without Django's name
      mangling
    - Full-key folder listings
    - Logging of every mutation
    """

    @override
    def exists(self, name: str) -> bool:
        """Check object existence with a HEAD request.

        Args:
            name: Object key.

        Returns:
            True if the object exists, False on a 404 answer.

        Raises:
            ClientError: For any other error response.
        """
        try:
            self.connection.meta.client.head_object(
                Bucket=self.bucket_name,
                Key=name,
            )
        except ClientError as error:
            status = error.response.get('ResponseMetadata', {}).get(
                'HTTPStatusCode',
            )
            if status == _NOT_FOUND_STATUS:
                return False
            raise
        return True

    def put_object(
        self,
        key: str,
        content: bytes,
        visibility: str = 'private',
    ) -> bool:
        """Write bytes under an exact key, overwriting any existing object.

        Args:
            key: Object key.
            content: Object body.
            visibility: 'private' inherits the bucket ACL, 'public' makes
                the object world-readable.

        Returns:
            True once the object is stored.
        """
        params: dict[str, object] = {
            'Body': content,
            'ContentType': detect_mime_type(key),
        }
        if visibility == 'public':
            params['ACL'] = _PUBLIC_ACL

        logger.info('Writing object: %s (%d bytes)', key, len(content))
        self.bucket.Object(key).put(**params)
        return True

    def delete_object(self, key: str) -> bool:
        """Delete object from S3 with logging.

        Args:
            key: Object key to delete.

        Returns:
            True once the delete request was accepted.
        """
        logger.info('Deleting object: %s', key)
        self.bucket.Object(key).delete()
        return True

    @override
    def size(self, name: str) -> int:
        """Get object size from a HEAD request on the exact key.

        Args:
            name: Object key.

        Returns:
            Size in bytes.

        Raises:
            ClientError: If the object is missing or unreadable.
        """
        return self.bucket.Object(name).content_length

    def last_modified(self, key: str) -> datetime:
        """Get object modification time."""
        return self.bucket.Object(key).last_modified

    def mime_type(self, key: str) -> str:
        """Get stored content type, guessed from the key if missing.

        Args:
            key: Object key.

        Returns:
            MIME type string.
        """
        content_type = self.bucket.Object(key).content_type
        return content_type or detect_mime_type(key)

    def list_all_keys(self, prefix: str = '') -> list[str]:
        """List every key under a prefix, in the store's (lexical) order.

        Args:
            prefix: Folder path, '' for the whole bucket.

        Returns:
            Full object keys.
        """
        objects = self.bucket.objects.filter(Prefix=_folder_prefix(prefix))
        return [summary.key for summary in objects]

    def list_immediate_files(self, prefix: str) -> list[str]:
        """List keys directly inside a folder.

        Args:
            prefix: Folder path, '' for the root.

        Returns:
            Full object keys of direct children.
        """
        _, files = self._list_level(_folder_prefix(prefix))
        return files

    def list_immediate_subfolders(self, prefix: str) -> list[str]:
        """List folders directly inside a folder.

        Args:
            prefix: Folder path, '' for the root.

        Returns:
            Full folder paths without trailing separator.
        """
        folders, _ = self._list_level(_folder_prefix(prefix))
        return folders

    def _list_level(self, folder_prefix: str) -> tuple[list[str], list[str]]:
        """List one level below a prefix using the '/' delimiter.

        Args:
            folder_prefix: Prefix ending with '/', or '' for the root.

        Returns:
            Tuple of (folder paths, object keys), both in listing order.
        """
        paginator = self.connection.meta.client.get_paginator(
            'list_objects_v2',
        )
        pages = paginator.paginate(
            Bucket=self.bucket_name,
            Delimiter=_PATH_SEPARATOR,
            Prefix=folder_prefix,
        )

        folders: list[str] = []
        files: list[str] = []
        for page in pages:
            folders.extend(
                entry['Prefix'].rstrip(_PATH_SEPARATOR)
                for entry in page.get('CommonPrefixes', ())
            )
            files.extend(
                entry['Key']
                for entry in page.get('Contents', ())
                if entry['Key'] != folder_prefix
            )
        return folders, files

    def copy_object(self, source: str, destination: str) -> bool:
        """Copy an object server-side.

        Args:
            source: Source key.
            destination: Destination key.

        Returns:
            True once the copy completed.
        """
        logger.info('Copying object: %s -> %s', source, destination)
        copy_source = {
            'Bucket': self.bucket_name,
            'Key': source,
        }
        self.bucket.copy(copy_source, destination)
        return True

    def move_object(self, source: str, destination: str) -> bool:
        """Move/rename an object in S3 storage.

        S3 doesn't support native rename, so this performs a server-side
        copy followed by deletion of the source.

        Note: This operation is not atomic. If copy succeeds but delete
        fails, both objects will exist and the error propagates.

        Args:
            source: Source key.
            destination: Destination key.

        Returns:
            True once both steps completed.
        """
        logger.info('Moving object: %s -> %s', source, destination)
        self.copy_object(source, destination)
        return self.delete_object(source)

    def signed_url(self, key: str, ttl_seconds: int) -> str:
        """Generate a presigned GET URL.

        Args:
            key: Object key.
            ttl_seconds: Lifetime of the URL.

        Returns:
            Presigned URL string.
        """
        return self.connection.meta.client.generate_presigned_url(
            'get_object',
            Params={'Bucket': self.bucket_name, 'Key': key},
            ExpiresIn=ttl_seconds,
        )
