"""File catalog: browsing and managing objects on S3-compatible disks.

Every public operation follows the same steps: validate the disk
configuration, sanitize the path(s), run the store call(s) through the
retry policy, drop the disk's listing cache on success, return a typed
result.

Listings degrade to empty results when the store is unreachable.
Mutations report ``False`` when the store refuses them and raise when it
cannot be reached.

Folder operations touch one key at a time and are not atomic: if a key
fails halfway through, the keys already moved, copied or deleted stay
that way and the operation reports failure. Concurrent operations on
overlapping folders can race.
"""

import functools
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Final, TypeVar, final

from botocore.exceptions import BotoCoreError, ClientError
from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.files.uploadedfile import UploadedFile

from server.apps.filebrowser.exceptions import (
    StorageConfigurationError,
    StorageConnectionError,
    StorageOperationError,
)
from server.apps.filebrowser.infrastructure.disks import resolve_gateway
from server.apps.filebrowser.infrastructure.metadata import (
    FOLDER_MARKER_NAME,
    detect_mime_type,
    extract_filename,
    extract_folder_path,
    format_timestamp,
    generate_unique_filename,
    get_file_type,
    is_hidden_file,
    join_path,
)
from server.apps.filebrowser.infrastructure.retry import (
    DEFAULT_ATTEMPTS,
    UPLOAD_ATTEMPTS,
    RetryPolicy,
    is_configuration_error,
    is_refusal,
    is_retryable,
)
from server.apps.filebrowser.infrastructure.storage import ObjectStoreGateway
from server.apps.filebrowser.logic import listing_cache
from server.apps.filebrowser.logic.folder_projection import (
    FolderTreeNode,
    Pagination,
    VirtualFolder,
    build_tree,
    paginate,
    project,
)
from server.apps.filebrowser.logic.path_sanitizer import sanitize, sanitize_name

logger = logging.getLogger(__name__)

_ResultT = TypeVar('_ResultT')

_PATH_SEPARATOR: Final = '/'
_UNKNOWN_FILE_TYPE: Final = 'unknown'
_DEFAULT_URL_EXPIRATION: Final = 3600
_DEFAULT_PER_PAGE: Final = 50

_TRANSLATED_ERRORS: Final = (BotoCoreError, ClientError, ValueError)
_DEGRADABLE_ERRORS: Final = (StorageConnectionError, StorageOperationError)

_CONNECTION_MESSAGE: Final = (
    'Unable to reach storage. Please check your connection and try again.'
)
_CONFIGURATION_MESSAGE: Final = (
    'Storage is misconfigured. Please contact an administrator.'
)
_REFUSED_MESSAGE: Final = 'Storage refused the request.'

_DIRECTORY_ITEM: Final = 'directory'
_FILE_ITEM: Final = 'file'


@final
@dataclass(frozen=True)
class FileEntry:
    """File as shown in listings."""

    path: str
    name: str
    size: int
    type: str
    last_modified: str | None

    def as_dict(self) -> dict[str, Any]:
        """Serialize for JSON responses."""
        return {
            'path': self.path,
            'name': self.name,
            'size': self.size,
            'type': self.type,
            'last_modified': self.last_modified,
        }


@final
@dataclass(frozen=True)
class DirectoryEntry:
    """Immediate subfolder in a folder listing."""

    name: str
    path: str

    def as_dict(self) -> dict[str, Any]:
        """Serialize for JSON responses."""
        return {'name': self.name, 'path': self.path}


@final
@dataclass(frozen=True)
class FolderContents:
    """One page of a folder listing, directories before files."""

    files: list[FileEntry]
    directories: list[DirectoryEntry]
    pagination: Pagination

    def as_dict(self) -> dict[str, Any]:
        """Serialize for JSON responses."""
        return {
            'files': [entry.as_dict() for entry in self.files],
            'directories': [entry.as_dict() for entry in self.directories],
            'pagination': self.pagination.as_dict(),
        }


@final
@dataclass(frozen=True)
class FolderListing:
    """Whole-disk listing: every virtual folder plus root-level files."""

    folders: list[VirtualFolder]
    files: list[FileEntry]

    def as_dict(self) -> dict[str, Any]:
        """Serialize for JSON responses."""
        return {
            'folders': [folder.as_dict() for folder in self.folders],
            'files': [entry.as_dict() for entry in self.files],
        }


@final
@dataclass(frozen=True)
class FileMetadata:
    """Stored object metadata used by previews."""

    exists: bool
    size: int
    last_modified: datetime | None
    mime_type: str | None

    @classmethod
    def missing(cls) -> 'FileMetadata':
        """Metadata of an object that does not exist or cannot be read."""
        return cls(exists=False, size=0, last_modified=None, mime_type=None)

    def as_dict(self) -> dict[str, Any]:
        """Serialize for JSON responses."""
        return {
            'exists': self.exists,
            'size': self.size,
            'last_modified': format_timestamp(self.last_modified),
            'mime_type': self.mime_type,
        }


@final
@dataclass(frozen=True)
class UploadResult:
    """Where an upload was stored."""

    key: str
    bucket: str
    region: str | None
    size: int
    mime_type: str


def get_url_expiration() -> int:
    """Get presigned URL lifetime in seconds.

    Returns:
        Expiration from settings or default of 3600 (1 hour).
    """
    return getattr(
        settings,
        'FILEBROWSER_PRESIGNED_URL_EXPIRATION',
        _DEFAULT_URL_EXPIRATION,
    )


def _clean_key(raw_path: str) -> str:
    key = sanitize(raw_path)
    if not key or key.endswith(_PATH_SEPARATOR):
        raise ValidationError('Invalid file path provided.')
    return key


def _clean_folder(raw_path: str | None, *, allow_root: bool) -> str:
    raw_path = raw_path or ''
    folder = sanitize(raw_path).rstrip(_PATH_SEPARATOR)
    if folder:
        return folder
    if allow_root and not raw_path.strip():
        return ''
    raise ValidationError('Invalid folder path provided.')


def _clean_name(raw_name: str) -> str:
    name = sanitize_name(raw_name)
    if not name:
        raise ValidationError('Invalid new name provided.')
    return name


@final
class FileCatalogService:
    """Folder-style operations over a flat object store."""

    def __init__(
        self,
        gateway_resolver: Callable[[str], ObjectStoreGateway] = resolve_gateway,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        """Initialize catalog service.

        Args:
            gateway_resolver: Validates a disk name and returns its gateway.
            retry_policy: Retry policy for store calls.
        """
        self._resolve_gateway = gateway_resolver
        self._retry = retry_policy or RetryPolicy()

    # Store call plumbing

    def _call(
        self,
        disk: str,
        operation: Callable[[], _ResultT],
        operation_name: str,
        max_attempts: int = DEFAULT_ATTEMPTS,
    ) -> _ResultT:
        """Run a store call with retries and translate its failures.

        Raises:
            StorageConfigurationError: For configuration-class failures.
            StorageConnectionError: When transient failures outlast retries.
            StorageOperationError: When the store refused the request.
        """
        try:
            return self._retry.execute(operation, max_attempts, operation_name)
        except _TRANSLATED_ERRORS as error:
            if is_configuration_error(error):
                logger.error(
                    'Storage configuration error during %s on disk %s: %s',
                    operation_name,
                    disk,
                    error,
                )
                raise StorageConfigurationError(
                    _CONFIGURATION_MESSAGE,
                    disk=disk,
                    operation=operation_name,
                ) from error
            if isinstance(error, ValueError):
                raise
            if is_retryable(error) and not is_refusal(error):
                logger.error(
                    'Storage connection error during %s on disk %s: %s',
                    operation_name,
                    disk,
                    error,
                )
                raise StorageConnectionError(
                    _CONNECTION_MESSAGE,
                    disk=disk,
                    operation=operation_name,
                ) from error
            raise StorageOperationError(
                _REFUSED_MESSAGE,
                disk=disk,
                operation=operation_name,
            ) from error

    def _mutate(
        self,
        disk: str,
        operation: Callable[[], bool],
        operation_name: str,
    ) -> bool:
        """Run a mutating store call, turning refusals into False."""
        try:
            return self._call(disk, operation, operation_name)
        except StorageOperationError as error:
            logger.warning(
                'Storage refused %s on disk %s: %s',
                operation_name,
                disk,
                error.__cause__,
            )
            return False

    def _describe_file(
        self,
        gateway: ObjectStoreGateway,
        disk: str,
        key: str,
    ) -> FileEntry:
        name = extract_filename(key)
        try:
            size = self._call(disk, functools.partial(gateway.size, key), 'get file size')
            modified = self._call(
                disk,
                functools.partial(gateway.last_modified, key),
                'get file modification time',
            )
        except _DEGRADABLE_ERRORS:
            return FileEntry(
                path=key,
                name=name,
                size=0,
                type=_UNKNOWN_FILE_TYPE,
                last_modified=None,
            )
        return FileEntry(
            path=key,
            name=name,
            size=size,
            type=get_file_type(name),
            last_modified=format_timestamp(modified),
        )

    def _existing_subfolders(
        self,
        gateway: ObjectStoreGateway,
        disk: str,
        parent: str,
    ) -> list[str]:
        return self._call(
            disk,
            functools.partial(gateway.list_immediate_subfolders, parent),
            'list sibling folders',
        )

    # Reads

    def generate_presigned_url(
        self,
        file_path: str,
        disk: str,
        expires_in: int | None = None,
    ) -> str:
        """Generate a time-limited preview URL.

        Args:
            file_path: Object key.
            disk: Disk name.
            expires_in: URL lifetime in seconds, settings default if None.

        Returns:
            Presigned URL.

        Raises:
            ValidationError: If the path is invalid.
            StorageConnectionError: If the store cannot be reached.
        """
        gateway = self._resolve_gateway(disk)
        key = _clean_key(file_path)
        ttl = expires_in or get_url_expiration()
        return self._call(
            disk,
            functools.partial(gateway.signed_url, key, ttl),
            'generate presigned URL',
        )

    def get_file_metadata(self, file_path: str, disk: str) -> FileMetadata:
        """Get object metadata, degrading to empty metadata on failure.

        Args:
            file_path: Object key.
            disk: Disk name.

        Returns:
            Metadata of the object.
        """
        gateway = self._resolve_gateway(disk)
        key = _clean_key(file_path)
        try:
            if not self._call(disk, functools.partial(gateway.exists, key), 'check file existence'):
                return FileMetadata.missing()
            return FileMetadata(
                exists=True,
                size=self._call(disk, functools.partial(gateway.size, key), 'get file size'),
                last_modified=self._call(
                    disk,
                    functools.partial(gateway.last_modified, key),
                    'get file modification time',
                ),
                mime_type=self._call(
                    disk,
                    functools.partial(gateway.mime_type, key),
                    'get file MIME type',
                ),
            )
        except _DEGRADABLE_ERRORS:
            logger.exception('Failed to get file metadata: %s on %s', key, disk)
            return FileMetadata.missing()

    def file_exists(self, file_path: str, disk: str) -> bool:
        """Check whether an object exists, False if the store fails."""
        gateway = self._resolve_gateway(disk)
        key = _clean_key(file_path)
        try:
            return self._call(
                disk,
                functools.partial(gateway.exists, key),
                'check file existence',
            )
        except _DEGRADABLE_ERRORS:
            logger.exception('Failed to check file existence: %s on %s', key, disk)
            return False

    def list_files_in_folder(
        self,
        folder_path: str,
        disk: str,
        page: int = 1,
        per_page: int = _DEFAULT_PER_PAGE,
    ) -> FolderContents:
        """List one page of a folder's immediate contents.

        Directories come first, then files, each in listing order. The
        merged sequence is paginated as a whole, so a page may hold both
        kinds. Folder markers are not listed.

        Args:
            folder_path: Folder path, '' for the root.
            disk: Disk name.
            page: Page number (1-indexed).
            per_page: Items per page.

        Returns:
            The requested page, or an empty page if the store fails.
        """
        if page < 1 or per_page < 1:
            raise ValidationError('Page and page size must be positive.')

        gateway = self._resolve_gateway(disk)
        folder = _clean_folder(folder_path, allow_root=True)
        try:
            file_keys = self._call(
                disk,
                functools.partial(gateway.list_immediate_files, folder),
                'list files in folder',
            )
            folder_paths = self._call(
                disk,
                functools.partial(gateway.list_immediate_subfolders, folder),
                'list directories',
            )
        except _DEGRADABLE_ERRORS:
            logger.exception('Failed to list folder: %s on %s', folder, disk)
            return FolderContents(
                files=[],
                directories=[],
                pagination=paginate(0, 1, per_page),
            )

        merged = [(_DIRECTORY_ITEM, path) for path in folder_paths]
        merged.extend(
            (_FILE_ITEM, key)
            for key in file_keys
            if not is_hidden_file(extract_filename(key))
        )
        pagination = paginate(len(merged), page, per_page)

        files: list[FileEntry] = []
        directories: list[DirectoryEntry] = []
        for item_kind, path in pagination.page_slice(merged):
            if item_kind == _DIRECTORY_ITEM:
                directories.append(
                    DirectoryEntry(name=extract_filename(path), path=path),
                )
            else:
                files.append(self._describe_file(gateway, disk, path))

        return FolderContents(
            files=files,
            directories=directories,
            pagination=pagination,
        )

    def list_directories(self, folder_path: str, disk: str) -> list[str]:
        """List immediate subfolder paths, [] if the store fails."""
        gateway = self._resolve_gateway(disk)
        folder = _clean_folder(folder_path, allow_root=True)
        try:
            return self._call(
                disk,
                functools.partial(gateway.list_immediate_subfolders, folder),
                'list directories',
            )
        except _DEGRADABLE_ERRORS:
            logger.exception('Failed to list directories: %s on %s', folder, disk)
            return []

    def list_files_with_folders(self, disk: str) -> FolderListing:
        """Project the whole disk into virtual folders and root files.

        Results are cached per disk. Failures are never cached:
        configuration errors propagate, transient ones yield an empty
        listing.

        Args:
            disk: Disk name.

        Returns:
            Folders in first-encountered order and root-level files.
        """
        gateway = self._resolve_gateway(disk)
        cached = listing_cache.get_cached(disk, listing_cache.LISTING_OPERATION)
        if cached is not None:
            return cached

        try:
            keys = self._call(disk, gateway.list_all_keys, 'list files with folders')
        except _DEGRADABLE_ERRORS:
            logger.exception('Failed to list files with folders on %s', disk)
            return FolderListing(folders=[], files=[])

        projection = project(keys)
        listing = FolderListing(
            folders=projection.folders,
            files=[
                self._describe_file(gateway, disk, key)
                for key in projection.files
            ],
        )
        listing_cache.store(disk, listing_cache.LISTING_OPERATION, listing)
        return listing

    def get_folder_tree(self, disk: str) -> list[FolderTreeNode]:
        """Build the nested folder tree of a disk, cached like listings.

        Args:
            disk: Disk name.

        Returns:
            Top-level tree nodes, [] if the store fails.
        """
        gateway = self._resolve_gateway(disk)
        cached = listing_cache.get_cached(disk, listing_cache.TREE_OPERATION)
        if cached is not None:
            return cached

        try:
            keys = self._call(disk, gateway.list_all_keys, 'get folder tree')
        except _DEGRADABLE_ERRORS:
            logger.exception('Failed to build folder tree on %s', disk)
            return []

        tree = build_tree(keys)
        listing_cache.store(disk, listing_cache.TREE_OPERATION, tree)
        return tree

    def clear_file_list_cache(self, disk: str) -> None:
        """Drop cached listings and trees of a disk."""
        listing_cache.invalidate(disk)

    # Mutations

    def upload_file(
        self,
        uploaded_file: UploadedFile,
        disk: str,
        folder_path: str | None = None,
    ) -> UploadResult:
        """Store an upload under a collision-resistant name.

        Args:
            uploaded_file: File received from the client.
            disk: Disk name.
            folder_path: Target folder, root if empty.

        Returns:
            Key, bucket, region, size and MIME type of the stored object.

        Raises:
            ValidationError: If the folder path is invalid.
            StorageConnectionError: If the store cannot be reached.
            StorageOperationError: If the store refused the write.
        """
        gateway = self._resolve_gateway(disk)
        folder = _clean_folder(folder_path, allow_root=True)
        original_name = uploaded_file.name or 'upload'
        key = join_path(folder, generate_unique_filename(original_name))

        uploaded_file.seek(0)
        content = uploaded_file.read()

        logger.info('Uploading file %s to %s on %s', original_name, key, disk)
        stored = self._call(
            disk,
            functools.partial(gateway.put_object, key, content, 'private'),
            'upload file',
            max_attempts=UPLOAD_ATTEMPTS,
        )
        if not stored:
            raise StorageOperationError(
                'Failed to upload file after multiple attempts.',
                disk=disk,
                operation='upload file',
            )

        listing_cache.invalidate(disk)
        return UploadResult(
            key=key,
            bucket=gateway.bucket_name,
            region=gateway.region_name,
            size=len(content),
            mime_type=(
                uploaded_file.content_type or detect_mime_type(original_name)
            ),
        )

    def delete_file(self, file_path: str, disk: str) -> bool:
        """Delete one object.

        Args:
            file_path: Object key.
            disk: Disk name.

        Returns:
            True if deleted, False if the store refused.
        """
        gateway = self._resolve_gateway(disk)
        key = _clean_key(file_path)

        logger.info('Deleting file %s on %s', key, disk)
        deleted = self._mutate(
            disk,
            functools.partial(gateway.delete_object, key),
            'delete file',
        )
        if deleted:
            listing_cache.invalidate(disk)
        return deleted

    def delete_folder(self, folder_path: str, disk: str) -> bool:
        """Delete every object under a folder.

        Keeps going after a refused delete and reports failure at the
        end. Deleted objects are not restored.

        Args:
            folder_path: Folder path (the root is not accepted).
            disk: Disk name.

        Returns:
            True only if the folder existed and every delete succeeded.
        """
        gateway = self._resolve_gateway(disk)
        folder = _clean_folder(folder_path, allow_root=False)

        keys = self._call(
            disk,
            functools.partial(gateway.list_all_keys, folder),
            'list folder for deletion',
        )
        if not keys:
            logger.warning('Folder not found for deletion: %s on %s', folder, disk)
            return False

        logger.info('Deleting folder %s (%d objects) on %s', folder, len(keys), disk)
        failed_keys = [
            key
            for key in keys
            if not self._mutate(
                disk,
                functools.partial(gateway.delete_object, key),
                'delete folder object',
            )
        ]
        if failed_keys:
            logger.error(
                'Folder %s only partially deleted on %s, %d of %d objects left',
                folder,
                disk,
                len(failed_keys),
                len(keys),
            )
            return False

        listing_cache.invalidate(disk)
        return True

    def rename_file(self, file_path: str, new_name: str, disk: str) -> bool:
        """Rename a file within its folder.

        Args:
            file_path: Object key.
            new_name: New filename, without separators.
            disk: Disk name.

        Returns:
            True if renamed, False if the target exists or the store refused.
        """
        gateway = self._resolve_gateway(disk)
        key = _clean_key(file_path)
        name = _clean_name(new_name)
        new_key = join_path(extract_folder_path(key), name)
        return self._relocate_file(
            gateway,
            disk,
            key,
            new_key,
            gateway.move_object,
            'rename file',
        )

    def move_file(
        self,
        source_path: str,
        destination_path: str,
        disk: str,
    ) -> bool:
        """Move a file into another folder, keeping its name.

        Args:
            source_path: Object key.
            destination_path: Destination folder, '' for the root.
            disk: Disk name.

        Returns:
            True if moved, False if the target exists or the store refused.
        """
        gateway = self._resolve_gateway(disk)
        key = _clean_key(source_path)
        destination = _clean_folder(destination_path, allow_root=True)
        new_key = join_path(destination, extract_filename(key))
        return self._relocate_file(
            gateway,
            disk,
            key,
            new_key,
            gateway.move_object,
            'move file',
        )

    def copy_file(
        self,
        source_path: str,
        destination_path: str,
        disk: str,
    ) -> bool:
        """Copy a file into another folder, keeping its name.

        Args:
            source_path: Object key.
            destination_path: Destination folder, '' for the root.
            disk: Disk name.

        Returns:
            True if copied, False if the target exists or the store refused.
        """
        gateway = self._resolve_gateway(disk)
        key = _clean_key(source_path)
        destination = _clean_folder(destination_path, allow_root=True)
        new_key = join_path(destination, extract_filename(key))
        return self._relocate_file(
            gateway,
            disk,
            key,
            new_key,
            gateway.copy_object,
            'copy file',
        )

    def _relocate_file(  # noqa: WPS211
        self,
        gateway: ObjectStoreGateway,
        disk: str,
        key: str,
        new_key: str,
        transfer: Callable[[str, str], bool],
        operation_name: str,
    ) -> bool:
        target_exists = self._call(
            disk,
            functools.partial(gateway.exists, new_key),
            'check destination',
        )
        if target_exists:
            logger.warning(
                'Cannot %s, destination already exists: %s on %s',
                operation_name,
                new_key,
                disk,
            )
            return False

        logger.info('%s: %s -> %s on %s', operation_name, key, new_key, disk)
        done = self._mutate(
            disk,
            functools.partial(transfer, key, new_key),
            operation_name,
        )
        if done:
            listing_cache.invalidate(disk)
        return done

    def rename_folder(self, folder_path: str, new_name: str, disk: str) -> bool:
        """Rename a folder by moving every object under it.

        Args:
            folder_path: Folder path (the root is not accepted).
            new_name: New folder name, without separators.
            disk: Disk name.

        Returns:
            True if every object moved, False on a name collision or on
            the first refused move (earlier moves are kept).
        """
        gateway = self._resolve_gateway(disk)
        folder = _clean_folder(folder_path, allow_root=False)
        name = _clean_name(new_name)
        parent = extract_folder_path(folder)
        return self._relocate_folder(
            gateway,
            disk,
            folder,
            parent,
            join_path(parent, name),
            gateway.move_object,
            'rename folder',
        )

    def move_folder(
        self,
        source_path: str,
        destination_path: str,
        disk: str,
    ) -> bool:
        """Move a folder, with all its contents, into another folder.

        Args:
            source_path: Folder path (the root is not accepted).
            destination_path: Destination parent folder, '' for the root.
            disk: Disk name.

        Returns:
            True if every object moved, False on a name collision or on
            the first refused move (earlier moves are kept).

        Raises:
            ValidationError: If the destination is inside the source.
        """
        gateway = self._resolve_gateway(disk)
        folder, destination = self._folder_transfer_paths(
            source_path,
            destination_path,
        )
        return self._relocate_folder(
            gateway,
            disk,
            folder,
            destination,
            join_path(destination, extract_filename(folder)),
            gateway.move_object,
            'move folder',
        )

    def copy_folder(
        self,
        source_path: str,
        destination_path: str,
        disk: str,
    ) -> bool:
        """Copy a folder, with all its contents, into another folder.

        Args:
            source_path: Folder path (the root is not accepted).
            destination_path: Destination parent folder, '' for the root.
            disk: Disk name.

        Returns:
            True if every object was copied, False on a name collision or
            on the first refused copy (earlier copies are kept).

        Raises:
            ValidationError: If the destination is inside the source.
        """
        gateway = self._resolve_gateway(disk)
        folder, destination = self._folder_transfer_paths(
            source_path,
            destination_path,
        )
        return self._relocate_folder(
            gateway,
            disk,
            folder,
            destination,
            join_path(destination, extract_filename(folder)),
            gateway.copy_object,
            'copy folder',
        )

    def _folder_transfer_paths(
        self,
        source_path: str,
        destination_path: str,
    ) -> tuple[str, str]:
        folder = _clean_folder(source_path, allow_root=False)
        destination = _clean_folder(destination_path, allow_root=True)
        if destination == folder or destination.startswith(
            folder + _PATH_SEPARATOR,
        ):
            raise ValidationError('A folder cannot be placed inside itself.')
        return folder, destination

    def _relocate_folder(  # noqa: WPS211
        self,
        gateway: ObjectStoreGateway,
        disk: str,
        folder: str,
        target_parent: str,
        new_folder: str,
        transfer: Callable[[str, str], bool],
        operation_name: str,
    ) -> bool:
        siblings = self._existing_subfolders(gateway, disk, target_parent)
        if new_folder in siblings:
            logger.warning(
                'Cannot %s, folder already exists: %s on %s',
                operation_name,
                new_folder,
                disk,
            )
            return False

        keys = self._call(
            disk,
            functools.partial(gateway.list_all_keys, folder),
            'list folder contents',
        )
        if not keys:
            logger.warning('Folder not found: %s on %s', folder, disk)
            return False

        logger.info(
            '%s: %s -> %s (%d objects) on %s',
            operation_name,
            folder,
            new_folder,
            len(keys),
            disk,
        )
        source_prefix = folder + _PATH_SEPARATOR
        for done_count, key in enumerate(keys):
            new_key = join_path(new_folder, key[len(source_prefix):])
            transferred = self._mutate(
                disk,
                functools.partial(transfer, key, new_key),
                operation_name,
            )
            if not transferred:
                logger.error(
                    '%s aborted on %s after %d of %d objects, no rollback',
                    operation_name,
                    disk,
                    done_count,
                    len(keys),
                )
                return False

        listing_cache.invalidate(disk)
        return True

    def create_folder(self, folder_path: str, disk: str) -> bool:
        """Create an empty folder by writing a marker object.

        Args:
            folder_path: Folder path (the root is not accepted).
            disk: Disk name.

        Returns:
            True if created, False if a sibling folder with that name
            exists or the store refused.
        """
        gateway = self._resolve_gateway(disk)
        folder = _clean_folder(folder_path, allow_root=False)

        siblings = self._existing_subfolders(
            gateway,
            disk,
            extract_folder_path(folder),
        )
        if folder in siblings:
            logger.warning('Folder already exists: %s on %s', folder, disk)
            return False

        logger.info('Creating folder %s on %s', folder, disk)
        created = self._mutate(
            disk,
            functools.partial(
                gateway.put_object,
                join_path(folder, FOLDER_MARKER_NAME),
                b'',
                'private',
            ),
            'create folder',
        )
        if created:
            listing_cache.invalidate(disk)
        return created
