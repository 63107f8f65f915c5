"""Tests for the file catalog service against an in-memory store."""

import re

import pytest
from botocore.exceptions import NoCredentialsError
from django.core.exceptions import ValidationError
from django.core.files.uploadedfile import SimpleUploadedFile

from server.apps.filebrowser.exceptions import (
    StorageConfigurationError,
    StorageConnectionError,
)
from server.apps.filebrowser.logic import listing_cache
from server.apps.filebrowser.logic.catalog import FileCatalogService

_DISK = 's3'


@pytest.fixture
def cached_listing():
    """Seed both cache entries so invalidation can be observed."""
    listing_cache.store(_DISK, listing_cache.LISTING_OPERATION, 'stale')
    listing_cache.store(_DISK, listing_cache.TREE_OPERATION, 'stale')


def _cache_is_cleared() -> bool:
    return (
        listing_cache.get_cached(_DISK, listing_cache.LISTING_OPERATION) is None
        and listing_cache.get_cached(_DISK, listing_cache.TREE_OPERATION) is None
    )


class TestListFilesInFolder:
    """Tests for paginated folder listings."""

    @pytest.fixture(autouse=True)
    def _objects(self, fake_gateway):
        fake_gateway.objects.update({
            'docs/.folder': b'',
            'docs/a.txt': b'aaa',
            'docs/b.pdf': b'bb',
            'docs/sub1/x.txt': b'x',
            'docs/sub2/y.txt': b'y',
        })

    def test_directories_come_before_files(self, fake_service):
        """Test merged order is directories first, then files."""
        contents = fake_service.list_files_in_folder('docs', _DISK)

        assert [entry.path for entry in contents.directories] == [
            'docs/sub1',
            'docs/sub2',
        ]
        assert [entry.path for entry in contents.files] == [
            'docs/a.txt',
            'docs/b.pdf',
        ]
        assert contents.pagination.total == 4

    def test_folder_marker_is_hidden(self, fake_service):
        """Test .folder markers never appear in listings."""
        contents = fake_service.list_files_in_folder('docs', _DISK)

        assert 'docs/.folder' not in [entry.path for entry in contents.files]

    def test_pages_split_merged_sequence(self, fake_service):
        """Test a page boundary can fall between directories and files."""
        first = fake_service.list_files_in_folder('docs', _DISK, 1, 3)
        second = fake_service.list_files_in_folder('docs', _DISK, 2, 3)

        assert [entry.name for entry in first.directories] == ['sub1', 'sub2']
        assert [entry.name for entry in first.files] == ['a.txt']
        assert second.directories == []
        assert [entry.name for entry in second.files] == ['b.pdf']
        assert first.pagination.has_more is True
        assert second.pagination.has_more is False

    def test_file_entries_are_described(self, fake_service):
        """Test file entries carry size, type and modification time."""
        contents = fake_service.list_files_in_folder('docs', _DISK)

        assert contents.files[0].as_dict() == {
            'path': 'docs/a.txt',
            'name': 'a.txt',
            'size': 3,
            'type': 'document',
            'last_modified': '2024-05-01 12:30:00',
        }

    def test_unreadable_file_degrades(
        self,
        fake_service,
        fake_gateway,
        make_client_error,
    ):
        """Test a file whose metadata cannot be read is still listed."""
        fake_gateway.failures[('size', 'docs/a.txt')] = make_client_error(
            'AccessDenied',
            403,
        )

        contents = fake_service.list_files_in_folder('docs', _DISK)

        entry = contents.files[0]
        assert (entry.size, entry.type, entry.last_modified) == (
            0,
            'unknown',
            None,
        )

    def test_store_failure_yields_empty_page(
        self,
        fake_service,
        fake_gateway,
        make_client_error,
        sleeps,
    ):
        """Test unreachable stores degrade to an empty listing."""
        fake_gateway.failures[('list_immediate_files', 'docs')] = (
            make_client_error('ServiceUnavailable', 503)
        )

        contents = fake_service.list_files_in_folder('docs', _DISK)

        assert contents.files == []
        assert contents.directories == []
        assert contents.pagination.total == 0
        assert contents.pagination.last_page == 0
        assert len(sleeps) == 1

    def test_root_listing(self, fake_service, fake_gateway):
        """Test the empty path lists the bucket root."""
        fake_gateway.objects['top.txt'] = b't'

        contents = fake_service.list_files_in_folder('', _DISK)

        assert [entry.path for entry in contents.directories] == ['docs']
        assert [entry.path for entry in contents.files] == ['top.txt']

    def test_malicious_folder_is_rejected(self, fake_service, fake_gateway):
        """Test traversal attempts never reach the store."""
        with pytest.raises(ValidationError):
            fake_service.list_files_in_folder('../secrets', _DISK)

        assert fake_gateway.calls == []


class TestWholeDiskListing:
    """Tests for cached listings and folder trees."""

    def test_listing_projects_folders(self, fake_service, fake_gateway):
        """Test folders and root files are derived from all keys."""
        fake_gateway.objects.update({
            'docs/a.txt': b'a',
            'docs/reports/q1.pdf': b'q',
            'readme.md': b'r',
        })

        listing = fake_service.list_files_with_folders(_DISK)

        assert [folder.path for folder in listing.folders] == [
            'docs',
            'docs/reports',
        ]
        assert [entry.path for entry in listing.files] == ['readme.md']

    def test_listing_is_cached_until_mutation(self, fake_service, fake_gateway):
        """Test results are served from cache and dropped on mutation."""
        fake_gateway.objects['docs/a.txt'] = b'a'
        first = fake_service.list_files_with_folders(_DISK)

        fake_gateway.objects['media/clip.mp4'] = b'c'
        assert fake_service.list_files_with_folders(_DISK) == first

        assert fake_service.create_folder('new', _DISK)
        paths = [
            folder.path
            for folder in fake_service.list_files_with_folders(_DISK).folders
        ]
        assert paths == ['docs', 'media', 'new']

    def test_transient_failure_is_not_cached(
        self,
        fake_service,
        fake_gateway,
        make_client_error,
    ):
        """Test an empty result from an outage is recomputed next time."""
        fake_gateway.objects['docs/a.txt'] = b'a'
        fake_gateway.failures[('list_all_keys', '')] = make_client_error(
            'ServiceUnavailable',
            503,
        )

        assert fake_service.list_files_with_folders(_DISK).folders == []

        fake_gateway.failures.clear()
        listing = fake_service.list_files_with_folders(_DISK)
        assert [folder.path for folder in listing.folders] == ['docs']

    def test_configuration_error_propagates_uncached(
        self,
        fake_service,
        fake_gateway,
    ):
        """Test configuration failures raise and leave the cache empty."""
        fake_gateway.failures[('list_all_keys', '')] = NoCredentialsError()

        with pytest.raises(StorageConfigurationError):
            fake_service.list_files_with_folders(_DISK)

        assert _cache_is_cleared()

    def test_unconfigured_disk_bypasses_cache(self, retry_policy):
        """Test disk validation runs even when a cached result exists."""
        listing_cache.store('gone', listing_cache.LISTING_OPERATION, 'stale')
        service = FileCatalogService(retry_policy=retry_policy)

        with pytest.raises(StorageConfigurationError):
            service.list_files_with_folders('gone')

    def test_folder_tree(self, fake_service, fake_gateway):
        """Test tree counts every key under each folder."""
        fake_gateway.objects.update({
            'docs/a.txt': b'a',
            'docs/reports/q1.pdf': b'q',
        })

        tree = fake_service.get_folder_tree(_DISK)

        assert tree[0].file_count == 2
        assert tree[0].children['reports'].file_count == 1
        assert fake_service.get_folder_tree(_DISK) == tree

    def test_clear_file_list_cache(self, fake_service, cached_listing):
        """Test the cache can be cleared explicitly."""
        fake_service.clear_file_list_cache(_DISK)

        assert _cache_is_cleared()


class TestReads:
    """Tests for previews, metadata and existence checks."""

    def test_presigned_url_uses_configured_expiration(
        self,
        fake_service,
        fake_gateway,
        settings,
    ):
        """Test URL lifetime defaults to the configured expiration."""
        settings.FILEBROWSER_PRESIGNED_URL_EXPIRATION = 900
        fake_gateway.objects['docs/a.txt'] = b'a'

        url = fake_service.generate_presigned_url('docs/a.txt', _DISK)

        assert url.endswith('docs/a.txt?expires=900')

    def test_presigned_url_rejects_folder_path(self, fake_service):
        """Test a path ending in a separator is not an object."""
        with pytest.raises(ValidationError):
            fake_service.generate_presigned_url('docs/', _DISK)

    def test_metadata_of_existing_file(self, fake_service, fake_gateway):
        """Test metadata of a stored object."""
        fake_gateway.objects['docs/a.pdf'] = b'12345'

        metadata = fake_service.get_file_metadata('docs/a.pdf', _DISK)

        assert metadata.as_dict() == {
            'exists': True,
            'size': 5,
            'last_modified': '2024-05-01 12:30:00',
            'mime_type': 'application/pdf',
        }

    def test_metadata_of_missing_file(self, fake_service):
        """Test missing objects report empty metadata."""
        metadata = fake_service.get_file_metadata('docs/none.pdf', _DISK)

        assert metadata.exists is False
        assert metadata.size == 0

    def test_metadata_degrades_on_failure(
        self,
        fake_service,
        fake_gateway,
        make_client_error,
    ):
        """Test store failures degrade to empty metadata."""
        fake_gateway.objects['docs/a.pdf'] = b'12345'
        fake_gateway.failures[('mime_type', 'docs/a.pdf')] = (
            make_client_error('AccessDenied', 403)
        )

        assert fake_service.get_file_metadata('docs/a.pdf', _DISK).exists is False

    def test_file_exists(self, fake_service, fake_gateway, make_client_error):
        """Test existence checks degrade to False on failure."""
        fake_gateway.objects['a.txt'] = b'a'
        fake_gateway.failures[('exists', 'b.txt')] = make_client_error(
            'ServiceUnavailable',
            503,
        )

        assert fake_service.file_exists('a.txt', _DISK)
        assert not fake_service.file_exists('b.txt', _DISK)

    def test_list_directories(self, fake_service, fake_gateway, make_client_error):
        """Test immediate subfolders, degrading to an empty list."""
        fake_gateway.objects['docs/sub/a.txt'] = b'a'

        assert fake_service.list_directories('docs', _DISK) == ['docs/sub']

        fake_gateway.failures[('list_immediate_subfolders', 'docs')] = (
            make_client_error('InternalError', 500)
        )
        assert fake_service.list_directories('docs', _DISK) == []


class TestUpload:
    """Tests for uploads."""

    def test_upload_generates_unique_key(
        self,
        fake_service,
        fake_gateway,
        cached_listing,
    ):
        """Test uploads land under a timestamped name."""
        upload = SimpleUploadedFile(
            'report.pdf',
            b'x' * 100,
            content_type='application/pdf',
        )

        result = fake_service.upload_file(upload, _DISK, 'invoices')

        assert re.fullmatch(r'invoices/report-\d+\.pdf', result.key)
        assert result.size == 100
        assert result.bucket == 'fake-bucket'
        assert result.mime_type == 'application/pdf'
        assert fake_gateway.objects[result.key] == b'x' * 100
        assert _cache_is_cleared()

    def test_upload_to_root(self, fake_service):
        """Test uploads without folder land at the root."""
        upload = SimpleUploadedFile('notes.txt', b'hello')

        result = fake_service.upload_file(upload, _DISK)

        assert '/' not in result.key

    def test_upload_rejects_malicious_folder(self, fake_service, fake_gateway):
        """Test an unsafe folder is refused, not replaced by the root."""
        upload = SimpleUploadedFile('notes.txt', b'hello')

        with pytest.raises(ValidationError):
            fake_service.upload_file(upload, _DISK, '../outside')

        assert fake_gateway.mutations() == []


class TestFileMutations:
    """Tests for single-file mutations."""

    @pytest.fixture(autouse=True)
    def _objects(self, fake_gateway):
        fake_gateway.objects.update({
            'docs/a.txt': b'a',
            'docs/b.txt': b'b',
            'archive/.folder': b'',
        })

    def test_delete_file(self, fake_service, fake_gateway, cached_listing):
        """Test deletion removes the key and clears the cache."""
        assert fake_service.delete_file('docs/a.txt', _DISK)

        assert 'docs/a.txt' not in fake_gateway.objects
        assert _cache_is_cleared()

    def test_delete_rejects_traversal(self, fake_service, fake_gateway):
        """Test unsafe keys raise before any store call."""
        with pytest.raises(ValidationError):
            fake_service.delete_file('../etc/passwd', _DISK)

        assert fake_gateway.calls == []

    def test_rename_file(self, fake_service, fake_gateway, cached_listing):
        """Test renames stay in the same folder."""
        assert fake_service.rename_file('docs/a.txt', 'c.txt', _DISK)

        assert 'docs/c.txt' in fake_gateway.objects
        assert 'docs/a.txt' not in fake_gateway.objects
        assert _cache_is_cleared()

    def test_rename_collision_does_nothing(
        self,
        fake_service,
        fake_gateway,
        cached_listing,
    ):
        """Test renaming onto an existing name fails without mutation."""
        assert not fake_service.rename_file('docs/a.txt', 'b.txt', _DISK)

        assert fake_gateway.mutations() == []
        assert fake_gateway.objects['docs/b.txt'] == b'b'
        assert not _cache_is_cleared()

    def test_rename_rejects_nested_name(self, fake_service):
        """Test new names cannot contain separators."""
        with pytest.raises(ValidationError):
            fake_service.rename_file('docs/a.txt', 'x/y.txt', _DISK)

    def test_move_file(self, fake_service, fake_gateway):
        """Test files move into the destination folder."""
        assert fake_service.move_file('docs/a.txt', 'archive', _DISK)

        assert 'archive/a.txt' in fake_gateway.objects
        assert 'docs/a.txt' not in fake_gateway.objects

    def test_move_file_to_root(self, fake_service, fake_gateway):
        """Test an empty destination means the bucket root."""
        assert fake_service.move_file('docs/a.txt', '', _DISK)

        assert 'a.txt' in fake_gateway.objects

    def test_move_into_same_folder_collides(self, fake_service, fake_gateway):
        """Test moving a file onto itself fails without mutation."""
        assert not fake_service.move_file('docs/a.txt', 'docs', _DISK)

        assert fake_gateway.mutations() == []

    def test_move_missing_file_fails(self, fake_service):
        """Test a definitive store refusal becomes False."""
        assert not fake_service.move_file('docs/none.txt', 'archive', _DISK)

    def test_copy_file(self, fake_service, fake_gateway):
        """Test copies keep the source."""
        assert fake_service.copy_file('docs/a.txt', 'archive', _DISK)

        assert fake_gateway.objects['archive/a.txt'] == b'a'
        assert 'docs/a.txt' in fake_gateway.objects

    def test_copy_collision_does_nothing(self, fake_service, fake_gateway):
        """Test copying onto an existing key fails without mutation."""
        fake_gateway.objects['archive/a.txt'] = b'old'

        assert not fake_service.copy_file('docs/a.txt', 'archive', _DISK)

        assert fake_gateway.objects['archive/a.txt'] == b'old'
        assert fake_gateway.mutations() == []

    def test_unreachable_store_raises(
        self,
        fake_service,
        fake_gateway,
        make_client_error,
        sleeps,
    ):
        """Test transient failures raise once retries are exhausted."""
        fake_gateway.failures[('delete_object', 'docs/a.txt')] = (
            make_client_error('ServiceUnavailable', 503)
        )

        with pytest.raises(StorageConnectionError) as exc_info:
            fake_service.delete_file('docs/a.txt', _DISK)

        assert exc_info.value.disk == _DISK
        assert sleeps == pytest.approx([0.1])

    def test_refused_mutation_is_retried_then_reported(
        self,
        fake_service,
        fake_gateway,
        make_client_error,
        sleeps,
    ):
        """Test a store that keeps refusing yields False after retrying."""
        fake_gateway.failures[('delete_object', 'docs/a.txt')] = (
            make_client_error('AccessDenied', 403)
        )

        assert not fake_service.delete_file('docs/a.txt', _DISK)

        assert fake_gateway.calls.count(('delete_object', 'docs/a.txt')) == 2
        assert sleeps == pytest.approx([0.1])


class TestFolderMutations:
    """Tests for multi-key folder operations."""

    @pytest.fixture(autouse=True)
    def _objects(self, fake_gateway):
        fake_gateway.objects.update({
            'photos/1.jpg': b'1',
            'photos/2.jpg': b'2',
            'photos/trip/3.jpg': b'3',
            'albums/.folder': b'',
        })

    def test_rename_folder(self, fake_service, fake_gateway, cached_listing):
        """Test every key under the folder moves."""
        assert fake_service.rename_folder('photos', 'pictures', _DISK)

        assert sorted(fake_gateway.objects) == [
            'albums/.folder',
            'pictures/1.jpg',
            'pictures/2.jpg',
            'pictures/trip/3.jpg',
        ]
        assert _cache_is_cleared()

    def test_rename_folder_collision(self, fake_service, fake_gateway):
        """Test renaming onto an existing sibling fails without mutation."""
        assert not fake_service.rename_folder('photos', 'albums', _DISK)

        assert fake_gateway.mutations() == []

    def test_partial_failure_is_not_rolled_back(
        self,
        fake_service,
        fake_gateway,
        make_client_error,
        cached_listing,
    ):
        """Test a refused move aborts and keeps earlier moves."""
        fake_gateway.failures[('move_object', 'photos/2.jpg')] = (
            make_client_error('AccessDenied', 403)
        )

        assert not fake_service.rename_folder('photos', 'pictures', _DISK)

        assert 'pictures/1.jpg' in fake_gateway.objects
        assert 'photos/2.jpg' in fake_gateway.objects
        assert 'photos/trip/3.jpg' in fake_gateway.objects
        assert not _cache_is_cleared()

    def test_move_folder(self, fake_service, fake_gateway):
        """Test folders move under the destination keeping their name."""
        assert fake_service.move_folder('photos', 'albums', _DISK)

        assert 'albums/photos/trip/3.jpg' in fake_gateway.objects
        assert not any(key.startswith('photos/') for key in fake_gateway.objects)

    def test_move_folder_into_itself(self, fake_service, fake_gateway):
        """Test a folder cannot be moved below itself."""
        with pytest.raises(ValidationError):
            fake_service.move_folder('photos', 'photos/trip', _DISK)

        assert fake_gateway.calls == []

    def test_move_folder_to_current_parent_collides(
        self,
        fake_service,
        fake_gateway,
    ):
        """Test moving a folder where it already is fails."""
        assert not fake_service.move_folder('photos/trip', 'photos', _DISK)

        assert fake_gateway.mutations() == []

    def test_copy_folder(self, fake_service, fake_gateway):
        """Test copies keep the source folder."""
        assert fake_service.copy_folder('photos', 'albums', _DISK)

        assert 'albums/photos/1.jpg' in fake_gateway.objects
        assert 'photos/1.jpg' in fake_gateway.objects

    def test_copy_folder_collision(self, fake_service, fake_gateway):
        """Test copying onto an existing folder fails without mutation."""
        fake_gateway.objects['albums/photos/old.jpg'] = b'old'

        assert not fake_service.copy_folder('photos', 'albums', _DISK)

        assert fake_gateway.mutations() == []

    def test_root_is_never_a_source(self, fake_service):
        """Test folder operations refuse the bucket root."""
        with pytest.raises(ValidationError):
            fake_service.delete_folder('', _DISK)
        with pytest.raises(ValidationError):
            fake_service.delete_folder('/', _DISK)
        with pytest.raises(ValidationError):
            fake_service.copy_folder('', 'albums', _DISK)

    def test_delete_folder(self, fake_service, fake_gateway, cached_listing):
        """Test every key under the folder is deleted."""
        assert fake_service.delete_folder('photos', _DISK)

        assert list(fake_gateway.objects) == ['albums/.folder']
        assert _cache_is_cleared()

    def test_delete_missing_folder(self, fake_service):
        """Test deleting a folder with no keys fails."""
        assert not fake_service.delete_folder('nothing', _DISK)

    def test_delete_folder_partial_failure(
        self,
        fake_service,
        fake_gateway,
        make_client_error,
        cached_listing,
    ):
        """Test remaining keys are still deleted and failure is reported."""
        fake_gateway.failures[('delete_object', 'photos/1.jpg')] = (
            make_client_error('AccessDenied', 403)
        )

        assert not fake_service.delete_folder('photos', _DISK)

        assert sorted(fake_gateway.objects) == [
            'albums/.folder',
            'photos/1.jpg',
        ]
        assert not _cache_is_cleared()

    def test_create_folder(self, fake_service, fake_gateway, cached_listing):
        """Test folders are created as marker objects."""
        assert fake_service.create_folder('photos/2025', _DISK)

        assert fake_gateway.objects['photos/2025/.folder'] == b''
        assert _cache_is_cleared()

    def test_create_existing_folder(self, fake_service, fake_gateway):
        """Test creating an existing folder fails without mutation."""
        assert not fake_service.create_folder('photos/trip', _DISK)

        assert fake_gateway.mutations() == []
